# certledger/routers/proxy.py
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from certledger.dependencies import get_gateway
from certledger.gateway import SUPPORTED_METHODS, BlockfrostGateway
from certledger.schemas import ProxyRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/blockfrost")
def proxy_blockfrost(req: ProxyRequest, gateway: BlockfrostGateway = Depends(get_gateway)):
    """
    Relay one call to Blockfrost with the server-side project key.
    Upstream status and body are passed through unchanged.
    """
    if not req.endpoint:
        return JSONResponse(status_code=400, content={"error": "Blockfrost endpoint is required."})
    gateway.config.require_api_key()
    if not req.endpoint.startswith("/") or "://" in req.endpoint:
        return JSONResponse(status_code=400, content={"error": "Blockfrost endpoint must be a path."})
    if (req.method or "").lower() not in SUPPORTED_METHODS:
        return JSONResponse(status_code=405, content={"error": "Method not allowed."})

    logger.debug("Relaying %s %s", req.method.upper(), req.endpoint)
    status, body = gateway.relay(
        req.endpoint,
        method=req.method,
        body=req.body,
        params=req.params,
        content_type=req.content_type,
    )
    return JSONResponse(status_code=status, content=body)
