# certledger/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from certledger import __version__
from certledger.errors import CertLedgerError, InternalError
from certledger.routers import certificates, health, proxy
from certledger.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    config = settings.ledger_config()
    logger.info(
        "Backend proxy starting (network=%s, Blockfrost API key: %s)",
        config.network,
        "Configured" if config.api_key_configured else "NOT CONFIGURED",
    )
    yield
    logger.info("Backend proxy shutting down")


app = FastAPI(title="Certificate Ledger Backend", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(CertLedgerError)
async def certledger_error_handler(request: Request, exc: CertLedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.to_payload())


app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(proxy.router, prefix="/api", tags=["proxy"])
app.include_router(certificates.router, prefix="/api/certificates", tags=["certificates"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("certledger.main:app", host=settings.HOST, port=settings.PORT)
