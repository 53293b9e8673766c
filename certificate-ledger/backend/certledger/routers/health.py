# certledger/routers/health.py
from fastapi import APIRouter

from certledger.schemas import HealthResponse
from certledger.settings import get_settings

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health_check():
    config = get_settings().ledger_config()
    return HealthResponse(
        status="healthy",
        service="certledger",
        network=config.network,
        api_key_configured=config.api_key_configured,
        metadata_label=config.metadata_label,
    )
