"""Root endpoint (service info)."""

from fastapi import APIRouter

from forecast_api.core.config import get_supported_symbols

router = APIRouter(tags=["root"])


@router.get("/")
def read_root() -> dict:
    """Service name, version and the symbols the model supports."""
    return {
        "message": "Hello from Forecast API",
        "service": "forecast-api",
        "version": "0.1.0",
        "supportedSymbols": get_supported_symbols(),
    }
