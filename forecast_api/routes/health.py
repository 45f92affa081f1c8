"""Health check endpoints."""

from fastapi import APIRouter, Depends

from forecast_api.storage.model_json import ModelStorage

from .dependencies import get_model_storage

router = APIRouter()


@router.get("")
def health_check() -> dict:
    """Generic health check."""
    return {"status": "healthy"}


@router.get("/live")
def liveness() -> dict:
    """Liveness probe - is the process running?"""
    return {"status": "alive"}


@router.get("/ready")
def readiness(storage: ModelStorage = Depends(get_model_storage)) -> dict:
    """Readiness probe - is a model artifact present to serve /predict?

    Only checks that the file exists; a corrupt artifact still surfaces as
    503 from /predict.
    """
    if not storage.exists():
        return {"status": "not_ready", "model": str(storage.model_path)}
    return {"status": "ready", "model": str(storage.model_path)}
