"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI

from forecast_api.core.config import get_log_level
from forecast_api.routes import health, historical, predict, root, sentiment

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Forecast API",
    description="Walk-forward stock price prediction with news sentiment",
    version="0.1.0",
)

app.include_router(root.router)
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(predict.router)
app.include_router(historical.router)
app.include_router(sentiment.router)
