"""Forecast API - walk-forward stock price prediction service."""

__version__ = "0.1.0"
