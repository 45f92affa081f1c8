"""Shared utilities and constants for storage modules."""

from pathlib import Path

# Default base path for data storage
DEFAULT_DATA_PATH = Path("data")
