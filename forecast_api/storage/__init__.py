"""Model artifact storage."""
