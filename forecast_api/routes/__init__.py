"""HTTP routers for the forecast service."""
