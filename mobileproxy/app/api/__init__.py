"""API routers for the proxy."""
