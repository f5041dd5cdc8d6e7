"""API routers, mounted by pharmacy.api.app."""
