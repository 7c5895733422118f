# backend/agenda/routes/__init__.py
"""HTTP routers: first-party flow under /api, integration API under /api/v1."""
