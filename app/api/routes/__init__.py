"""API routes."""

from fastapi import APIRouter

from app.api.routes import appointments, forwarding, routing_rules, sources, webhooks

api_router = APIRouter()

# Admin routes (JWT with admin role)
api_router.include_router(sources.router, tags=["sources"])
api_router.include_router(forwarding.router, prefix="/webhook", tags=["forwarding"])
api_router.include_router(routing_rules.router, prefix="/routing-rules", tags=["routing-rules"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])

# Public lead intake, mounted at the root by the app
webhook_router = APIRouter()
webhook_router.include_router(webhooks.router, prefix="/webhook", tags=["webhooks"])
