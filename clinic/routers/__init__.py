"""API router initializers."""

from fastapi import APIRouter


def get_api_router() -> APIRouter:
    """Construct and return the API router."""

    from clinic.routers.admin import router as admin_router
    from clinic.routers.turnos import router as turnos_router
    from clinic.routers.webhooks import router as webhooks_router

    api_router = APIRouter(prefix="/api")
    api_router.include_router(turnos_router, prefix="/turnos", tags=["turnos"])
    api_router.include_router(webhooks_router, prefix="/webhooks", tags=["webhooks"])
    api_router.include_router(admin_router, tags=["admin"])
    return api_router
