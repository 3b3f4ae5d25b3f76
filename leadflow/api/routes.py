from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from leadflow.api.deps import get_current_actor
from leadflow.cadences.api import cadence_steps_router, cadences_router, lead_cadences_router
from leadflow.core.config import get_settings
from leadflow.crm.api import activities_router, leads_router, users_router
from leadflow.metrics import generate_metrics_payload, metrics_content_type
from leadflow.platform.security.context import Actor
from leadflow.sharing.api import router as sharing_router

router = APIRouter()
router.include_router(users_router)
router.include_router(leads_router)
router.include_router(activities_router)
router.include_router(cadences_router)
router.include_router(cadence_steps_router)
router.include_router(lead_cadences_router)
router.include_router(sharing_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
def me(actor: Actor | None = Depends(get_current_actor)) -> dict[str, str | bool]:
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autorizado")
    return {
        "user_id": str(actor.user_id),
        "role": actor.role,
        "is_admin": actor.is_admin,
    }


@router.get("/metrics", tags=["system"])
def metrics(actor: Actor | None = Depends(get_current_actor)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if actor is None or not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso negado")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
