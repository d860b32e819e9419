from fastapi import APIRouter

from auditdesk.api.routes import audits, tiers, scheduler, auth
from auditdesk.api.routes.auth import require_admin

router = APIRouter()

# Auth routes - not protected (login endpoint)
router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Protected routes - require admin authentication
router.include_router(
    audits.router,
    prefix="/audits",
    tags=["audits"],
    dependencies=[require_admin]
)
router.include_router(
    tiers.router,
    prefix="/tiers",
    tags=["tiers"],
    dependencies=[require_admin]
)
router.include_router(
    scheduler.router,
    prefix="/scheduler",
    tags=["scheduler"],
    dependencies=[require_admin]
)
