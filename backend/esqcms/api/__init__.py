from fastapi import APIRouter

from esqcms.api.routes import auth, ledger, workflow
from esqcms.api.routes.auth import require_actor

router = APIRouter()

# Token verification only; tokens are issued elsewhere
router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Ledger routes first: /revisions/* and /approvals/* must not fall through to /{collection}/*
router.include_router(
    ledger.router,
    tags=["ledger"],
    dependencies=[require_actor]
)
router.include_router(
    workflow.router,
    tags=["workflow"],
    dependencies=[require_actor]
)
