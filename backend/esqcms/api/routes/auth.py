"""
Actor identity for workflow routes.

Tokens are issued by the identity service; this module only verifies the
bearer JWT and turns its claims (``sub`` = user id, ``role``) into an Actor.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from jose import jwt, JWTError

from esqcms.core.config import settings
from esqcms.core.logging_config import LogContext
from esqcms.db.models import UserRole
from esqcms.workflow.authorizer import Actor

router = APIRouter()
security = HTTPBearer(auto_error=False)


class ActorInfo(BaseModel):
    id: uuid.UUID
    role: UserRole


def create_access_token(user_id: uuid.UUID, role: UserRole, expires_minutes: Optional[int] = None) -> str:
    """Create a signed token carrying the actor claims (used by tests and tooling)"""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        # Use numeric timestamps for compatibility across JWT libs
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _decode_actor(token: str) -> Optional[Actor]:
    """Verify JWT and return the actor if the token and its claims are valid"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    try:
        return Actor(id=uuid.UUID(str(payload.get("sub"))), role=UserRole(payload.get("role")))
    except ValueError:
        return None


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    actor = _decode_actor(credentials.credentials) if credentials else None
    if actor is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    LogContext.set(actor_id=str(actor.id), actor_role=actor.role.value)
    return actor


# Dependency to protect routes
require_actor = Depends(get_current_actor)


@router.get("/me", response_model=ActorInfo)
async def get_me(actor: Actor = require_actor):
    """Current actor (also serves as token verification)"""
    return ActorInfo(id=actor.id, role=actor.role)
