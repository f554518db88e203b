"""
FastAPI dependencies for authentication, role guards and the assistance service.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database import get_session_maker
from src.engines.assistance.service import AssistanceService
from src.kernel.identity.jwt import verify_access_token
from src.kernel.models.user import UserRole
from src.logging_config import actor_id_var


# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Verified caller identity taken from the bearer token."""
    user_id: uuid.UUID
    role: UserRole


async def get_current_actor(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Actor:
    """Get the authenticated actor or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = uuid.UUID(payload.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        role = UserRole(payload.role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unsupported role",
        )

    actor_id_var.set(str(user_id))
    return Actor(user_id=user_id, role=role)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


async def require_student(actor: CurrentActor) -> Actor:
    """Require the current actor to be a student."""
    if actor.role != UserRole.STUDENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student access required",
        )
    return actor


async def require_teacher(actor: CurrentActor) -> Actor:
    """Require the current actor to be a teacher."""
    if actor.role != UserRole.TEACHER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Teacher access required",
        )
    return actor


StudentActor = Annotated[Actor, Depends(require_student)]
TeacherActor = Annotated[Actor, Depends(require_teacher)]


def get_assistance_service(
    session_maker: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_maker)],
) -> AssistanceService:
    return AssistanceService(session_maker)


AssistanceServiceDep = Annotated[AssistanceService, Depends(get_assistance_service)]
