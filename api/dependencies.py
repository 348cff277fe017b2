"""FastAPI dependencies for dependency injection."""

from typing import Optional
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import jwt

from api.services.audit import RequestContext
from core.middleware.logging import get_client_ip
from core.security import decode_access_token, get_token_user_id
from database.engine import get_db
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the caller from the ``Authorization: Bearer`` token.

    The role is always read from the user record, not from the token.
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = get_token_user_id(payload)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected access token: {e}")
        raise _unauthorized("Invalid authentication token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _unauthorized("User not found")

    request.state.actor_id = user.id
    return user


async def require_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Require user to be active."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )
    return current_user


async def require_admin(
    current_user: User = Depends(require_active_user),
) -> User:
    """Require user to be an admin."""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def require_agent(
    current_user: User = Depends(require_active_user),
) -> User:
    """Require user to be an agent."""
    if current_user.role != UserRole.AGENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent access required",
        )
    return current_user


def get_request_context(
    request: Request,
    current_user: User = Depends(require_active_user),
) -> RequestContext:
    """Caller identity and network context attached to audit entries."""
    return RequestContext(
        actor_id=current_user.id,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=getattr(request.state, "request_id", None),
    )
