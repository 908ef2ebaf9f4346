"""FastAPI dependencies."""

from collections.abc import Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.locks import DoctorLockRegistry
from app.core.payment_gateway import RazorpayClient
from app.core.redis_client import CacheManager
from app.core.security import decode_access_token
from app.database import get_db
from app.schemas.auth import Actor, UserRole

# Security
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Resolve the caller from the JWT access token.

    The auth service vouches for ``sub`` and ``role``; no user lookup is made.

    Args:
        credentials: Bearer token credentials

    Returns:
        Authenticated actor

    Raises:
        HTTPException: If token is invalid, expired or lacks claims
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    role = payload.get("role")
    if not isinstance(user_id_str, str) or not isinstance(role, str):
        raise _credentials_error()

    try:
        return Actor(id=UUID(user_id_str), role=UserRole(role))
    except (ValueError, ValidationError):
        raise _credentials_error("Invalid user ID or role in token")


def require_role(*roles: UserRole) -> Callable:
    """Build a dependency that admits only the given roles."""

    async def _check(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(role.value for role in roles)}",
            )
        return actor

    return _check


def get_cache_manager(request: Request) -> CacheManager | None:
    """Cache built at startup, or None when Redis is not configured."""
    return getattr(request.app.state, "cache", None)


def get_doctor_locks(request: Request) -> DoctorLockRegistry:
    """Process-wide per-doctor booking locks."""
    return request.app.state.doctor_locks


def get_payment_gateway(request: Request) -> RazorpayClient:
    """Payment processor client created at startup."""
    return request.app.state.payment_gateway


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
CurrentDoctor = Annotated[Actor, Depends(require_role(UserRole.DOCTOR))]
CurrentPatient = Annotated[Actor, Depends(require_role(UserRole.PATIENT))]
Cache = Annotated[CacheManager | None, Depends(get_cache_manager)]
DoctorLocks = Annotated[DoctorLockRegistry, Depends(get_doctor_locks)]
PaymentGateway = Annotated[RazorpayClient, Depends(get_payment_gateway)]
