"""
FastAPI Dependencies
Common dependencies for authentication, family-membership authorization,
and database access.
"""

import logging
from typing import Optional, Callable, Awaitable
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import get_settings
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    User,
    FamilyMember,
    FamilyRole,
    ROLE_HIERARCHY,
    Budget,
    Task,
    Notification,
)

settings = get_settings()
logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

ACCESS_DENIED = "Access denied. User is not a member of this family."


# ============================================================================
# Authentication
# ============================================================================

def _extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


def decode_user_id(token: str) -> Optional[UUID]:
    """
    Decode an access token and return its subject.

    Returns:
        Optional[UUID]: User id, or None when the token is invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None

    if payload.get("type", "access") != "access":
        return None

    user_id = payload.get("sub") or payload.get("id")
    if user_id is None:
        return None

    try:
        return UUID(str(user_id))
    except ValueError:
        return None


async def authenticate_token(session: AsyncSession, token: str) -> Optional[User]:
    """Resolve an access token to an active user."""
    user_id = decode_user_id(token)
    if user_id is None:
        return None

    result = await session.execute(
        select(User).where(
            User.id == user_id,
            User.deleted_at.is_(None),
            User.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User:
    """
    Dependency to get the current authenticated user.

    Args:
        request: Incoming request (for the auth cookie)
        credentials: HTTP Bearer token
        session: Database session

    Returns:
        User: Authenticated user object

    Raises:
        HTTPException: 401 without a token, 403 when the token is invalid
    """
    token = _extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await authenticate_token(session, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )

    request.state.user_id = str(user.id)
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """
    Dependency to optionally get current user (for public endpoints).

    Returns:
        Optional[User]: User if authenticated, None otherwise
    """
    token = _extract_token(request, credentials)
    if not token:
        return None

    user = await authenticate_token(session, token)
    if user is not None:
        request.state.user_id = str(user.id)
    return user


# ============================================================================
# Family membership
# ============================================================================

def parse_id(raw: Optional[object], param: str) -> int:
    """Parse a positive integer id or fail with 400."""
    try:
        value = int(str(raw))
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {param} parameter",
        )
    return value


async def verify_family_membership(
    session: AsyncSession,
    user_id: UUID,
    family_id: int,
) -> Optional[FamilyMember]:
    """Return the membership row linking user and family, if any."""
    result = await session.execute(
        select(FamilyMember).where(
            FamilyMember.user_id == user_id,
            FamilyMember.family_id == family_id,
        )
    )
    return result.scalar_one_or_none()


def has_min_role(membership: FamilyMember, min_role: FamilyRole) -> bool:
    return ROLE_HIERARCHY.get(membership.role, 0) >= ROLE_HIERARCHY.get(min_role, 0)


async def ensure_family_member(
    session: AsyncSession,
    user: User,
    family_id: int,
    min_role: FamilyRole = FamilyRole.CHILD,
) -> FamilyMember:
    """
    Require membership (and optionally a minimum role) in a family.

    Args:
        session: Database session
        user: Authenticated user
        family_id: Family to check
        min_role: Lowest role allowed through

    Returns:
        FamilyMember: The caller's membership

    Raises:
        HTTPException: 403 when not a member or the role is too low
    """
    membership = await verify_family_membership(session, user.id, family_id)

    if membership is None:
        logger.warning(
            "Family access denied",
            extra={"user_id": str(user.id), "family_id": family_id, "reason": "not_member"},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED)

    if not has_min_role(membership, min_role):
        logger.warning(
            "Family role too low",
            extra={
                "user_id": str(user.id),
                "family_id": family_id,
                "role": membership.role.value,
                "required": min_role.value,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions. Requires {min_role.value} role or higher.",
        )

    return membership


def require_family_membership(
    min_role: FamilyRole = FamilyRole.CHILD,
) -> Callable[..., Awaitable[FamilyMember]]:
    """
    Build a dependency that guards a route by family membership.

    The family id comes from the ``family_id`` path parameter, or from the
    ``familyId``/``family_id`` query parameter.

    Usage:
        @router.get("/{family_id}")
        async def get_family(
            family_id: int,
            membership: FamilyMember = Depends(require_family_membership()),
        ): ...
    """
    async def dependency(
        request: Request,
        current_user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ) -> FamilyMember:
        raw = (
            request.path_params.get("family_id")
            or request.query_params.get("familyId")
            or request.query_params.get("family_id")
        )
        family_id = parse_id(raw, "familyId")
        return await ensure_family_member(session, current_user, family_id, min_role)

    return dependency


# ============================================================================
# Ownership guards (membership derived through the parent family)
# ============================================================================

async def verify_budget_access(session: AsyncSession, user_id: UUID, budget_id: int) -> Optional[Budget]:
    """Return the budget when the user belongs to its family."""
    budget = await session.get(Budget, budget_id)
    if budget is None:
        return None
    if await verify_family_membership(session, user_id, budget.family_id) is None:
        return None
    return budget


async def verify_task_access(session: AsyncSession, user_id: UUID, task_id: int) -> Optional[Task]:
    """Return the task when the user belongs to its family."""
    task = await session.get(Task, task_id)
    if task is None:
        return None
    if await verify_family_membership(session, user_id, task.family_id) is None:
        return None
    return task


async def verify_notification_access(
    session: AsyncSession,
    user_id: UUID,
    notification_id: int,
) -> Optional[Notification]:
    """Return the notification when it belongs to the user."""
    notification = await session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        return None
    return notification


async def require_budget_access(
    budget_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Budget:
    """Dependency: the budget in the path, if the caller's family owns it."""
    parsed = parse_id(budget_id, "budgetId")
    budget = await verify_budget_access(session, current_user.id, parsed)
    if budget is None:
        logger.warning(
            "Budget access denied",
            extra={"user_id": str(current_user.id), "budget_id": parsed},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")
    return budget


async def require_task_access(
    task_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Task:
    """Dependency: the task in the path, if the caller's family owns it."""
    parsed = parse_id(task_id, "taskId")
    task = await verify_task_access(session, current_user.id, parsed)
    if task is None:
        logger.warning(
            "Task access denied",
            extra={"user_id": str(current_user.id), "task_id": parsed},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")
    return task


def pagination_params(
    skip: int = 0,
    limit: int = 100,
) -> dict:
    """
    Dependency for pagination parameters.

    Args:
        skip: Number of records to skip (default: 0)
        limit: Maximum number of records to return (default: 100, max: 1000)

    Returns:
        dict: Pagination parameters
    """
    if skip < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Skip parameter must be non-negative",
        )

    if limit < 1 or limit > 1000:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Limit parameter must be between 1 and 1000",
        )

    return {"skip": skip, "limit": limit}
