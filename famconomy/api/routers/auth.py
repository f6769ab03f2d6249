"""
Authentication Router
Handles user registration, login, token refresh, logout and the profile.
"""

import logging
from datetime import datetime, timedelta
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import get_settings
from famconomy.api.schemas import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    TokenResponse,
    UserResponse,
    UserUpdate,
    MessageResponse,
)
from famconomy.api.dependencies import get_current_user
from famconomy.api.services.invitation_service import SESSION_KEY, complete_session_invitation
from famconomy.shared.database import get_session
from famconomy.shared.models import User, UserSession, utcnow

settings = get_settings()
logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

router = APIRouter()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str) -> tuple[str, datetime]:
    """
    Create JWT access token.

    Returns:
        tuple: (token, expiration_time)
    """
    now = utcnow()
    expire = now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": user_id,
        "exp": expire,
        "iat": now,
        "type": "access",
    }

    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expire


def create_refresh_token(user_id: str) -> tuple[str, datetime]:
    """
    Create JWT refresh token.

    Returns:
        tuple: (token, expiration_time)
    """
    now = utcnow()
    expire = now + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)

    payload = {
        "sub": user_id,
        "exp": expire,
        "iat": now,
        "type": "refresh",
        "jti": str(uuid4()),  # Token ID for revocation
    }

    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expire


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


async def issue_tokens(
    session: AsyncSession,
    user: User,
    request: Request,
    response: Response,
) -> TokenResponse:
    """Create an access/refresh pair, store the refresh token and set the cookie."""
    access_token, _ = create_access_token(str(user.id))
    refresh_token, refresh_expire = create_refresh_token(str(user.id))

    session.add(
        UserSession(
            user_id=user.id,
            refresh_token=refresh_token,
            expires_at=refresh_expire,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.client.host if request.client else None,
        )
    )
    user.last_login_at = utcnow()
    await session.commit()

    set_auth_cookie(response, access_token)

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
    description="Create a new user account; completes an invitation accepted before signup",
)
async def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> User:
    """Register a new user."""
    email = payload.email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"New user registered: {user.id}")

    family_id = await complete_session_invitation(session, request.session.get(SESSION_KEY), user)
    if family_id is not None:
        request.session.pop(SESSION_KEY, None)

    access_token, _ = create_access_token(str(user.id))
    set_auth_cookie(response, access_token)

    return user


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User login",
    description="Authenticate user, return JWT tokens and set the auth cookie",
)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Authenticate user and return JWT tokens."""
    result = await session.execute(
        select(User).where(
            User.email == payload.email.strip().lower(),
            User.deleted_at.is_(None),
        )
    )
    user = result.scalar_one_or_none()

    if not user or not user.password_hash or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    tokens = await issue_tokens(session, user, request, response)
    logger.info(f"User logged in: {user.id}")
    return tokens


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
    description="Get a new access token using refresh token",
)
async def refresh_token(
    payload: RefreshTokenRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Rotate the refresh token and issue a new access token."""
    try:
        claims = jwt.decode(
            payload.refresh_token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if claims.get("type") != "refresh" or not claims.get("sub") or not claims.get("jti"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    result = await session.execute(
        select(UserSession).where(
            UserSession.refresh_token == payload.refresh_token,
            UserSession.revoked_at.is_(None),
        )
    )
    user_session = result.scalar_one_or_none()

    if not user_session or user_session.expires_at < utcnow():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    user = await session.get(User, user_session.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    # Revoke old refresh token; issue_tokens stores the new one
    user_session.revoked_at = utcnow()
    tokens = await issue_tokens(session, user, request, response)

    logger.info(f"Token refreshed for user: {user.id}")
    return tokens


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="User logout",
    description="Revoke refresh token and clear the auth cookie",
)
async def logout(
    payload: RefreshTokenRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Logout user by revoking refresh token."""
    result = await session.execute(
        select(UserSession).where(
            UserSession.refresh_token == payload.refresh_token,
            UserSession.user_id == current_user.id,
            UserSession.revoked_at.is_(None),
        )
    )
    user_session = result.scalar_one_or_none()

    if user_session:
        user_session.revoked_at = utcnow()
        await session.commit()

    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    logger.info(f"User logged out: {current_user.id}")

    return MessageResponse(message="Logged out successfully", success=True)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    description="Get authenticated user profile",
)
async def get_current_user_profile(
    current_user: User = Depends(get_current_user),
) -> User:
    return current_user


@router.put(
    "/me",
    response_model=UserResponse,
    summary="Update current user",
)
async def update_current_user_profile(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> User:
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)

    await session.commit()
    await session.refresh(current_user)
    return current_user
