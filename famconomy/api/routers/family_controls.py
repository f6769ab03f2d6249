"""
Family Controls Router
Screen-time authorization tokens, accounts, usage records and device
policies for the iOS Family Controls integration.

Successful responses use the ``{"success": true, "data": ...}`` envelope.
Failures carry a stable ``code``; anything unexpected is reported as a 500
with the endpoint's own code.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import Settings, get_settings
from famconomy.api.dependencies import ensure_family_member, get_current_user
from famconomy.api.errors import ApiError, validation_error
from famconomy.api.schemas import (
    AccountRequest,
    AccountUpdateRequest,
    AuthorizationTokenResponse,
    AuthorizeRequest,
    AuthorizeResponse,
    CleanupResponse,
    DevicePolicyRequest,
    DevicePolicyResponse,
    FamilyControlsAccountResponse,
    FamilyControlsStatsResponse,
    RenewRequest,
    RevokeRequest,
    ScreenTimeRecordResponse,
    ScreenTimeRequest,
    SuccessResponse,
    TokenListResponse,
    TokenStatusResponse,
    TokenValidationResponse,
)
from famconomy.api.services.family_controls_service import FamilyControlsService
from famconomy.shared.database import get_session
from famconomy.shared.models import User, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


@contextmanager
def error_code(code: str, message: str, user_friendly_message: Optional[str] = None) -> Iterator[None]:
    """
    Map failures inside the block to the endpoint's error envelope.

    Coded errors and HTTP errors pass through (gaining the friendly message
    when given); anything else becomes a 500 with ``code``.
    """
    try:
        yield
    except ApiError as e:
        if user_friendly_message and e.user_friendly_message is None:
            e.user_friendly_message = user_friendly_message
        raise
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"{message}: {e}", exc_info=True)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, code, message, error=str(e)) from e


def get_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> FamilyControlsService:
    return FamilyControlsService(session, settings)


# ============================================================================
# Authorization tokens
# ============================================================================

@router.post(
    "/authorize",
    response_model=SuccessResponse[AuthorizeResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create authorization token",
)
async def authorize(
    payload: AuthorizeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    if not (payload.user_id and payload.target_user_id and payload.family_id and payload.scopes):
        raise validation_error("Missing required parameters: userId, targetUserId, familyId, scopes[]")

    await ensure_family_member(session, current_user, payload.family_id)

    with error_code("AUTH_001", "Failed to create authorization token"):
        token, expires_at = await service.create_authorization_token(
            user_id=payload.user_id,
            target_user_id=payload.target_user_id,
            family_id=payload.family_id,
            scopes=payload.scopes,
            expires_in_days=payload.expires_in_days,
        )

    return {
        "data": {
            "authorization_token": token,
            "expires_at": expires_at,
            "granted_scopes": payload.scopes,
            "timestamp": utcnow(),
        }
    }


@router.get(
    "/tokens",
    response_model=SuccessResponse[TokenListResponse],
    summary="List authorization tokens",
)
async def list_tokens(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    target_user_id: Optional[UUID] = Query(None, alias="targetUserId"),
    family_id: Optional[int] = Query(None, alias="familyId"),
    include_expired: bool = Query(False, alias="includeExpired"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    if family_id is not None:
        await ensure_family_member(session, current_user, family_id)

    with error_code("LIST_001", "Failed to list tokens"):
        result = await service.list_tokens(
            user_id=user_id,
            target_user_id=target_user_id,
            family_id=family_id,
            include_expired=include_expired,
            limit=limit,
            offset=offset,
        )
    return {"data": result}


@router.get(
    "/tokens/{token}",
    response_model=SuccessResponse[TokenStatusResponse],
    summary="Check token status",
)
async def check_token_status(
    token: str,
    current_user: User = Depends(get_current_user),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    with error_code("CHECK_001", "Failed to check token status", "Authorization token not found"):
        result = await service.check_token_status(token)
    return {"data": result}


@router.post(
    "/tokens/{token}/validate",
    response_model=SuccessResponse[TokenValidationResponse],
    summary="Validate and use token",
)
async def validate_token(
    token: str,
    current_user: User = Depends(get_current_user),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    with error_code("VALIDATE_001", "Failed to validate token", "Authorization failed"):
        await service.validate_token(token)
    return {"data": {"authorized": True, "timestamp": utcnow()}}


@router.post(
    "/tokens/{token}/revoke",
    response_model=SuccessResponse[AuthorizationTokenResponse],
    summary="Revoke token",
)
async def revoke_token(
    token: str,
    payload: RevokeRequest,
    current_user: User = Depends(get_current_user),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    if payload.revoked_by_user_id is None:
        raise validation_error("Token and revokedByUserId required")

    with error_code("REVOKE_001", "Failed to revoke token"):
        record = await service.revoke_token(token, payload.revoked_by_user_id, payload.reason)
    return {"data": record}


@router.post(
    "/tokens/{token}/renew",
    response_model=SuccessResponse[AuthorizationTokenResponse],
    summary="Renew token",
)
async def renew_token(
    token: str,
    payload: Optional[RenewRequest] = None,
    current_user: User = Depends(get_current_user),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    expires_in_days = payload.expires_in_days if payload else None
    with error_code("RENEW_001", "Failed to renew token"):
        record = await service.renew_token(token, expires_in_days)
    return {"data": record}


# ============================================================================
# Accounts & screen time
# ============================================================================

@router.post(
    "/accounts",
    response_model=SuccessResponse[FamilyControlsAccountResponse],
    summary="Get or create account",
)
async def get_or_create_account(
    payload: AccountRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    if payload.user_id is None or payload.family_id is None:
        raise validation_error("userId and familyId required")
    await ensure_family_member(session, current_user, payload.family_id)

    with error_code("ACCOUNT_001", "Failed to get or create account"):
        account = await service.get_or_create_account(payload.user_id, payload.family_id)
    return {"data": account}


@router.put(
    "/accounts/{user_id}/{family_id}",
    response_model=SuccessResponse[FamilyControlsAccountResponse],
    summary="Update account",
)
async def update_account(
    user_id: UUID,
    family_id: int,
    payload: AccountUpdateRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    await ensure_family_member(session, current_user, family_id)

    with error_code("ACCOUNT_002", "Failed to update account"):
        account = await service.update_account(user_id, family_id, payload.model_dump(exclude_unset=True))
    return {"data": account}


@router.post(
    "/screen-time",
    response_model=SuccessResponse[ScreenTimeRecordResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Record screen time",
)
async def record_screen_time(
    payload: ScreenTimeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    if (
        payload.user_id is None
        or payload.family_id is None
        or payload.date is None
        or payload.total_minutes_used is None
    ):
        raise validation_error("userId, familyId, date, totalMinutesUsed required")
    await ensure_family_member(session, current_user, payload.family_id)

    with error_code("SCREEN_TIME_001", "Failed to record screen time"):
        record = await service.record_screen_time(
            user_id=payload.user_id,
            family_id=payload.family_id,
            day=payload.date,
            total_minutes_used=payload.total_minutes_used,
            daily_limit_minutes=payload.daily_limit_minutes,
            category_breakdown=payload.category_breakdown,
            app_breakdown=payload.app_breakdown,
            warnings=payload.warnings,
        )
    return {"data": record}


@router.get(
    "/screen-time/{user_id}/{family_id}",
    response_model=SuccessResponse[list[ScreenTimeRecordResponse]],
    summary="Screen time history",
)
async def screen_time_history(
    user_id: UUID,
    family_id: int,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    await ensure_family_member(session, current_user, family_id)

    with error_code("SCREEN_TIME_002", "Failed to get screen time history"):
        records = await service.get_screen_time_history(user_id, family_id, start_date, end_date)
    return {"data": records}


# ============================================================================
# Stats & maintenance
# ============================================================================

@router.get(
    "/stats/{family_id}",
    response_model=SuccessResponse[FamilyControlsStatsResponse],
    summary="Family Controls statistics",
)
async def family_stats(
    family_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    await ensure_family_member(session, current_user, family_id)

    with error_code("STATS_001", "Failed to get statistics"):
        stats = await service.get_family_stats(family_id)
    return {"data": stats}


@router.post(
    "/cleanup",
    response_model=SuccessResponse[CleanupResponse],
    summary="Delete expired tokens",
)
async def cleanup(
    current_user: User = Depends(get_current_user),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    with error_code("CLEANUP_001", "Failed to cleanup expired tokens"):
        deleted = await service.cleanup_expired_tokens()
    return {"data": {"deleted_count": deleted}}


# ============================================================================
# Device policies
# ============================================================================

@router.post(
    "/policies",
    response_model=SuccessResponse[DevicePolicyResponse],
    summary="Create or update device policy",
)
async def upsert_policy(
    payload: DevicePolicyRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    if payload.family_id is None or not payload.device_id or payload.applied_by_user_id is None:
        raise validation_error("familyId, deviceId, appliedByUserId required")
    await ensure_family_member(session, current_user, payload.family_id)

    with error_code("POLICY_001", "Failed to create/update device policy"):
        policy = await service.upsert_device_policy(
            family_id=payload.family_id,
            device_id=payload.device_id,
            applied_by_user_id=payload.applied_by_user_id,
            blocked_app_bundle_ids=payload.blocked_app_bundle_ids,
            content_restrictions=payload.content_restrictions,
            siri_restricted=payload.siri_restricted,
            purchases_restricted=payload.purchases_restricted,
        )
    return {"data": policy}


@router.get(
    "/policies/{family_id}/{device_id}",
    response_model=SuccessResponse[DevicePolicyResponse],
    summary="Get device policy",
)
async def get_policy(
    family_id: int,
    device_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    service: FamilyControlsService = Depends(get_service),
) -> dict:
    await ensure_family_member(session, current_user, family_id)

    with error_code("POLICY_002", "Failed to get device policy"):
        policy = await service.get_device_policy(family_id, device_id)
    if policy is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "POLICY_NOT_FOUND", "Device policy not found")
    return {"data": policy}
