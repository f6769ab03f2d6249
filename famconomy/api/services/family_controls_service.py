"""
Family Controls Service
Authorization-token lifecycle, screen-time accounts and records, and device
policies for the iOS Family Controls integration.

Tokens are 64 hex characters with a fixed expiry and an explicit revoked
state. Every mutation is written to the ``family_controls_events`` ledger.
"""

import logging
import math
import secrets
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import Settings, get_settings
from famconomy.api.errors import ApiError
from famconomy.shared.models import (
    AuthorizationToken,
    DeviceControlPolicy,
    FamilyControlsAccount,
    FamilyControlsEvent,
    ScreenTimeRecord,
    utcnow,
)

logger = logging.getLogger(__name__)


class FamilyControlsError(ApiError):
    """Family Controls failure carrying a stable error code."""

    def __init__(self, code: str, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code, code, message)


def generate_token() -> str:
    """32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


def _as_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return utcnow().date()


class FamilyControlsService:
    """
    Token, account and screen-time operations over one database session.

    Methods commit their own changes; each call is one unit of work.
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()

    # ========================================================================
    # Authorization tokens
    # ========================================================================

    async def create_authorization_token(
        self,
        user_id: UUID,
        target_user_id: UUID,
        family_id: int,
        scopes: List[str],
        expires_in_days: Optional[int] = None,
    ) -> Tuple[str, datetime]:
        """
        Grant ``user_id`` the given scopes over ``target_user_id``'s devices.

        The target's Family Controls account is created if needed and marked
        authorized.

        Returns:
            Tuple[str, datetime]: The token and its expiry
        """
        days = expires_in_days or self.settings.FAMILY_CONTROLS_TOKEN_EXPIRE_DAYS
        account = await self._get_or_create_account(target_user_id, family_id)
        account.is_authorized = True

        token = generate_token()
        expires_at = utcnow() + timedelta(days=days)
        self.session.add(
            AuthorizationToken(
                token=token,
                user_id=user_id,
                target_user_id=target_user_id,
                family_id=family_id,
                account_id=account.id,
                granted_scopes=list(scopes),
                expires_at=expires_at,
            )
        )
        self._log_event(
            family_id,
            user_id,
            "token_created",
            {"targetUserId": str(target_user_id), "scopes": list(scopes), "expiresInDays": days},
        )
        await self.session.commit()

        logger.info(f"Family Controls token granted in family {family_id}")
        return token, expires_at

    async def _find_token(self, token: str) -> Optional[AuthorizationToken]:
        result = await self.session.execute(
            select(AuthorizationToken).where(AuthorizationToken.token == token)
        )
        return result.scalar_one_or_none()

    async def check_token_status(self, token: str) -> Dict[str, Any]:
        """
        Describe a token without consuming it.

        Raises:
            FamilyControlsError: TOKEN_CHECK_001 when the token is unknown
        """
        record = await self._find_token(token)
        if record is None:
            raise FamilyControlsError(
                "TOKEN_CHECK_001",
                "Authorization token not found",
                status.HTTP_404_NOT_FOUND,
            )

        now = utcnow()
        is_expired = record.expires_at < now
        seconds_left = (record.expires_at - now).total_seconds()
        days_left = max(0, math.ceil(seconds_left / 86400))

        return {
            "authorized": not record.is_revoked and not is_expired,
            "granted_scopes": list(record.granted_scopes or []),
            "expires_at": record.expires_at,
            "is_expired": is_expired,
            "is_revoked": record.is_revoked,
            "requires_renewal": days_left <= self.settings.FAMILY_CONTROLS_RENEWAL_WINDOW_DAYS,
            "days_until_expiration": days_left,
            "last_used_at": record.last_used_at,
            "usage_count": record.usage_count,
            "target_user_id": record.target_user_id,
            "granted_by_user_id": record.user_id,
            "granted_at": record.created_at,
        }

    async def validate_token(self, token: str) -> AuthorizationToken:
        """
        Consume a token: check it and record the use.

        Raises:
            FamilyControlsError: TOKEN_INVALID_001, TOKEN_REVOKED_001 or
                TOKEN_EXPIRED_001, all 401
        """
        record = await self._find_token(token)
        if record is None:
            raise FamilyControlsError(
                "TOKEN_INVALID_001",
                "Invalid authorization token",
                status.HTTP_401_UNAUTHORIZED,
            )
        if record.is_revoked:
            raise FamilyControlsError(
                "TOKEN_REVOKED_001",
                "Authorization token has been revoked",
                status.HTTP_401_UNAUTHORIZED,
            )

        now = utcnow()
        if record.expires_at < now:
            raise FamilyControlsError(
                "TOKEN_EXPIRED_001",
                "Authorization token has expired",
                status.HTTP_401_UNAUTHORIZED,
            )

        record.last_used_at = now
        record.usage_count = (record.usage_count or 0) + 1
        await self.session.commit()
        return record

    async def revoke_token(
        self,
        token: str,
        revoked_by_user_id: UUID,
        reason: Optional[str] = None,
    ) -> AuthorizationToken:
        record = await self._find_token(token)
        if record is None:
            raise FamilyControlsError(
                "TOKEN_REVOKE_001",
                "Authorization token not found",
                status.HTTP_404_NOT_FOUND,
            )

        record.is_revoked = True
        record.revoked_at = utcnow()
        record.revoked_by_user_id = revoked_by_user_id
        record.revocation_reason = reason
        self._log_event(
            record.family_id,
            revoked_by_user_id,
            "token_revoked",
            {"tokenId": record.id, "reason": reason},
        )
        await self.session.commit()

        logger.info(f"Family Controls token {record.id} revoked")
        return record

    async def renew_token(self, token: str, expires_in_days: Optional[int] = None) -> AuthorizationToken:
        record = await self._find_token(token)
        if record is None:
            raise FamilyControlsError(
                "TOKEN_RENEW_001",
                "Authorization token not found",
                status.HTTP_404_NOT_FOUND,
            )

        days = expires_in_days or self.settings.FAMILY_CONTROLS_TOKEN_EXPIRE_DAYS
        record.expires_at = utcnow() + timedelta(days=days)
        self._log_event(record.family_id, record.user_id, "token_renewed", {"tokenId": record.id, "days": days})
        await self.session.commit()
        return record

    async def list_tokens(
        self,
        user_id: Optional[UUID] = None,
        target_user_id: Optional[UUID] = None,
        family_id: Optional[int] = None,
        include_expired: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Non-revoked tokens matching the filters, newest first."""
        conditions = [AuthorizationToken.is_revoked.is_(False)]
        if user_id is not None:
            conditions.append(AuthorizationToken.user_id == user_id)
        if target_user_id is not None:
            conditions.append(AuthorizationToken.target_user_id == target_user_id)
        if family_id is not None:
            conditions.append(AuthorizationToken.family_id == family_id)
        if not include_expired:
            conditions.append(AuthorizationToken.expires_at >= utcnow())

        total = (
            await self.session.execute(
                select(func.count(AuthorizationToken.id)).where(and_(*conditions))
            )
        ).scalar_one()

        result = await self.session.execute(
            select(AuthorizationToken)
            .where(and_(*conditions))
            .order_by(AuthorizationToken.created_at.desc(), AuthorizationToken.id.desc())
            .offset(offset)
            .limit(limit)
        )
        tokens = list(result.scalars().all())

        return {
            "tokens": tokens,
            "total": total,
            "has_more": offset + len(tokens) < total,
        }

    async def cleanup_expired_tokens(self) -> int:
        """Delete expired tokens that were never revoked; revoked ones stay for audit."""
        result = await self.session.execute(
            delete(AuthorizationToken).where(
                AuthorizationToken.expires_at < utcnow(),
                AuthorizationToken.is_revoked.is_(False),
            )
        )
        await self.session.commit()

        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Removed {deleted} expired Family Controls tokens")
        return deleted

    # ========================================================================
    # Accounts
    # ========================================================================

    async def _get_or_create_account(self, user_id: UUID, family_id: int) -> FamilyControlsAccount:
        result = await self.session.execute(
            select(FamilyControlsAccount).where(
                FamilyControlsAccount.user_id == user_id,
                FamilyControlsAccount.family_id == family_id,
            )
        )
        account = result.scalar_one_or_none()
        if account is None:
            account = FamilyControlsAccount(user_id=user_id, family_id=family_id, meta_data={})
            self.session.add(account)
            await self.session.flush()
            self._log_event(family_id, user_id, "account_created", {})
        return account

    async def get_or_create_account(self, user_id: UUID, family_id: int) -> FamilyControlsAccount:
        account = await self._get_or_create_account(user_id, family_id)
        await self.session.commit()
        return account

    async def update_account(
        self,
        user_id: UUID,
        family_id: int,
        updates: Dict[str, Any],
    ) -> FamilyControlsAccount:
        """Apply a partial update; ``metadata`` is merged into the stored dict."""
        account = await self._get_or_create_account(user_id, family_id)

        for field in ("is_authorized", "daily_screen_time_minutes", "screen_time_limit_minutes"):
            if field in updates:
                setattr(account, field, updates[field])
        if updates.get("metadata") is not None:
            account.meta_data = {**(account.meta_data or {}), **updates["metadata"]}

        account.last_sync_at = utcnow()
        self._log_event(family_id, user_id, "account_updated", {"fields": sorted(updates)})
        await self.session.commit()
        await self.session.refresh(account)
        return account

    # ========================================================================
    # Screen time
    # ========================================================================

    async def record_screen_time(
        self,
        user_id: UUID,
        family_id: int,
        day: Any,
        total_minutes_used: int,
        daily_limit_minutes: Optional[int] = None,
        category_breakdown: Optional[Dict[str, Any]] = None,
        app_breakdown: Optional[Dict[str, Any]] = None,
        warnings: Optional[List[Any]] = None,
    ) -> ScreenTimeRecord:
        """Insert or replace the usage summary for one calendar day."""
        record_day = _as_day(day)
        result = await self.session.execute(
            select(ScreenTimeRecord).where(
                ScreenTimeRecord.user_id == user_id,
                ScreenTimeRecord.family_id == family_id,
                ScreenTimeRecord.record_date == record_day,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = ScreenTimeRecord(user_id=user_id, family_id=family_id, record_date=record_day)
            self.session.add(record)

        record.total_minutes_used = total_minutes_used
        record.daily_limit_minutes = daily_limit_minutes
        record.category_breakdown = category_breakdown or {}
        record.app_breakdown = app_breakdown or {}
        record.warnings = warnings or []

        account = await self._get_or_create_account(user_id, family_id)
        account.daily_screen_time_minutes = total_minutes_used
        account.last_sync_at = utcnow()

        self._log_event(
            family_id,
            user_id,
            "screen_time_recorded",
            {
                "date": record_day.isoformat(),
                "totalMinutesUsed": total_minutes_used,
                "dailyLimitMinutes": daily_limit_minutes,
            },
        )
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def get_screen_time_history(
        self,
        user_id: UUID,
        family_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[ScreenTimeRecord]:
        query = select(ScreenTimeRecord).where(
            ScreenTimeRecord.user_id == user_id,
            ScreenTimeRecord.family_id == family_id,
        )
        if start is not None:
            query = query.where(ScreenTimeRecord.record_date >= start)
        if end is not None:
            query = query.where(ScreenTimeRecord.record_date <= end)

        result = await self.session.execute(query.order_by(ScreenTimeRecord.record_date.asc()))
        return list(result.scalars().all())

    # ========================================================================
    # Device policies
    # ========================================================================

    async def upsert_device_policy(
        self,
        family_id: int,
        device_id: str,
        applied_by_user_id: UUID,
        blocked_app_bundle_ids: Optional[List[str]] = None,
        content_restrictions: Optional[Dict[str, Any]] = None,
        siri_restricted: bool = False,
        purchases_restricted: bool = False,
    ) -> DeviceControlPolicy:
        policy = await self.get_device_policy(family_id, device_id)
        if policy is None:
            policy = DeviceControlPolicy(family_id=family_id, device_id=device_id)
            self.session.add(policy)

        policy.applied_by_user_id = applied_by_user_id
        policy.blocked_app_bundle_ids = list(blocked_app_bundle_ids or [])
        policy.content_restrictions = dict(content_restrictions or {})
        policy.siri_restricted = siri_restricted
        policy.purchases_restricted = purchases_restricted

        self._log_event(family_id, applied_by_user_id, "policy_applied", {"deviceId": device_id})
        await self.session.commit()
        await self.session.refresh(policy)
        return policy

    async def get_device_policy(self, family_id: int, device_id: str) -> Optional[DeviceControlPolicy]:
        result = await self.session.execute(
            select(DeviceControlPolicy).where(
                DeviceControlPolicy.family_id == family_id,
                DeviceControlPolicy.device_id == device_id,
            )
        )
        return result.scalar_one_or_none()

    # ========================================================================
    # Stats & event ledger
    # ========================================================================

    async def get_family_stats(self, family_id: int) -> Dict[str, int]:
        now = utcnow()

        async def count(query) -> int:
            return int((await self.session.execute(query)).scalar_one())

        return {
            "active_tokens": await count(
                select(func.count(AuthorizationToken.id)).where(
                    AuthorizationToken.family_id == family_id,
                    AuthorizationToken.is_revoked.is_(False),
                    AuthorizationToken.expires_at >= now,
                )
            ),
            "total_tokens": await count(
                select(func.count(AuthorizationToken.id)).where(AuthorizationToken.family_id == family_id)
            ),
            "active_accounts": await count(
                select(func.count(FamilyControlsAccount.id)).where(
                    FamilyControlsAccount.family_id == family_id,
                    FamilyControlsAccount.is_authorized.is_(True),
                )
            ),
            "screen_time_records": await count(
                select(func.count(ScreenTimeRecord.id)).where(ScreenTimeRecord.family_id == family_id)
            ),
        }

    def _log_event(
        self,
        family_id: int,
        user_id: Optional[UUID],
        event_type: str,
        details: Dict[str, Any],
    ) -> None:
        self.session.add(
            FamilyControlsEvent(
                family_id=family_id,
                user_id=user_id,
                event_type=event_type,
                details=details,
            )
        )
