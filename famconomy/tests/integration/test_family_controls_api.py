"""
Integration Tests for the Family Controls (screen time) API

Tests:
- Token lifecycle: authorize, check, validate, revoke, renew
- Coded error envelopes
- Accounts, screen time and stats
- Device policies
- Expired token cleanup
"""

from datetime import timedelta

import pytest
from fastapi import status
from sqlalchemy import select, update

from famconomy.shared.models import AuthorizationToken, FamilyControlsEvent, utcnow


async def authorize(client, household, **fields):
    payload = {
        "userId": str(household.parent.id),
        "targetUserId": str(household.child.id),
        "familyId": household.family_id,
        "scopes": ["screen_time", "app_limits"],
    }
    payload.update(fields)
    response = await client.post("/family-controls/authorize", json=payload, headers=household.parent_headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["data"]["authorizationToken"]


class TestTokenLifecycle:

    @pytest.mark.asyncio
    async def test_authorize_and_check(self, client, household):
        token = await authorize(client, household, expiresInDays=30)

        response = await client.get(f"/family-controls/tokens/{token}", headers=household.parent_headers)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["authorized"] is True
        assert data["grantedScopes"] == ["screen_time", "app_limits"]
        assert data["daysUntilExpiration"] == 30
        assert data["usageCount"] == 0
        assert data["targetUserId"] == str(household.child.id)

    @pytest.mark.asyncio
    async def test_validate_counts_usage(self, client, household):
        token = await authorize(client, household)

        for _ in range(2):
            response = await client.post(f"/family-controls/tokens/{token}/validate", headers=household.parent_headers)
            assert response.status_code == status.HTTP_200_OK
            assert response.json()["data"]["authorized"] is True

        checked = await client.get(f"/family-controls/tokens/{token}", headers=household.parent_headers)
        assert checked.json()["data"]["usageCount"] == 2
        assert checked.json()["data"]["lastUsedAt"] is not None

    @pytest.mark.asyncio
    async def test_revoked_token_fails_validation(self, client, household):
        token = await authorize(client, household)

        revoked = await client.post(
            f"/family-controls/tokens/{token}/revoke",
            json={"revokedByUserId": str(household.parent.id), "reason": "bedtime"},
            headers=household.parent_headers,
        )
        assert revoked.status_code == status.HTTP_200_OK
        assert revoked.json()["data"]["isRevoked"] is True

        response = await client.post(f"/family-controls/tokens/{token}/validate", headers=household.parent_headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["code"] == "TOKEN_REVOKED_001"
        assert body["userFriendlyMessage"] == "Authorization failed"

    @pytest.mark.asyncio
    async def test_expired_token_fails_validation(self, client, household, db_session):
        token = await authorize(client, household)
        await db_session.execute(
            update(AuthorizationToken)
            .where(AuthorizationToken.token == token)
            .values(expires_at=utcnow() - timedelta(hours=1))
        )
        await db_session.commit()

        response = await client.post(f"/family-controls/tokens/{token}/validate", headers=household.parent_headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "TOKEN_EXPIRED_001"

    @pytest.mark.asyncio
    async def test_unknown_token(self, client, household):
        unknown = "f" * 64

        checked = await client.get(f"/family-controls/tokens/{unknown}", headers=household.parent_headers)
        validated = await client.post(f"/family-controls/tokens/{unknown}/validate", headers=household.parent_headers)

        assert checked.status_code == status.HTTP_404_NOT_FOUND
        assert checked.json()["code"] == "TOKEN_CHECK_001"
        assert checked.json()["userFriendlyMessage"] == "Authorization token not found"
        assert validated.status_code == status.HTTP_401_UNAUTHORIZED
        assert validated.json()["code"] == "TOKEN_INVALID_001"

    @pytest.mark.asyncio
    async def test_revoke_requires_revoker(self, client, household):
        token = await authorize(client, household)

        response = await client.post(f"/family-controls/tokens/{token}/revoke", json={}, headers=household.parent_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "VAL_001"

    @pytest.mark.asyncio
    async def test_renew_extends_expiry(self, client, household):
        token = await authorize(client, household, expiresInDays=1)

        response = await client.post(
            f"/family-controls/tokens/{token}/renew",
            json={"expiresInDays": 90},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        checked = await client.get(f"/family-controls/tokens/{token}", headers=household.parent_headers)
        assert checked.json()["data"]["daysUntilExpiration"] == 90
        assert checked.json()["data"]["requiresRenewal"] is False

    @pytest.mark.asyncio
    async def test_authorize_requires_scopes(self, client, household):
        response = await client.post(
            "/family-controls/authorize",
            json={
                "userId": str(household.parent.id),
                "targetUserId": str(household.child.id),
                "familyId": household.family_id,
            },
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "VAL_001"


class TestListingAndCleanup:

    @pytest.mark.asyncio
    async def test_list_excludes_revoked(self, client, household):
        kept = await authorize(client, household)
        dropped = await authorize(client, household)
        await client.post(
            f"/family-controls/tokens/{dropped}/revoke",
            json={"revokedByUserId": str(household.parent.id)},
            headers=household.parent_headers,
        )

        response = await client.get(
            "/family-controls/tokens",
            params={"familyId": household.family_id},
            headers=household.parent_headers,
        )

        data = response.json()["data"]
        assert [t["token"] for t in data["tokens"]] == [kept]
        assert data["total"] == 1
        assert data["hasMore"] is False

    @pytest.mark.asyncio
    async def test_cleanup_deletes_only_expired_unrevoked(self, client, household, db_session):
        expired = await authorize(client, household)
        await authorize(client, household)
        await db_session.execute(
            update(AuthorizationToken)
            .where(AuthorizationToken.token == expired)
            .values(expires_at=utcnow() - timedelta(days=1))
        )
        await db_session.commit()

        response = await client.post("/family-controls/cleanup", headers=household.parent_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"deletedCount": 1}


class TestAccountsAndStats:

    @pytest.mark.asyncio
    async def test_stats_reflect_activity(self, client, household):
        await authorize(client, household)
        recorded = await client.post(
            "/family-controls/screen-time",
            json={
                "userId": str(household.child.id),
                "familyId": household.family_id,
                "date": "2024-06-03T18:30:00",
                "totalMinutesUsed": 95,
                "dailyLimitMinutes": 120,
            },
            headers=household.parent_headers,
        )
        assert recorded.status_code == status.HTTP_201_CREATED
        assert recorded.json()["data"]["date"] == "2024-06-03"

        response = await client.get(f"/family-controls/stats/{household.family_id}", headers=household.parent_headers)

        assert response.json()["data"] == {
            "activeTokens": 1,
            "totalTokens": 1,
            "activeAccounts": 1,
            "screenTimeRecords": 1,
        }

    @pytest.mark.asyncio
    async def test_account_is_created_once(self, client, household):
        payload = {"userId": str(household.child.id), "familyId": household.family_id}

        first = await client.post("/family-controls/accounts", json=payload, headers=household.parent_headers)
        second = await client.post("/family-controls/accounts", json=payload, headers=household.parent_headers)

        assert first.status_code == status.HTTP_200_OK
        assert first.json()["data"]["id"] == second.json()["data"]["id"]
        assert first.json()["data"]["isAuthorized"] is False

    @pytest.mark.asyncio
    async def test_stats_require_membership(self, client, household):
        response = await client.get(f"/family-controls/stats/{household.family_id}", headers=household.outsider_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_screen_time_is_logged(self, client, household, db_session):
        recorded = await client.post(
            "/family-controls/screen-time",
            json={
                "userId": str(household.child.id),
                "familyId": household.family_id,
                "date": "2024-06-03T23:30:00-02:00",
                "totalMinutesUsed": 45,
                "dailyLimitMinutes": 60,
            },
            headers=household.parent_headers,
        )
        assert recorded.status_code == status.HTTP_201_CREATED
        assert recorded.json()["data"]["date"] == "2024-06-04"

        result = await db_session.execute(
            select(FamilyControlsEvent).where(FamilyControlsEvent.event_type == "screen_time_recorded")
        )
        events = result.scalars().all()

        assert len(events) == 1
        assert events[0].family_id == household.family_id
        assert events[0].user_id == household.child.id
        assert events[0].details == {"date": "2024-06-04", "totalMinutesUsed": 45, "dailyLimitMinutes": 60}


class TestDevicePolicies:

    @pytest.mark.asyncio
    async def test_upsert_and_get(self, client, household):
        payload = {
            "familyId": household.family_id,
            "deviceId": "ipad-kid",
            "appliedByUserId": str(household.parent.id),
            "blockedAppBundleIds": ["com.example.game"],
            "contentRestrictions": {"web": "limit_adult"},
            "siriRestricted": True,
        }
        created = await client.post("/family-controls/policies", json=payload, headers=household.parent_headers)
        assert created.status_code == status.HTTP_200_OK
        assert created.json()["success"] is True

        payload["blockedAppBundleIds"] = []
        updated = await client.post("/family-controls/policies", json=payload, headers=household.parent_headers)
        assert updated.json()["data"]["id"] == created.json()["data"]["id"]

        response = await client.get(
            f"/family-controls/policies/{household.family_id}/ipad-kid", headers=household.child_headers
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["deviceId"] == "ipad-kid"
        assert data["blockedAppBundleIds"] == []
        assert data["contentRestrictions"] == {"web": "limit_adult"}
        assert data["siriRestricted"] is True
        assert data["purchasesRestricted"] is False

    @pytest.mark.asyncio
    async def test_unknown_device(self, client, household):
        response = await client.get(
            f"/family-controls/policies/{household.family_id}/missing", headers=household.parent_headers
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "POLICY_NOT_FOUND"
        assert response.json()["message"] == "Device policy not found"

    @pytest.mark.asyncio
    async def test_upsert_requires_device(self, client, household):
        response = await client.post(
            "/family-controls/policies",
            json={"familyId": household.family_id, "appliedByUserId": str(household.parent.id)},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "VAL_001"

    @pytest.mark.asyncio
    async def test_outsider_cannot_apply(self, client, household):
        response = await client.post(
            "/family-controls/policies",
            json={
                "familyId": household.family_id,
                "deviceId": "ipad-kid",
                "appliedByUserId": str(household.outsider.id),
            },
            headers=household.outsider_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
