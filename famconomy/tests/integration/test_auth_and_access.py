"""
Integration Tests for authentication and the family access guard

Tests:
- Register, login, profile
- 401 / 403 / 400 ordering of the membership guard
- Error envelopes and health endpoints
"""

import pytest
from fastapi import status

from famconomy.api.dependencies import ACCESS_DENIED


# ============================================================================
# Authentication
# ============================================================================

class TestAuthentication:

    @pytest.mark.asyncio
    async def test_register_login_and_profile(self, client):
        response = await client.post(
            "/auth/register",
            json={"email": "Ana@Example.com", "password": "supersecret", "firstName": "Ana", "lastName": "Lopez"},
        )
        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["email"] == "ana@example.com"
        assert body["fullName"] == "Ana Lopez"
        assert body["onboardingCompleted"] is False
        assert "fam_token" in response.cookies

        response = await client.post("/auth/login", json={"email": "ana@example.com", "password": "supersecret"})
        assert response.status_code == status.HTTP_200_OK
        tokens = response.json()
        assert tokens["tokenType"] == "bearer"

        client.cookies.clear()
        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["firstName"] == "Ana"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client, factory):
        await factory.user(email="taken@example.com")

        response = await client.post(
            "/auth/register",
            json={"email": "taken@example.com", "password": "supersecret", "firstName": "B"},
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json() == {"error": "Email already registered"}

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, factory):
        await factory.user(email="c@example.com", password="rightpassword")

        response = await client.post("/auth/login", json={"email": "c@example.com", "password": "wrongpassword"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_auth_cookie_is_accepted(self, client, factory):
        await factory.user(email="cookie@example.com", password="password123")
        await client.post("/auth/login", json={"email": "cookie@example.com", "password": "password123"})

        response = await client.get("/auth/me")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["email"] == "cookie@example.com"

    @pytest.mark.asyncio
    async def test_register_validation_error_envelope(self, client):
        response = await client.post("/auth/register", json={"email": "not-an-email", "password": "x"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "validation_error"


# ============================================================================
# Family Guard
# ============================================================================

class TestFamilyGuard:

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client, household):
        response = await client.get(f"/family/{household.family_id}/members")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "Authentication required"}

    @pytest.mark.asyncio
    async def test_invalid_token_is_403(self, client, household):
        response = await client.get(
            f"/family/{household.family_id}/members",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "Invalid or expired token"}

    @pytest.mark.asyncio
    async def test_non_member_is_403(self, client, household):
        response = await client.get(f"/family/{household.family_id}/members", headers=household.outsider_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": ACCESS_DENIED}

    @pytest.mark.asyncio
    async def test_member_is_allowed(self, client, household):
        response = await client.get(f"/family/{household.family_id}/members", headers=household.child_headers)

        assert response.status_code == status.HTTP_200_OK
        roles = {m["fullName"]: m["role"] for m in response.json()}
        assert roles == {"Pat Tester": "parent", "Kid Tester": "child"}

    @pytest.mark.asyncio
    async def test_bad_family_id_is_400_after_auth(self, client, household):
        unauthenticated = await client.get("/gigs", params={"familyId": "abc"})
        authenticated = await client.get("/gigs", params={"familyId": "abc"}, headers=household.parent_headers)

        assert unauthenticated.status_code == status.HTTP_401_UNAUTHORIZED
        assert authenticated.status_code == status.HTTP_400_BAD_REQUEST
        assert authenticated.json() == {"error": "Invalid familyId parameter"}

    @pytest.mark.asyncio
    async def test_child_cannot_change_roles(self, client, household):
        response = await client.put(
            f"/family/{household.family_id}/members/{household.parent.id}",
            json={"role": "child"},
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_my_families_marks_first_as_active(self, client, household, factory):
        second = await factory.family(household.parent, name="Second")

        response = await client.get("/family", headers=household.parent_headers)

        body = response.json()
        assert [f["id"] for f in body["families"]] == [household.family_id, second.id]
        assert body["activeFamilyId"] == household.family_id


# ============================================================================
# Service Endpoints
# ============================================================================

class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_envelope(self, client):
        response = await client.get("/no-such-route")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Not Found"}

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        response = await client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_delete_data_page_is_public(self, client):
        response = await client.get("/delete-data")

        assert response.status_code == status.HTTP_200_OK
        assert "text/html" in response.headers["content-type"]
