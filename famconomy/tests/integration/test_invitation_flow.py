"""
Integration Tests for the invitation lifecycle

Tests:
- Issuing and reissuing invitations
- Accepting as a signed-in user
- Accepting before signup (session hand-off to registration)
- Declining and expiry
"""

import re
from datetime import datetime, timedelta

import pytest
from fastapi import status
from sqlalchemy import select

from famconomy.shared.models import FamilyMember, FamilyRole, Invitation, Notification, utcnow

INVALID_TOKEN = "Invalid or expired invitation token."


async def invite(client, household, email, role="parent"):
    response = await client.post(
        "/invitations",
        json={"familyId": household.family_id, "email": email, "role": role},
        headers=household.parent_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestIssuing:

    @pytest.mark.asyncio
    async def test_token_and_expiry(self, client, household):
        invitation = await invite(client, household, "New.Person@Example.com")

        assert re.fullmatch(r"[0-9a-f]{64}", invitation["token"])
        assert invitation["email"] == "new.person@example.com"
        expires_at = datetime.fromisoformat(invitation["expiresAt"])
        assert timedelta(days=6, hours=23) < expires_at - utcnow() <= timedelta(days=7)

    @pytest.mark.asyncio
    async def test_reinvite_replaces_token(self, client, household):
        first = await invite(client, household, "again@example.com")
        second = await invite(client, household, "again@example.com", role="relative")

        assert second["id"] == first["id"]
        assert second["token"] != first["token"]
        assert second["role"] == "relative"

        stale = await client.get("/invitations/details", params={"token": first["token"]})
        assert stale.status_code == status.HTTP_400_BAD_REQUEST
        assert stale.json() == {"error": INVALID_TOKEN}

    @pytest.mark.asyncio
    async def test_details_are_public(self, client, household):
        invitation = await invite(client, household, "viewer@example.com")

        response = await client.get("/api/invitations/details", params={"token": invitation["token"]})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["familyName"] == "Rivera"
        assert body["inviterName"] == "Pat Tester"
        assert body["familyId"] == household.family_id

    @pytest.mark.asyncio
    async def test_existing_user_is_notified(self, client, household, factory, realtime, db_session):
        invitee = await factory.user("Ines", email="ines@example.com")

        await invite(client, household, "ines@example.com")

        notifications = (
            await db_session.execute(select(Notification).where(Notification.user_id == invitee.id))
        ).scalars().all()
        assert len(notifications) == 1
        assert notifications[0].message == "You have been invited to join the Rivera family."
        assert [(uid, event) for uid, event, _ in realtime.user_events] == [(invitee.id, "newNotification")]

    @pytest.mark.asyncio
    async def test_child_cannot_invite(self, client, household):
        response = await client.post(
            "/invitations",
            json={"familyId": household.family_id, "email": "x@example.com"},
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestAccepting:

    @pytest.mark.asyncio
    async def test_signed_in_accept_creates_membership(self, client, household, factory, headers_for, db_session):
        invitee = await factory.user(email="joiner@example.com")
        invitation = await invite(client, household, "joiner@example.com", role="guardian")

        response = await client.post(
            "/invitations/accept",
            json={"token": invitation["token"]},
            headers=headers_for(invitee),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["familyId"] == household.family_id
        assert response.json()["requiresSignup"] is False

        membership = (
            await db_session.execute(select(FamilyMember).where(FamilyMember.user_id == invitee.id))
        ).scalar_one()
        assert membership.role == FamilyRole.GUARDIAN
        assert (await db_session.execute(select(Invitation))).scalars().all() == []

        again = await client.post(
            "/invitations/accept",
            json={"token": invitation["token"]},
            headers=headers_for(invitee),
        )
        assert again.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_accept_before_signup(self, client, household, headers_for):
        invitation = await invite(client, household, "later@example.com")

        response = await client.post("/invitations/accept", json={"token": invitation["token"]})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["requiresSignup"] is True

        response = await client.post(
            "/auth/register",
            json={"email": "later@example.com", "password": "password123", "firstName": "Lee"},
        )
        assert response.status_code == status.HTTP_201_CREATED

        client.cookies.clear()
        login = await client.post("/auth/login", json={"email": "later@example.com", "password": "password123"})
        families = await client.get(
            "/family",
            headers={"Authorization": f"Bearer {login.json()['accessToken']}"},
        )
        assert [f["id"] for f in families.json()["families"]] == [household.family_id]

    @pytest.mark.asyncio
    async def test_signup_with_other_email_does_not_join(self, client, household):
        invitation = await invite(client, household, "intended@example.com")
        await client.post("/invitations/accept", json={"token": invitation["token"]})

        await client.post(
            "/auth/register",
            json={"email": "someone.else@example.com", "password": "password123", "firstName": "Sam"},
        )

        client.cookies.clear()
        login = await client.post("/auth/login", json={"email": "someone.else@example.com", "password": "password123"})
        families = await client.get(
            "/family",
            headers={"Authorization": f"Bearer {login.json()['accessToken']}"},
        )
        assert families.json()["families"] == []

    @pytest.mark.asyncio
    async def test_expired_invitation_is_rejected(self, client, household, factory):
        await factory.add(
            Invitation(
                family_id=household.family_id,
                email="old@example.com",
                token="a" * 64,
                role=FamilyRole.PARENT,
                invited_by_user_id=household.parent.id,
                expires_at=utcnow() - timedelta(minutes=1),
            )
        )

        details = await client.get("/invitations/details", params={"token": "a" * 64})
        accept = await client.post("/invitations/accept", json={"token": "a" * 64})

        assert details.status_code == status.HTTP_400_BAD_REQUEST
        assert accept.status_code == status.HTTP_400_BAD_REQUEST


class TestDeclining:

    @pytest.mark.asyncio
    async def test_decline_removes_invitation(self, client, household):
        invitation = await invite(client, household, "nope@example.com")

        response = await client.post("/invitations/decline", json={"token": invitation["token"]})
        assert response.status_code == status.HTTP_200_OK

        details = await client.get("/invitations/details", params={"token": invitation["token"]})
        assert details.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_decline_unknown_is_404(self, client):
        response = await client.post("/invitations/decline", json={"token": "b" * 64})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Invitation not found."}
