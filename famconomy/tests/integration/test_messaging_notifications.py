"""
Integration Tests for family chat, notifications and the assistant memory API
"""

import pytest
from fastapi import status


class TestFamilyChat:

    @pytest.mark.asyncio
    async def test_send_fans_out_and_emits(self, client, household, realtime):
        response = await client.post(
            "/messages",
            json={"familyId": household.family_id, "text": "  Dinner at six  "},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        message = response.json()
        assert message["text"] == "Dinner at six"
        assert message["senderName"] == "Pat Tester"
        assert message["source"] == "General"

        # Everyone but the sender is notified
        assert [uid for uid, _, _ in realtime.user_events] == [household.child.id]
        assert realtime.family_events == [(household.family_id, "message:new", message)]

        inbox = await client.get("/notifications", headers=household.child_headers)
        assert [n["message"] for n in inbox.json()] == ["New message from Pat Tester: Dinner at six..."]
        assert (await client.get("/notifications", headers=household.parent_headers)).json() == []

    @pytest.mark.asyncio
    async def test_history_is_ascending(self, client, household):
        for text in ("one", "two", "three"):
            await client.post(
                "/messages",
                json={"familyId": household.family_id, "text": text},
                headers=household.child_headers,
            )

        response = await client.get(f"/messages/{household.family_id}", headers=household.parent_headers)

        assert [m["text"] for m in response.json()] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_text_is_required(self, client, household):
        response = await client.post(
            "/messages",
            json={"familyId": household.family_id, "text": "   "},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "familyId and text are required"}

    @pytest.mark.asyncio
    async def test_outsider_cannot_post(self, client, household):
        response = await client.post(
            "/messages",
            json={"familyId": household.family_id, "text": "hello"},
            headers=household.outsider_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestNotifications:

    async def _notify_child(self, client, household):
        await client.post(
            "/messages",
            json={"familyId": household.family_id, "text": "ping"},
            headers=household.parent_headers,
        )
        inbox = await client.get("/notifications", headers=household.child_headers)
        return inbox.json()[0]

    @pytest.mark.asyncio
    async def test_mark_read(self, client, household):
        notification = await self._notify_child(client, household)

        response = await client.put(f"/notifications/{notification['id']}/read", headers=household.child_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["isRead"] is True
        assert (await client.get("/notifications", headers=household.child_headers)).json() == []

    @pytest.mark.asyncio
    async def test_other_users_notification_is_forbidden(self, client, household):
        notification = await self._notify_child(client, household)

        response = await client.delete(f"/notifications/{notification['id']}", headers=household.parent_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_unknown_notification_is_forbidden(self, client, household):
        response = await client.put("/notifications/9999/read", headers=household.child_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestAssistantMemory:

    @pytest.mark.asyncio
    async def test_store_list_and_consolidate(self, client, household):
        for content in ("Plan my week", "Add soccer practice"):
            response = await client.post(
                "/linz/messages",
                json={"familyId": household.family_id, "content": content},
                headers=household.parent_headers,
            )
            assert response.status_code == status.HTTP_201_CREATED

        listed = await client.get(
            "/assistant/messages", params={"familyId": household.family_id}, headers=household.parent_headers
        )
        assert [m["content"] for m in listed.json()] == ["Plan my week", "Add soccer practice"]

        first = await client.post("/assistant/consolidate", headers=household.parent_headers)
        second = await client.post("/assistant/consolidate", headers=household.parent_headers)
        assert first.json() == {"summariesCreated": 1}
        assert second.json() == {"summariesCreated": 0}

        summaries = await client.get("/assistant/summaries", headers=household.parent_headers)
        assert summaries.json()[0]["messageCount"] == 2

    @pytest.mark.asyncio
    async def test_role_is_validated(self, client, household):
        response = await client.post(
            "/assistant/messages",
            json={"familyId": household.family_id, "content": "x", "role": "system"},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
