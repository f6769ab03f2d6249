"""
Integration Tests for onboarding and the family dashboard
"""

import pytest
from fastapi import status

from famconomy.shared.models import GigTemplate


class TestOnboarding:

    @pytest.mark.asyncio
    async def test_complete_creates_family_rooms_and_gigs(self, client, factory, headers_for):
        await factory.add(
            GigTemplate(name="Dishes", applicable_tags=["kitchen"], default_points=5),
            GigTemplate(name="Vacuum", applicable_tags=["bedroom", "living"], default_points=3),
            GigTemplate(name="Mow lawn", applicable_tags=["yard"], default_points=8),
        )
        user = await factory.user("Olive")
        headers = headers_for(user)

        before = await client.get("/onboarding/status", headers=headers)
        assert before.json() == {"completed": False, "familyId": None}

        response = await client.post(
            "/onboarding/complete",
            json={
                "familyName": "  Olsen ",
                "rooms": [
                    {"name": "Kitchen", "tags": ["Kitchen"]},
                    {"name": "Kids room", "tags": ["bedroom"]},
                    {"name": "Attic", "tags": []},
                ],
            },
            headers=headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["family"]["name"] == "Olsen"
        assert [r["name"] for r in body["rooms"]] == ["Kitchen", "Kids room", "Attic"]
        assert body["gigsCreated"] == 2

        after = await client.get("/onboarding/status", headers=headers)
        assert after.json() == {"completed": True, "familyId": body["family"]["id"]}

        gigs = await client.get("/gigs", params={"familyId": body["family"]["id"]}, headers=headers)
        assert len(gigs.json()) == 2

    @pytest.mark.asyncio
    async def test_second_completion_conflicts(self, client, factory, headers_for):
        user = await factory.user()
        headers = headers_for(user)
        await client.post("/onboarding/complete", json={"familyName": "First"}, headers=headers)

        response = await client.post("/onboarding/complete", json={"familyName": "Second"}, headers=headers)

        assert response.status_code == status.HTTP_409_CONFLICT
        families = await client.get("/family", headers=headers)
        assert [f["name"] for f in families.json()["families"]] == ["First"]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.post("/onboarding/complete", json={"familyName": "Nope"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestDashboard:

    @pytest.mark.asyncio
    async def test_counts(self, client, household):
        for title in ("Dishes", "Laundry"):
            await client.post(
                "/tasks",
                json={"familyId": household.family_id, "title": title},
                headers=household.parent_headers,
            )
        shopping_list = await client.post(
            "/shopping-lists",
            json={"familyId": household.family_id, "name": "Weekly"},
            headers=household.parent_headers,
        )
        await client.post(
            "/shopping-items",
            json={"shoppingListId": shopping_list.json()["id"], "name": "Eggs"},
            headers=household.parent_headers,
        )
        await client.post(
            "/budget",
            json={"familyId": household.family_id, "name": "Groceries", "amount": 400},
            headers=household.parent_headers,
        )

        response = await client.get(f"/dashboard/{household.family_id}", headers=household.child_headers)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["memberCount"] == 2
        assert body["openTasks"] == 2
        assert body["completedTasks"] == 0
        assert body["activeShoppingLists"] == 1
        assert body["budgetTotal"] == 400.0
        assert body["spentTotal"] == 0.0

    @pytest.mark.asyncio
    async def test_outsider_is_denied(self, client, household):
        response = await client.get(f"/dashboard/{household.family_id}", headers=household.outsider_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
