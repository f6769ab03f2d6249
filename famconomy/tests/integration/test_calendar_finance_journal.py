"""
Integration Tests for the calendar, budgets, transactions, savings goals and the journal

Tests:
- Event creation notifies the other members; end before start is rejected
- Offset and "Z" timestamps are stored as naive UTC
- Budget ids are validated and scoped to the caller's families
- Transactions cannot point at another family's budget
- Savings contributions accumulate
- Private journal entries stay with their author
"""

import pytest
from fastapi import status


# ============================================================================
# Calendar
# ============================================================================

class TestCalendar:

    async def _create_event(self, client, household, **fields):
        payload = {
            "familyId": household.family_id,
            "title": "Dentist",
            "startTime": "2026-01-01T09:00:00",
            "endTime": "2026-01-01T10:00:00",
        }
        payload.update(fields)
        response = await client.post("/calendar", json=payload, headers=household.parent_headers)
        assert response.status_code == status.HTTP_201_CREATED
        return response.json()

    @pytest.mark.asyncio
    async def test_create_notifies_other_members(self, client, household, realtime):
        event = await self._create_event(client, household)

        assert event["createdByUserId"] == str(household.parent.id)
        assert event["isRecurring"] is False
        assert [e[0] for e in realtime.user_events] == [household.child.id]
        assert realtime.user_events[0][2]["message"] == "New event: Dentist"

    @pytest.mark.asyncio
    async def test_end_defaults_to_start(self, client, household):
        event = await self._create_event(client, household, endTime=None)

        assert event["endTime"] == event["startTime"]

    @pytest.mark.asyncio
    async def test_end_before_start_is_rejected(self, client, household):
        response = await client.post(
            "/calendar",
            json={
                "familyId": household.family_id,
                "title": "Backwards",
                "startTime": "2026-01-01T10:00:00",
                "endTime": "2026-01-01T09:00:00",
            },
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "End time must not be before start time"}

    @pytest.mark.asyncio
    async def test_update_with_utc_timestamps(self, client, household):
        event = await self._create_event(client, household)

        response = await client.put(
            f"/calendar/{event['id']}",
            json={"startTime": "2026-01-01T09:30:00Z", "endTime": "2026-01-01T12:00:00+02:00"},
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["startTime"] == "2026-01-01T09:30:00"
        assert body["endTime"] == "2026-01-01T10:00:00"

    @pytest.mark.asyncio
    async def test_update_rejects_end_before_start(self, client, household):
        event = await self._create_event(client, household)

        response = await client.put(
            f"/calendar/{event['id']}",
            json={"startTime": "2026-01-01T11:00:00Z"},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        listed = await client.get(f"/calendar/family/{household.family_id}", headers=household.parent_headers)
        assert listed.json()[0]["startTime"] == "2026-01-01T09:00:00"

    @pytest.mark.asyncio
    async def test_list_by_range(self, client, household):
        await self._create_event(client, household, title="January")
        await self._create_event(
            client, household, title="March", startTime="2026-03-01T09:00:00", endTime="2026-03-01T10:00:00"
        )

        response = await client.get(
            f"/calendar/family/{household.family_id}",
            params={"start": "2026-02-01T00:00:00Z", "end": "2026-04-01T00:00:00Z"},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert [e["title"] for e in response.json()] == ["March"]

    @pytest.mark.asyncio
    async def test_outsider_cannot_update(self, client, household):
        event = await self._create_event(client, household)

        response = await client.put(
            f"/calendar/{event['id']}", json={"title": "Mine"}, headers=household.outsider_headers
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============================================================================
# Budgets and transactions
# ============================================================================

async def create_budget(client, family_id, headers, name="Groceries", amount=400):
    response = await client.post(
        "/budget",
        json={"familyId": family_id, "name": name, "amount": amount},
        headers=headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestBudgets:

    @pytest.mark.asyncio
    async def test_invalid_budget_id(self, client, household):
        response = await client.get("/budget/abc", headers=household.parent_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Invalid budgetId parameter"}

    @pytest.mark.asyncio
    async def test_foreign_budget_is_forbidden(self, client, household, factory):
        other_family = await factory.family(household.outsider, name="Elsewhere")
        foreign = await create_budget(client, other_family.id, household.outsider_headers, name="Theirs")

        response = await client.get(f"/budget/{foreign['id']}", headers=household.parent_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "Access denied."}

    @pytest.mark.asyncio
    async def test_spent_follows_transactions(self, client, household):
        budget = await create_budget(client, household.family_id, household.parent_headers)
        for amount in (12.5, 30):
            await client.post(
                "/transactions",
                json={
                    "familyId": household.family_id,
                    "budgetId": budget["id"],
                    "amount": amount,
                    "transactionDate": "2026-01-05",
                },
                headers=household.child_headers,
            )

        response = await client.get(f"/budget/{budget['id']}", headers=household.parent_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["spent"] == 42.5


class TestTransactions:

    @pytest.mark.asyncio
    async def test_other_family_budget_is_rejected(self, client, household, factory):
        other_family = await factory.family(household.outsider, name="Elsewhere")
        foreign = await create_budget(client, other_family.id, household.outsider_headers, name="Theirs")

        response = await client.post(
            "/transactions",
            json={
                "familyId": household.family_id,
                "budgetId": foreign["id"],
                "amount": 20,
                "transactionDate": "2026-01-05",
            },
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Budget does not belong to this family."}
        listed = await client.get(
            "/transactions", params={"familyId": household.family_id}, headers=household.parent_headers
        )
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_update_cannot_move_to_other_family_budget(self, client, household, factory):
        other_family = await factory.family(household.outsider, name="Elsewhere")
        foreign = await create_budget(client, other_family.id, household.outsider_headers, name="Theirs")
        created = await client.post(
            "/transactions",
            json={"familyId": household.family_id, "amount": 8, "transactionDate": "2026-01-05"},
            headers=household.parent_headers,
        )

        response = await client.put(
            f"/transactions/{created.json()['id']}",
            json={"budgetId": foreign["id"]},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, client, household):
        created = await client.post(
            "/transactions",
            json={"familyId": household.family_id, "amount": 8, "transactionDate": "2026-01-05"},
            headers=household.parent_headers,
        )

        response = await client.get(f"/transactions/{created.json()['id']}", headers=household.outsider_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============================================================================
# Savings goals
# ============================================================================

class TestSavingsGoals:

    @pytest.mark.asyncio
    async def test_contributions_accumulate(self, client, household):
        goal = await client.post(
            "/savings-goals",
            json={"familyId": household.family_id, "name": "Bike", "targetAmount": 250},
            headers=household.parent_headers,
        )
        assert goal.status_code == status.HTTP_201_CREATED
        goal_id = goal.json()["id"]

        await client.post(f"/savings-goals/{goal_id}/contribute", json={"amount": 20.1}, headers=household.child_headers)
        response = await client.post(
            f"/savings-goals/{goal_id}/contribute", json={"amount": 10.2}, headers=household.parent_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["currentAmount"] == 30.3

    @pytest.mark.asyncio
    async def test_contribution_must_be_positive(self, client, household):
        goal = await client.post(
            "/savings-goals",
            json={"familyId": household.family_id, "name": "Bike", "targetAmount": 250},
            headers=household.parent_headers,
        )

        response = await client.post(
            f"/savings-goals/{goal.json()['id']}/contribute", json={"amount": 0}, headers=household.parent_headers
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_outsider_cannot_contribute(self, client, household):
        goal = await client.post(
            "/savings-goals",
            json={"familyId": household.family_id, "name": "Bike", "targetAmount": 250},
            headers=household.parent_headers,
        )

        response = await client.post(
            f"/savings-goals/{goal.json()['id']}/contribute", json={"amount": 5}, headers=household.outsider_headers
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============================================================================
# Journal
# ============================================================================

class TestJournal:

    async def _create_entry(self, client, household, headers, **fields):
        payload = {"familyId": household.family_id, "title": "Today", "body": "We went hiking."}
        payload.update(fields)
        response = await client.post("/journal", json=payload, headers=headers)
        assert response.status_code == status.HTTP_201_CREATED
        return response.json()

    @pytest.mark.asyncio
    async def test_private_entries_are_listed_for_author_only(self, client, household):
        await self._create_entry(client, household, household.parent_headers, title="Shared")
        await self._create_entry(client, household, household.parent_headers, title="Secret", isPrivate=True)

        as_parent = await client.get(f"/journal/family/{household.family_id}", headers=household.parent_headers)
        as_child = await client.get(f"/journal/family/{household.family_id}", headers=household.child_headers)

        assert sorted(e["title"] for e in as_parent.json()) == ["Secret", "Shared"]
        assert [e["title"] for e in as_child.json()] == ["Shared"]

    @pytest.mark.asyncio
    async def test_private_entry_is_hidden_from_other_members(self, client, household):
        entry = await self._create_entry(client, household, household.child_headers, isPrivate=True)

        as_parent = await client.get(f"/journal/{entry['id']}", headers=household.parent_headers)
        as_child = await client.get(f"/journal/{entry['id']}", headers=household.child_headers)

        assert as_parent.status_code == status.HTTP_403_FORBIDDEN
        assert as_child.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_only_author_can_edit_shared_entry(self, client, household):
        entry = await self._create_entry(client, household, household.parent_headers)

        response = await client.put(
            f"/journal/{entry['id']}", json={"body": "Rewritten"}, headers=household.child_headers
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
