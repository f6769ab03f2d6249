"""
Integration Tests for tasks, approvals, the family wallet and gigs

Tests:
- Task creation notifies the assignee
- Approval requires guardian role
- Currency rewards paid from the family wallet, once
- Gig claims (one per day) and completion rewards
"""

import pytest
from fastapi import status

from famconomy.api.services.gig_service import period_key
from famconomy.shared.models import GigTemplate


async def fund(client, household, cents):
    response = await client.post(
        f"/wallet/family/{household.family_id}/fund",
        json={"amountCents": cents},
        headers=household.parent_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def overview(client, household):
    response = await client.get(f"/wallet/family/{household.family_id}/overview", headers=household.parent_headers)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    return body["familyBalanceCents"], {m["userId"]: m["balanceCents"] for m in body["members"]}


# ============================================================================
# Tasks
# ============================================================================

class TestTasks:

    async def _create_task(self, client, household, **fields):
        payload = {
            "familyId": household.family_id,
            "title": "Feed the cat",
            "assignedToUserId": str(household.child.id),
        }
        payload.update(fields)
        response = await client.post("/tasks", json=payload, headers=household.parent_headers)
        assert response.status_code == status.HTTP_201_CREATED
        return response.json()

    @pytest.mark.asyncio
    async def test_assignee_is_notified(self, client, household, realtime):
        task = await self._create_task(client, household)

        assert task["status"] == "pending"
        assert task["createdByUserId"] == str(household.parent.id)
        assert realtime.user_events[0][0] == household.child.id
        assert realtime.user_events[0][2]["message"] == "New task assigned: Feed the cat"

    @pytest.mark.asyncio
    async def test_assignee_must_be_member(self, client, household):
        response = await client.post(
            "/tasks",
            json={"familyId": household.family_id, "title": "x", "assignedToUserId": str(household.outsider.id)},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_child_cannot_approve(self, client, household):
        task = await self._create_task(client, household, approvalStatus="pending")

        response = await client.put(
            f"/tasks/{task['id']}/approval",
            json={"approvalStatus": "approved"},
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_task(self, client, household):
        task = await self._create_task(client, household)

        response = await client.get(f"/tasks/{task['id']}", headers=household.outsider_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "Access denied."}

    @pytest.mark.asyncio
    async def test_reward_waits_for_approval_and_is_paid_once(self, client, household):
        task = await self._create_task(
            client, household, rewardType="currency", rewardValue=250, approvalStatus="pending"
        )
        await fund(client, household, 1000)

        completed = await client.put(
            f"/tasks/{task['id']}", json={"status": "completed"}, headers=household.child_headers
        )
        assert completed.status_code == status.HTTP_200_OK
        assert completed.json()["completedAt"] is not None
        assert await overview(client, household) == (1000, {str(household.parent.id): 0, str(household.child.id): 0})

        approved = await client.put(
            f"/tasks/{task['id']}/approval",
            json={"approvalStatus": "approved"},
            headers=household.parent_headers,
        )
        assert approved.status_code == status.HTTP_200_OK
        assert await overview(client, household) == (750, {str(household.parent.id): 0, str(household.child.id): 250})

        await client.put(
            f"/tasks/{task['id']}", json={"description": "done twice"}, headers=household.parent_headers
        )
        family_cents, _ = await overview(client, household)
        assert family_cents == 750

    @pytest.mark.asyncio
    async def test_reward_without_funds_conflicts(self, client, household):
        task = await self._create_task(client, household, rewardType="currency", rewardValue=100)

        response = await client.put(
            f"/tasks/{task['id']}", json={"status": "completed"}, headers=household.child_headers
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        reloaded = await client.get(f"/tasks/{task['id']}", headers=household.parent_headers)
        assert reloaded.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_child_cannot_create_approved_task(self, client, household):
        response = await client.post(
            "/tasks",
            json={
                "familyId": household.family_id,
                "title": "Self reward",
                "assignedToUserId": str(household.child.id),
                "rewardType": "currency",
                "rewardValue": 5000,
                "approvalStatus": "approved",
            },
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        listed = await client.get(f"/tasks/family/{household.family_id}", headers=household.parent_headers)
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_child_currency_task_is_not_paid_without_approval(self, client, household):
        await fund(client, household, 5000)
        created = await client.post(
            "/tasks",
            json={
                "familyId": household.family_id,
                "title": "Self reward",
                "assignedToUserId": str(household.child.id),
                "rewardType": "currency",
                "rewardValue": 5000,
            },
            headers=household.child_headers,
        )
        assert created.status_code == status.HTTP_201_CREATED
        assert created.json()["approvalStatus"] == "pending"

        completed = await client.put(
            f"/tasks/{created.json()['id']}", json={"status": "completed"}, headers=household.child_headers
        )

        assert completed.status_code == status.HTTP_200_OK
        assert await overview(client, household) == (5000, {str(household.parent.id): 0, str(household.child.id): 0})

    @pytest.mark.asyncio
    async def test_child_cannot_change_reward(self, client, household):
        task = await self._create_task(
            client, household, rewardType="currency", rewardValue=100, approvalStatus="approved"
        )

        response = await client.put(
            f"/tasks/{task['id']}", json={"rewardValue": 5000}, headers=household.child_headers
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        reloaded = await client.get(f"/tasks/{task['id']}", headers=household.parent_headers)
        assert reloaded.json()["rewardValue"] == 100

    @pytest.mark.asyncio
    async def test_parent_can_change_reward(self, client, household):
        task = await self._create_task(client, household, rewardType="points", rewardValue=5)

        response = await client.put(
            f"/tasks/{task['id']}", json={"rewardValue": 10}, headers=household.parent_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["rewardValue"] == 10


# ============================================================================
# Wallet
# ============================================================================

class TestWallet:

    @pytest.mark.asyncio
    async def test_transfer_moves_money(self, client, household):
        await fund(client, household, 500)

        response = await client.post(
            f"/wallet/family/{household.family_id}/transfer",
            json={"userId": str(household.child.id), "amountCents": 200},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["type"] == "TRANSFER"
        assert await overview(client, household) == (300, {str(household.parent.id): 0, str(household.child.id): 200})

    @pytest.mark.asyncio
    async def test_overdraw_conflicts(self, client, household):
        await fund(client, household, 100)

        response = await client.post(
            f"/wallet/family/{household.family_id}/users/{household.child.id}/transfer",
            json={"amountCents": 101},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        family_cents, _ = await overview(client, household)
        assert family_cents == 100

    @pytest.mark.asyncio
    async def test_child_cannot_fund(self, client, household):
        response = await client.post(
            f"/wallet/family/{household.family_id}/fund",
            json={"amountCents": 100},
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_child_sees_only_own_ledger(self, client, household):
        await fund(client, household, 500)
        await client.post(
            f"/wallet/family/{household.family_id}/transfer",
            json={"userId": str(household.child.id), "amountCents": 50},
            headers=household.parent_headers,
        )

        parent_view = await client.get(f"/wallet/family/{household.family_id}/ledgers", headers=household.parent_headers)
        child_view = await client.get(f"/wallet/family/{household.family_id}/ledgers", headers=household.child_headers)

        assert len(parent_view.json()) == 3
        assert [e["amountCents"] for e in child_view.json()] == [50]


# ============================================================================
# Gigs
# ============================================================================

class TestGigs:

    async def _setup_gig(self, client, household, factory, reward_cents=300):
        template = await factory.add(GigTemplate(name="Dishes", applicable_tags=["kitchen"], default_points=5))
        room = await client.post(
            f"/rooms/family/{household.family_id}",
            json={"name": "Kitchen", "tags": ["kitchen"]},
            headers=household.parent_headers,
        )
        assert room.status_code == status.HTTP_201_CREATED

        gig = await client.post(
            "/gigs",
            json={
                "familyId": household.family_id,
                "gigTemplateId": template.id,
                "roomId": room.json()["id"],
                "overrideCurrencyCents": reward_cents,
            },
            headers=household.parent_headers,
        )
        assert gig.status_code == status.HTTP_201_CREATED
        return gig.json()

    @pytest.mark.asyncio
    async def test_claim_once_per_day(self, client, household, factory):
        gig = await self._setup_gig(client, household, factory)

        first = await client.post(f"/gigs/{gig['id']}/claim", headers=household.child_headers)
        second = await client.post(f"/gigs/{gig['id']}/claim", headers=household.child_headers)

        assert first.status_code == status.HTTP_200_OK
        claim = first.json()["claims"][0]
        assert claim["status"] == "claimed"
        assert claim["periodKey"] == period_key()
        assert second.status_code == status.HTTP_409_CONFLICT
        assert second.json() == {"error": "Gig already claimed for this period."}

    @pytest.mark.asyncio
    async def test_complete_pays_reward(self, client, household, factory):
        gig = await self._setup_gig(client, household, factory, reward_cents=300)
        await client.post(f"/gigs/{gig['id']}/claim", headers=household.child_headers)

        broke = await client.post(f"/gigs/{gig['id']}/complete", headers=household.child_headers)
        assert broke.status_code == status.HTTP_409_CONFLICT

        await fund(client, household, 1000)
        done = await client.post(f"/gigs/{gig['id']}/complete", headers=household.child_headers)

        assert done.status_code == status.HTTP_200_OK
        claim = done.json()["claims"][0]
        assert claim["status"] == "completed"
        assert claim["rewardLedgerId"] is not None
        assert await overview(client, household) == (700, {str(household.parent.id): 0, str(household.child.id): 300})

        again = await client.post(f"/gigs/{gig['id']}/complete", headers=household.child_headers)
        assert again.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_hidden_gigs_are_not_listed_for_children(self, client, household, factory):
        gig = await self._setup_gig(client, household, factory)
        await client.put(f"/gigs/{gig['id']}", json={"visible": False}, headers=household.parent_headers)

        parent_list = await client.get("/gigs", params={"familyId": household.family_id}, headers=household.parent_headers)
        child_list = await client.get("/gigs", params={"familyId": household.family_id}, headers=household.child_headers)

        assert [g["id"] for g in parent_list.json()] == [gig["id"]]
        assert child_list.json() == []

    @pytest.mark.asyncio
    async def test_child_cannot_add_gigs(self, client, household, factory):
        template = await factory.add(GigTemplate(name="Trash", applicable_tags=[], default_points=1))

        response = await client.post(
            "/gigs",
            json={"familyId": household.family_id, "gigTemplateId": template.id},
            headers=household.child_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
