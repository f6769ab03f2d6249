"""
Integration Tests for meals, the weekly plan and shopping lists

Tests:
- Meal creation with ingredients and tags
- Plan entries replace the meal in an occupied slot
- Adding a week's plan to a shopping list (and adding it twice)
"""

import pytest
from fastapi import status

WEEK = "2024-06-03"


async def create_meal(client, household, title, ingredients, tags=()):
    response = await client.post(
        f"/meals/{household.family_id}/meals",
        json={"title": title, "ingredients": ingredients, "tags": list(tags)},
        headers=household.parent_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def plan(client, household, meal_id, day, slot="dinner"):
    response = await client.post(
        f"/meals/{household.family_id}/plan",
        json={"weekStart": WEEK, "dayOfWeek": day, "mealSlot": slot, "mealId": meal_id},
        headers=household.parent_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    return response.json()


async def create_list(client, household, name="Groceries"):
    response = await client.post(
        "/shopping-lists",
        json={"familyId": household.family_id, "name": name},
        headers=household.parent_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestMeals:

    @pytest.mark.asyncio
    async def test_create_meal(self, client, household):
        meal = await create_meal(
            client,
            household,
            "Tacos",
            [{"name": "Tortillas", "quantity": 8}, {"name": "Beef", "quantity": 500, "unit": "g"}],
            tags=["mexican", " mexican ", "quick"],
        )

        assert [i["name"] for i in meal["ingredients"]] == ["Tortillas", "Beef"]
        assert sorted(meal["tags"]) == ["mexican", "quick"]

    @pytest.mark.asyncio
    async def test_plan_slot_is_replaced(self, client, household):
        tacos = await create_meal(client, household, "Tacos", [])
        pasta = await create_meal(client, household, "Pasta", [])

        first = await plan(client, household, tacos["id"], day=2)
        second = await plan(client, household, pasta["id"], day=2)

        assert second["id"] == first["id"]
        assert second["meal"]["title"] == "Pasta"

        weeks = await client.get(
            f"/meals/{household.family_id}/plan", params={"weekStart": WEEK}, headers=household.child_headers
        )
        assert len(weeks.json()) == 1
        assert [e["meal"]["title"] for e in weeks.json()[0]["entries"]] == ["Pasta"]

    @pytest.mark.asyncio
    async def test_cannot_plan_another_familys_meal(self, client, household, factory, headers_for):
        other_parent = await factory.user("Other")
        other_family = await factory.family(other_parent)
        response = await client.post(
            f"/meals/{other_family.id}/meals",
            json={"title": "Secret stew"},
            headers=headers_for(other_parent),
        )

        planned = await client.post(
            f"/meals/{household.family_id}/plan",
            json={"weekStart": WEEK, "dayOfWeek": 0, "mealSlot": "lunch", "mealId": response.json()["id"]},
            headers=household.parent_headers,
        )

        assert planned.status_code == status.HTTP_404_NOT_FOUND


class TestAddMealPlanToList:

    async def _planned_week(self, client, household):
        tacos = await create_meal(
            client,
            household,
            "Tacos",
            [{"name": "Onion", "quantity": 1}, {"name": "Beef", "quantity": 500, "unit": "g"}],
        )
        chili = await create_meal(
            client,
            household,
            "Chili",
            [{"name": "onion", "quantity": 2}, {"name": "Beans", "unit": "can"}],
        )
        await plan(client, household, tacos["id"], day=0)
        await plan(client, household, chili["id"], day=1)

    @pytest.mark.asyncio
    async def test_quantities_are_merged(self, client, household):
        await self._planned_week(client, household)
        shopping_list = await create_list(client, household)

        response = await client.post(
            "/shopping-lists/add-meal-plan",
            json={"familyId": household.family_id, "weekStart": WEEK, "shoppingListId": shopping_list["id"]},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        items = {(i["name"].lower(), i["unit"]): i["quantity"] for i in response.json()["items"]}
        assert items == {("onion", None): 3, ("beef", "g"): 500, ("beans", "can"): 1}

    @pytest.mark.asyncio
    async def test_adding_twice_doubles_quantities(self, client, household):
        await self._planned_week(client, household)
        shopping_list = await create_list(client, household)
        payload = {"familyId": household.family_id, "weekStart": WEEK, "shoppingListId": shopping_list["id"]}

        await client.post("/shopping-lists/add-meal-plan", json=payload, headers=household.parent_headers)
        response = await client.post("/shopping-lists/add-meal-plan", json=payload, headers=household.parent_headers)

        items = {i["name"].lower(): i["quantity"] for i in response.json()["items"]}
        assert len(response.json()["items"]) == 3
        assert items == {"onion": 6, "beef": 1000, "beans": 2}

    @pytest.mark.asyncio
    async def test_missing_week_is_404(self, client, household):
        shopping_list = await create_list(client, household)

        response = await client.post(
            "/shopping-lists/add-meal-plan",
            json={"familyId": household.family_id, "weekStart": "2030-01-07", "shoppingListId": shopping_list["id"]},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "No meal plan found for the selected week."}

    @pytest.mark.asyncio
    async def test_meals_without_ingredients_are_rejected(self, client, household):
        toast = await create_meal(client, household, "Toast", [])
        await plan(client, household, toast["id"], day=0, slot="breakfast")
        shopping_list = await create_list(client, household)

        response = await client.post(
            "/shopping-lists/add-meal-plan",
            json={"familyId": household.family_id, "weekStart": WEEK, "shoppingListId": shopping_list["id"]},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "The meals in this plan have no ingredients."}
        reloaded = await client.get(f"/shopping-lists/{shopping_list['id']}", headers=household.parent_headers)
        assert reloaded.json()["items"] == []

    @pytest.mark.asyncio
    async def test_required_fields(self, client, household):
        response = await client.post(
            "/shopping-lists/add-meal-plan",
            json={"familyId": household.family_id},
            headers=household.parent_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestShoppingLists:

    @pytest.mark.asyncio
    async def test_archive_toggle(self, client, household):
        shopping_list = await create_list(client, household)
        await client.post(
            "/shopping-items",
            json={"shoppingListId": shopping_list["id"], "name": "Milk"},
            headers=household.parent_headers,
        )

        archived = await client.put(f"/shopping-lists/{shopping_list['id']}/archive", headers=household.parent_headers)
        assert [i["isCompleted"] for i in archived.json()["items"]] == [True]

        reopened = await client.put(f"/shopping-lists/{shopping_list['id']}/archive", headers=household.parent_headers)
        assert [i["isCompleted"] for i in reopened.json()["items"]] == [False]

    @pytest.mark.asyncio
    async def test_outsider_cannot_see_list(self, client, household):
        shopping_list = await create_list(client, household)

        response = await client.get(f"/shopping-lists/{shopping_list['id']}", headers=household.outsider_headers)

        assert response.status_code in (status.HTTP_403_FORBIDDEN, status.HTTP_404_NOT_FOUND)
