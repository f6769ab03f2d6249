"""
Shopping-list service: merge a week's meal plan into a shopping list.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.shared.models import (
    Meal,
    MealIngredient,
    MealPlanEntry,
    MealPlanWeek,
    ShoppingItem,
    ShoppingList,
)

logger = logging.getLogger(__name__)

IngredientKey = Tuple[str, str]


@dataclass
class AggregatedIngredient:
    """Running total for one (name, unit) pair."""
    name: str
    unit: Optional[str]
    quantity: float


def ingredient_key(name: str, unit: Optional[str]) -> IngredientKey:
    return (name.strip().lower(), (unit or "").strip().lower())


def aggregate_ingredients(ingredients: Iterable[MealIngredient]) -> Dict[IngredientKey, AggregatedIngredient]:
    """
    Sum ingredient quantities keyed by normalised name and unit.

    A missing quantity counts as 1. The first spelling seen for a key is kept
    for display.
    """
    totals: Dict[IngredientKey, AggregatedIngredient] = {}
    for ingredient in ingredients:
        if not ingredient.name or not ingredient.name.strip():
            continue
        key = ingredient_key(ingredient.name, ingredient.unit)
        quantity = ingredient.quantity if ingredient.quantity is not None else 1
        if key in totals:
            totals[key].quantity += quantity
        else:
            totals[key] = AggregatedIngredient(
                name=ingredient.name.strip(),
                unit=ingredient.unit.strip() if ingredient.unit else ingredient.unit,
                quantity=quantity,
            )
    return totals


async def load_shopping_list(session: AsyncSession, list_id: int) -> Optional[ShoppingList]:
    """Fetch a list with its items, replacing any stale identity-map copy."""
    result = await session.execute(
        select(ShoppingList)
        .where(ShoppingList.id == list_id)
        .options(selectinload(ShoppingList.items))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def add_meal_plan_to_list(
    session: AsyncSession,
    family_id: int,
    week_start: date,
    shopping_list_id: int,
) -> ShoppingList:
    """
    Merge every ingredient of a week's meal plan into a shopping list.

    Matching items (case-insensitive name and unit) have their quantity
    increased; the rest are inserted. Running the merge twice doubles the
    quantities.

    Raises:
        HTTPException: 404 when the plan or list is missing, 400 when the
            planned meals carry no ingredients
    """
    result = await session.execute(
        select(MealPlanWeek)
        .where(
            MealPlanWeek.family_id == family_id,
            MealPlanWeek.week_start == week_start,
        )
        .options(
            selectinload(MealPlanWeek.entries)
            .selectinload(MealPlanEntry.meal)
            .selectinload(Meal.ingredients)
        )
    )
    week = result.scalar_one_or_none()
    if week is None or not week.entries:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No meal plan found for the selected week.",
        )

    totals = aggregate_ingredients(
        ingredient
        for entry in week.entries
        if entry.meal is not None
        for ingredient in entry.meal.ingredients
    )
    if not totals:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The meals in this plan have no ingredients.",
        )

    shopping_list = await load_shopping_list(session, shopping_list_id)
    if shopping_list is None or shopping_list.family_id != family_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shopping list not found.",
        )

    added_by: UUID = week.entries[0].added_by_user_id
    existing = {ingredient_key(item.name, item.unit): item for item in shopping_list.items}

    try:
        for key, total in totals.items():
            item = existing.get(key)
            if item is not None:
                item.quantity = (item.quantity or 0) + total.quantity
            else:
                session.add(
                    ShoppingItem(
                        shopping_list_id=shopping_list.id,
                        name=total.name,
                        quantity=total.quantity,
                        unit=total.unit,
                        added_by_user_id=added_by,
                    )
                )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Merged {len(totals)} ingredients into shopping list {shopping_list_id}",
        extra={"family_id": family_id, "week_start": week_start.isoformat()},
    )
    return await load_shopping_list(session, shopping_list_id)
