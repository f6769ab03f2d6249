"""
Meals Router
Family meal library and the weekly meal plan.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.dependencies import (
    ensure_family_member,
    get_current_user,
    parse_id,
    require_family_membership,
)
from famconomy.api.schemas import (
    MealCreate,
    MealUpdate,
    MealResponse,
    MealPlanEntryUpsert,
    MealPlanEntryResponse,
    MealPlanWeekResponse,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    FamilyMember,
    Meal,
    MealIngredient,
    MealPlanEntry,
    MealPlanWeek,
    MealTag,
    Recipe,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MEAL_LOAD_OPTIONS = (selectinload(Meal.ingredients), selectinload(Meal.tags))


def clean_tags(tags: list[str]) -> list[MealTag]:
    seen: dict[str, None] = {}
    for tag in tags:
        tag = tag.strip()
        if tag:
            seen.setdefault(tag, None)
    return [MealTag(tag=tag) for tag in seen]


async def load_meal(session: AsyncSession, meal_id: int) -> Meal:
    result = await session.execute(
        select(Meal)
        .where(Meal.id == meal_id)
        .options(*MEAL_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    meal = result.scalar_one_or_none()
    if meal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meal not found")
    return meal


async def load_entry(session: AsyncSession, entry_id: int) -> Optional[MealPlanEntry]:
    result = await session.execute(
        select(MealPlanEntry)
        .where(MealPlanEntry.id == entry_id)
        .options(
            selectinload(MealPlanEntry.week),
            selectinload(MealPlanEntry.meal).selectinload(Meal.ingredients),
            selectinload(MealPlanEntry.meal).selectinload(Meal.tags),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ============================================================================
# Meals
# ============================================================================

@router.get(
    "/{family_id}/meals",
    response_model=list[MealResponse],
    summary="List family meals",
)
async def list_meals(
    family_id: int,
    meal_status: Optional[str] = Query(None, alias="status"),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[Meal]:
    query = select(Meal).where(Meal.family_id == family_id).options(*MEAL_LOAD_OPTIONS)
    if meal_status:
        query = query.where(Meal.status == meal_status)

    result = await session.execute(query.order_by(Meal.is_favorite.desc(), Meal.title, Meal.id))
    return list(result.scalars().all())


@router.post(
    "/{family_id}/meals",
    response_model=MealResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create meal",
)
async def create_meal(
    family_id: int,
    payload: MealCreate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Meal:
    if payload.recipe_id is not None:
        recipe = await session.get(Recipe, payload.recipe_id)
        if recipe is None or recipe.family_id != family_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")

    meal = Meal(
        **payload.model_dump(exclude={"ingredients", "tags"}),
        family_id=family_id,
        created_by_user_id=membership.user_id,
        ingredients=[MealIngredient(**i.model_dump()) for i in payload.ingredients],
        tags=clean_tags(payload.tags),
    )
    session.add(meal)
    await session.commit()

    logger.info(f"Meal created: {meal.id} in family {family_id}")
    return await load_meal(session, meal.id)


@router.put(
    "/meals/{meal_id}",
    response_model=MealResponse,
    summary="Update meal",
    description="Partial update; provided ingredients or tags replace the current ones",
)
async def update_meal(
    meal_id: str,
    payload: MealUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Meal:
    meal = await load_meal(session, parse_id(meal_id, "mealId"))
    await ensure_family_member(session, current_user, meal.family_id)

    for field, value in payload.model_dump(exclude_unset=True, exclude={"ingredients", "tags"}).items():
        if value is None and field in ("title", "status", "is_favorite"):
            continue
        setattr(meal, field, value)
    if payload.ingredients is not None:
        meal.ingredients = [MealIngredient(**i.model_dump()) for i in payload.ingredients]
    if payload.tags is not None:
        meal.tags = clean_tags(payload.tags)

    await session.commit()
    return await load_meal(session, meal.id)


# ============================================================================
# Meal plan
# ============================================================================

@router.get(
    "/{family_id}/plan",
    response_model=list[MealPlanWeekResponse],
    summary="List meal plan weeks",
    description="Planned weeks of a family, optionally only the one starting on weekStart",
)
async def list_plan(
    family_id: int,
    week_start: Optional[date] = Query(None, alias="weekStart"),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[MealPlanWeek]:
    query = (
        select(MealPlanWeek)
        .where(MealPlanWeek.family_id == family_id)
        .options(
            selectinload(MealPlanWeek.entries)
            .selectinload(MealPlanEntry.meal)
            .selectinload(Meal.ingredients),
            selectinload(MealPlanWeek.entries)
            .selectinload(MealPlanEntry.meal)
            .selectinload(Meal.tags),
        )
    )
    if week_start is not None:
        query = query.where(MealPlanWeek.week_start == week_start)

    result = await session.execute(query.order_by(MealPlanWeek.week_start.desc()))
    return list(result.scalars().all())


@router.post(
    "/{family_id}/plan",
    response_model=MealPlanEntryResponse,
    summary="Plan a meal",
    description="Put a meal in a (week, day, slot); an existing entry for the slot is replaced",
)
async def upsert_plan_entry(
    family_id: int,
    payload: MealPlanEntryUpsert,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> MealPlanEntry:
    meal = await session.get(Meal, payload.meal_id)
    if meal is None or meal.family_id != family_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meal not found")

    result = await session.execute(
        select(MealPlanWeek).where(
            MealPlanWeek.family_id == family_id,
            MealPlanWeek.week_start == payload.week_start,
        )
    )
    week = result.scalar_one_or_none()
    if week is None:
        week = MealPlanWeek(family_id=family_id, week_start=payload.week_start)
        session.add(week)
        await session.flush()

    result = await session.execute(
        select(MealPlanEntry).where(
            MealPlanEntry.week_id == week.id,
            MealPlanEntry.day_of_week == payload.day_of_week,
            MealPlanEntry.meal_slot == payload.meal_slot,
        )
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        entry = MealPlanEntry(
            week_id=week.id,
            day_of_week=payload.day_of_week,
            meal_slot=payload.meal_slot,
            added_by_user_id=membership.user_id,
        )
        session.add(entry)

    entry.meal_id = payload.meal_id
    entry.servings = payload.servings
    entry.notes = payload.notes
    await session.commit()

    logger.info(f"Meal plan entry saved: {entry.id} in family {family_id}")
    return await load_entry(session, entry.id)


@router.delete(
    "/plan/entry/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove planned meal",
)
async def delete_plan_entry(
    entry_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    entry = await load_entry(session, parse_id(entry_id, "entryId"))
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meal plan entry not found")
    await ensure_family_member(session, current_user, entry.week.family_id)

    await session.delete(entry)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
