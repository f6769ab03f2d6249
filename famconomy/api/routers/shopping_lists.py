"""
Shopping Lists Router
Family shopping lists, archive toggle, and merging a meal plan into a list.
"""

import logging
from typing import Literal

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
    ShoppingListCreate,
    ShoppingListUpdate,
    ShoppingListResponse,
    AddMealPlanRequest,
)
from famconomy.api.services.shopping_service import add_meal_plan_to_list, load_shopping_list
from famconomy.shared.database import get_session
from famconomy.shared.models import FamilyMember, ShoppingList, User

logger = logging.getLogger(__name__)

router = APIRouter()


def is_archived(shopping_list: ShoppingList) -> bool:
    """A list is archived when it has items and all of them are completed."""
    return bool(shopping_list.items) and all(item.is_completed for item in shopping_list.items)


async def get_list_for_user(session: AsyncSession, user: User, list_id: str) -> ShoppingList:
    shopping_list = await load_shopping_list(session, parse_id(list_id, "listId"))
    if shopping_list is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping list not found.")
    await ensure_family_member(session, user, shopping_list.family_id)
    return shopping_list


@router.get(
    "/family/{family_id}",
    response_model=list[ShoppingListResponse],
    summary="List shopping lists",
    description="Lists of a family; filter=active keeps lists with open items, archived the finished ones",
)
async def list_shopping_lists(
    family_id: int,
    filter: Literal["all", "active", "archived"] = Query("all"),
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[ShoppingList]:
    result = await session.execute(
        select(ShoppingList)
        .where(ShoppingList.family_id == family_id)
        .options(selectinload(ShoppingList.items))
        .order_by(ShoppingList.created_at.desc(), ShoppingList.id.desc())
    )
    lists = list(result.scalars().all())

    if filter == "active":
        return [sl for sl in lists if any(not item.is_completed for item in sl.items)]
    if filter == "archived":
        return [sl for sl in lists if is_archived(sl)]
    return lists


@router.post(
    "/add-meal-plan",
    response_model=ShoppingListResponse,
    summary="Add meal plan to list",
    description=(
        "Merge every ingredient of the week's meal plan into the list. "
        "Running it twice adds the quantities twice."
    ),
)
async def add_meal_plan(
    payload: AddMealPlanRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingList:
    if payload.family_id is None or payload.week_start is None or payload.shopping_list_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="familyId, weekStart and shoppingListId are required.",
        )

    await ensure_family_member(session, current_user, payload.family_id)
    return await add_meal_plan_to_list(
        session,
        family_id=payload.family_id,
        week_start=payload.week_start,
        shopping_list_id=payload.shopping_list_id,
    )


@router.get("/{list_id}", response_model=ShoppingListResponse, summary="Get shopping list")
async def get_shopping_list(
    list_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingList:
    return await get_list_for_user(session, current_user, list_id)


@router.post(
    "",
    response_model=ShoppingListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create shopping list",
)
async def create_shopping_list(
    payload: ShoppingListCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingList:
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="List name is required.")

    await ensure_family_member(session, current_user, payload.family_id)

    shopping_list = ShoppingList(
        family_id=payload.family_id,
        name=name,
        created_by_user_id=current_user.id,
    )
    session.add(shopping_list)
    await session.commit()

    logger.info(f"Shopping list created: {shopping_list.id} in family {shopping_list.family_id}")
    return await load_shopping_list(session, shopping_list.id)


@router.put("/{list_id}", response_model=ShoppingListResponse, summary="Rename shopping list")
async def update_shopping_list(
    list_id: str,
    payload: ShoppingListUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingList:
    shopping_list = await get_list_for_user(session, current_user, list_id)
    if payload.name is not None:
        shopping_list.name = payload.name.strip()

    await session.commit()
    return await load_shopping_list(session, shopping_list.id)


@router.put(
    "/{list_id}/archive",
    response_model=ShoppingListResponse,
    summary="Archive or reopen list",
    description="Completes every item of an open list, or reopens an archived one",
)
async def toggle_archive(
    list_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingList:
    shopping_list = await get_list_for_user(session, current_user, list_id)
    reopen = is_archived(shopping_list)
    for item in shopping_list.items:
        item.is_completed = not reopen

    await session.commit()
    return await load_shopping_list(session, shopping_list.id)


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete shopping list")
async def delete_shopping_list(
    list_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    shopping_list = await get_list_for_user(session, current_user, list_id)
    await session.delete(shopping_list)
    await session.commit()

    logger.info(f"Shopping list deleted: {shopping_list.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
