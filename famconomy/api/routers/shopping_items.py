"""
Shopping Items Router
Items of a shopping list.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.dependencies import ensure_family_member, get_current_user, parse_id
from famconomy.api.schemas import ShoppingItemCreate, ShoppingItemUpdate, ShoppingItemResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import ShoppingItem, ShoppingList, User

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_list_family(session: AsyncSession, user: User, list_id: int) -> ShoppingList:
    shopping_list = await session.get(ShoppingList, list_id)
    if shopping_list is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping list not found.")
    await ensure_family_member(session, user, shopping_list.family_id)
    return shopping_list


async def get_item_for_user(session: AsyncSession, user: User, item_id: str) -> ShoppingItem:
    item = await session.get(ShoppingItem, parse_id(item_id, "itemId"))
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping item not found.")
    await get_list_family(session, user, item.shopping_list_id)
    return item


@router.get(
    "/list/{list_id}",
    response_model=list[ShoppingItemResponse],
    summary="List items of a shopping list",
)
async def list_items(
    list_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[ShoppingItem]:
    shopping_list = await get_list_family(session, current_user, parse_id(list_id, "listId"))
    result = await session.execute(
        select(ShoppingItem)
        .where(ShoppingItem.shopping_list_id == shopping_list.id)
        .order_by(ShoppingItem.is_completed, ShoppingItem.id)
    )
    return list(result.scalars().all())


@router.post(
    "",
    response_model=ShoppingItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add shopping item",
)
async def create_item(
    payload: ShoppingItemCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingItem:
    await get_list_family(session, current_user, payload.shopping_list_id)

    item = ShoppingItem(**payload.model_dump(), added_by_user_id=current_user.id)
    session.add(item)
    await session.commit()
    await session.refresh(item)
    return item


@router.put("/{item_id}", response_model=ShoppingItemResponse, summary="Update shopping item")
async def update_item(
    item_id: str,
    payload: ShoppingItemUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingItem:
    item = await get_item_for_user(session, current_user, item_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "is_completed"):
            continue
        setattr(item, field, value)

    await session.commit()
    await session.refresh(item)
    return item


@router.put("/{item_id}/toggle", response_model=ShoppingItemResponse, summary="Toggle item completed")
async def toggle_item(
    item_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ShoppingItem:
    item = await get_item_for_user(session, current_user, item_id)
    item.is_completed = not item.is_completed

    await session.commit()
    await session.refresh(item)
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete shopping item")
async def delete_item(
    item_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    item = await get_item_for_user(session, current_user, item_id)
    await session.delete(item)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
