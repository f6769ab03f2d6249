"""
Recipes Router
Family recipe box: recipes with ingredients, memories, favourites and share links.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.dependencies import parse_id, require_family_membership
from famconomy.api.schemas import (
    RecipeCreate,
    RecipeUpdate,
    RecipeResponse,
    RecipeMemoryCreate,
    RecipeMemoryResponse,
    FavoriteToggleResponse,
    ShareTokenResponse,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    FamilyMember,
    Recipe,
    RecipeFavorite,
    RecipeIngredient,
    RecipeMemory,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RECIPE_LOAD_OPTIONS = (
    selectinload(Recipe.ingredients),
    selectinload(Recipe.memories),
    selectinload(Recipe.favorites),
)


def recipe_response(recipe: Recipe, user_id=None) -> RecipeResponse:
    response = RecipeResponse.model_validate(recipe)
    response.is_favorite = user_id is not None and any(f.user_id == user_id for f in recipe.favorites)
    return response


async def load_recipe(
    session: AsyncSession,
    recipe_id: int,
    family_id: Optional[int] = None,
) -> Recipe:
    query = (
        select(Recipe)
        .where(Recipe.id == recipe_id)
        .options(*RECIPE_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    if family_id is not None:
        query = query.where(Recipe.family_id == family_id)

    recipe = (await session.execute(query)).scalar_one_or_none()
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return recipe


async def load_shared_recipe(session: AsyncSession, token: str) -> Recipe:
    result = await session.execute(
        select(Recipe).where(Recipe.share_token == token).options(*RECIPE_LOAD_OPTIONS)
    )
    recipe = result.scalar_one_or_none()
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return recipe


@router.get(
    "/{family_id}",
    response_model=list[RecipeResponse],
    summary="List family recipes",
)
async def list_recipes(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[RecipeResponse]:
    result = await session.execute(
        select(Recipe)
        .where(Recipe.family_id == family_id)
        .options(*RECIPE_LOAD_OPTIONS)
        .order_by(Recipe.title, Recipe.id)
    )
    return [recipe_response(r, membership.user_id) for r in result.scalars().all()]


@router.post(
    "/{family_id}",
    response_model=RecipeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create recipe",
)
async def create_recipe(
    family_id: int,
    payload: RecipeCreate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> RecipeResponse:
    data = payload.model_dump(exclude={"ingredients"})
    recipe = Recipe(
        **data,
        family_id=family_id,
        created_by_user_id=membership.user_id,
        ingredients=[RecipeIngredient(**i.model_dump()) for i in payload.ingredients],
    )
    session.add(recipe)
    await session.commit()

    logger.info(f"Recipe created: {recipe.id} in family {family_id}")
    return recipe_response(await load_recipe(session, recipe.id), membership.user_id)


@router.get(
    "/{family_id}/{recipe_id}",
    response_model=RecipeResponse,
    summary="Get recipe",
)
async def get_recipe(
    family_id: int,
    recipe_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> RecipeResponse:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)
    return recipe_response(recipe, membership.user_id)


@router.put(
    "/{family_id}/{recipe_id}",
    response_model=RecipeResponse,
    summary="Update recipe",
    description="Partial update; a provided ingredient list replaces the current one",
)
async def update_recipe(
    family_id: int,
    recipe_id: str,
    payload: RecipeUpdate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> RecipeResponse:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)

    update_data = payload.model_dump(exclude_unset=True, exclude={"ingredients"})
    for field, value in update_data.items():
        if value is None and field == "title":
            continue
        setattr(recipe, field, value)
    if payload.ingredients is not None:
        recipe.ingredients = [RecipeIngredient(**i.model_dump()) for i in payload.ingredients]

    await session.commit()
    return recipe_response(await load_recipe(session, recipe.id), membership.user_id)


@router.delete(
    "/{family_id}/{recipe_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete recipe",
)
async def delete_recipe(
    family_id: int,
    recipe_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Response:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)
    await session.delete(recipe)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{family_id}/{recipe_id}/share",
    response_model=ShareTokenResponse,
    summary="Create share link",
)
async def share_recipe(
    family_id: int,
    recipe_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> ShareTokenResponse:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)
    if not recipe.share_token:
        recipe.share_token = secrets.token_hex(16)
        await session.commit()
    return ShareTokenResponse(share_token=recipe.share_token)


@router.delete(
    "/{family_id}/{recipe_id}/share",
    response_model=ShareTokenResponse,
    summary="Revoke share link",
)
async def unshare_recipe(
    family_id: int,
    recipe_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> ShareTokenResponse:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)
    recipe.share_token = None
    await session.commit()
    return ShareTokenResponse(share_token=None)


@router.post(
    "/{family_id}/{recipe_id}/memories",
    response_model=RecipeMemoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add recipe memory",
)
async def add_memory(
    family_id: int,
    recipe_id: str,
    payload: RecipeMemoryCreate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> RecipeMemory:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)
    memory = RecipeMemory(recipe_id=recipe.id, user_id=membership.user_id, body=payload.body)
    session.add(memory)
    await session.commit()
    await session.refresh(memory)
    return memory


@router.post(
    "/{family_id}/{recipe_id}/favorite",
    response_model=FavoriteToggleResponse,
    summary="Toggle favourite",
)
async def toggle_favorite(
    family_id: int,
    recipe_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> FavoriteToggleResponse:
    recipe = await load_recipe(session, parse_id(recipe_id, "recipeId"), family_id)

    existing = next((f for f in recipe.favorites if f.user_id == membership.user_id), None)
    if existing is not None:
        await session.delete(existing)
    else:
        session.add(RecipeFavorite(recipe_id=recipe.id, user_id=membership.user_id))
    await session.commit()

    return FavoriteToggleResponse(recipe_id=recipe.id, is_favorite=existing is None)
