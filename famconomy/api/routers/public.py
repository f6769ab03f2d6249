"""
Public Router
Unauthenticated pages and the ``/api`` aliases used by shared links.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.routers.invitations import invitation_details
from famconomy.api.routers.recipes import load_shared_recipe, recipe_response
from famconomy.api.routers.wishlists import load_shared_wishlist
from famconomy.api.schemas import InvitationDetailsResponse, RecipeResponse, WishlistResponse
from famconomy.shared.database import get_session
from famconomy.shared.models import Wishlist

logger = logging.getLogger(__name__)

router = APIRouter()

DELETE_DATA_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>FamConomy - Delete Your Data</title>
</head>
<body>
  <h1>Delete your FamConomy data</h1>
  <p>To delete your account and all data associated with it, email
  <a href="mailto:support@famconomy.com">support@famconomy.com</a> from the
  address you signed up with and ask for your account to be deleted.</p>
  <p>We remove your profile, family memberships, messages, tasks and any
  connected integration tokens within 30 days of the request.</p>
</body>
</html>
"""


@router.get("/delete-data", response_class=HTMLResponse, include_in_schema=False)
async def delete_data_page() -> HTMLResponse:
    return HTMLResponse(content=DELETE_DATA_HTML)


@router.get(
    "/api/invitations/details",
    response_model=InvitationDetailsResponse,
    summary="Invitation details (public)",
)
async def public_invitation_details(
    token: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> InvitationDetailsResponse:
    return await invitation_details(session, token)


@router.get(
    "/api/wishlists/shared/{token}",
    response_model=WishlistResponse,
    summary="Shared wishlist (public)",
)
async def shared_wishlist(
    token: str,
    session: AsyncSession = Depends(get_session),
) -> Wishlist:
    return await load_shared_wishlist(session, token)


@router.get(
    "/api/recipes/shared/{token}",
    response_model=RecipeResponse,
    summary="Shared recipe (public)",
)
async def shared_recipe(
    token: str,
    session: AsyncSession = Depends(get_session),
) -> RecipeResponse:
    return recipe_response(await load_shared_recipe(session, token))
