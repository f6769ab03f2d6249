"""
Wishlists Router
Per-member wishlists inside a family, with item claiming and share links.

Lists with PARENTS visibility are hidden from child members other than
their owner. Only the owner or a guardian may change a list.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from famconomy.api.config import Settings, get_settings
from famconomy.api.dependencies import has_min_role, parse_id, require_family_membership
from famconomy.api.schemas import (
    WishlistCreate,
    WishlistUpdate,
    WishlistResponse,
    WishlistItemCreate,
    WishlistItemUpdate,
    WishlistItemClaim,
    WishlistItemResponse,
    WishlistShareResponse,
)
from famconomy.shared.database import get_session
from famconomy.shared.models import (
    FamilyMember,
    FamilyRole,
    Wishlist,
    WishlistItem,
    WishlistItemStatus,
    WishlistVisibility,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def can_view(wishlist: Wishlist, membership: FamilyMember) -> bool:
    if wishlist.visibility != WishlistVisibility.PARENTS:
        return True
    return wishlist.owner_user_id == membership.user_id or membership.role != FamilyRole.CHILD


def can_edit(wishlist: Wishlist, membership: FamilyMember) -> bool:
    return wishlist.owner_user_id == membership.user_id or has_min_role(membership, FamilyRole.GUARDIAN)


async def load_wishlist(session: AsyncSession, family_id: int, wishlist_id: int) -> Wishlist:
    result = await session.execute(
        select(Wishlist)
        .where(Wishlist.id == wishlist_id, Wishlist.family_id == family_id)
        .options(selectinload(Wishlist.items))
        .execution_options(populate_existing=True)
    )
    wishlist = result.scalar_one_or_none()
    if wishlist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist not found")
    return wishlist


async def visible_wishlist(
    session: AsyncSession,
    membership: FamilyMember,
    wishlist_id: str,
    edit: bool = False,
) -> Wishlist:
    """Load a wishlist the member may see (and, with ``edit``, change)."""
    wishlist = await load_wishlist(session, membership.family_id, parse_id(wishlist_id, "wishlistId"))
    if not can_view(wishlist, membership):
        # Hidden lists look missing to children
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist not found")
    if edit and not can_edit(wishlist, membership):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner or a guardian can change this wishlist.",
        )
    return wishlist


async def load_item(session: AsyncSession, wishlist: Wishlist, item_id: str) -> WishlistItem:
    item = await session.get(WishlistItem, parse_id(item_id, "itemId"))
    if item is None or item.wishlist_id != wishlist.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist item not found")
    return item


# ============================================================================
# Wishlists
# ============================================================================

@router.get(
    "/{family_id}/wishlists",
    response_model=list[WishlistResponse],
    summary="List family wishlists",
)
async def list_wishlists(
    family_id: int,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> list[Wishlist]:
    result = await session.execute(
        select(Wishlist)
        .where(Wishlist.family_id == family_id)
        .options(selectinload(Wishlist.items))
        .order_by(Wishlist.created_at, Wishlist.id)
    )
    return [w for w in result.scalars().all() if can_view(w, membership)]


@router.post(
    "/{family_id}/wishlists",
    response_model=WishlistResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create wishlist",
)
async def create_wishlist(
    family_id: int,
    payload: WishlistCreate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Wishlist:
    wishlist = Wishlist(**payload.model_dump(), family_id=family_id, owner_user_id=membership.user_id)
    session.add(wishlist)
    await session.commit()

    logger.info(f"Wishlist created: {wishlist.id} in family {family_id}")
    return await load_wishlist(session, family_id, wishlist.id)


@router.put(
    "/{family_id}/wishlists/{wishlist_id}",
    response_model=WishlistResponse,
    summary="Update wishlist",
)
async def update_wishlist(
    family_id: int,
    wishlist_id: str,
    payload: WishlistUpdate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Wishlist:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("title", "visibility"):
            continue
        setattr(wishlist, field, value)

    await session.commit()
    return await load_wishlist(session, family_id, wishlist.id)


@router.delete(
    "/{family_id}/wishlists/{wishlist_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete wishlist",
)
async def delete_wishlist(
    family_id: int,
    wishlist_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Response:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)
    await session.delete(wishlist)
    await session.commit()

    logger.info(f"Wishlist deleted: {wishlist.id} in family {family_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Items
# ============================================================================

@router.post(
    "/{family_id}/wishlists/{wishlist_id}/items",
    response_model=WishlistItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add wishlist item",
)
async def add_item(
    family_id: int,
    wishlist_id: str,
    payload: WishlistItemCreate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> WishlistItem:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)

    item = WishlistItem(**payload.model_dump(), wishlist_id=wishlist.id)
    session.add(item)
    await session.commit()
    await session.refresh(item)
    return item


@router.put(
    "/{family_id}/wishlists/{wishlist_id}/items/{item_id}",
    response_model=WishlistItemResponse,
    summary="Update wishlist item",
)
async def update_item(
    family_id: int,
    wishlist_id: str,
    item_id: str,
    payload: WishlistItemUpdate,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> WishlistItem:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)
    item = await load_item(session, wishlist, item_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "priority"):
            continue
        setattr(item, field, value)

    await session.commit()
    await session.refresh(item)
    return item


@router.delete(
    "/{family_id}/wishlists/{wishlist_id}/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete wishlist item",
)
async def delete_item(
    family_id: int,
    wishlist_id: str,
    item_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Response:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)
    item = await load_item(session, wishlist, item_id)

    await session.delete(item)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{family_id}/wishlists/{wishlist_id}/items/{item_id}/claim",
    response_model=WishlistItemResponse,
    summary="Claim wishlist item",
    description="Reserve or mark an item purchased; status IDEA releases the claim",
)
async def claim_item(
    family_id: int,
    wishlist_id: str,
    item_id: str,
    payload: WishlistItemClaim,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> WishlistItem:
    wishlist = await visible_wishlist(session, membership, wishlist_id)
    item = await load_item(session, wishlist, item_id)

    if (
        item.claimed_by_user_id is not None
        and item.claimed_by_user_id != membership.user_id
        and payload.status != WishlistItemStatus.IDEA
    ):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Item already claimed")

    item.status = payload.status
    item.claimed_by_user_id = None if payload.status == WishlistItemStatus.IDEA else membership.user_id

    await session.commit()
    await session.refresh(item)
    return item


# ============================================================================
# Share links
# ============================================================================

@router.post(
    "/{family_id}/wishlists/{wishlist_id}/share",
    response_model=WishlistShareResponse,
    summary="Create share link",
)
async def share_wishlist(
    family_id: int,
    wishlist_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WishlistShareResponse:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)
    wishlist.share_token = secrets.token_urlsafe(24)
    await session.commit()

    share_url = f"{settings.FRONTEND_URL.rstrip('/')}/share/wishlists/{wishlist.share_token}"
    return WishlistShareResponse(share_token=wishlist.share_token, share_url=share_url)


@router.post(
    "/{family_id}/wishlists/{wishlist_id}/share/revoke",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke share link",
)
async def revoke_share(
    family_id: int,
    wishlist_id: str,
    membership: FamilyMember = Depends(require_family_membership()),
    session: AsyncSession = Depends(get_session),
) -> Response:
    wishlist = await visible_wishlist(session, membership, wishlist_id, edit=True)
    wishlist.share_token = None
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def load_shared_wishlist(session: AsyncSession, token: str) -> Wishlist:
    """Wishlist behind a share token (public lookup)."""
    if not token or len(token) < 8:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid share token")
    result = await session.execute(
        select(Wishlist).where(Wishlist.share_token == token).options(selectinload(Wishlist.items))
    )
    wishlist = result.scalar_one_or_none()
    if wishlist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist not found")
    return wishlist
