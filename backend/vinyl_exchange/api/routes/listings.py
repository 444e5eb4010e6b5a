"""Listing Routes — browse, create, edit and withdraw records."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from vinyl_exchange.api.dependencies import get_current_user_id, get_listing_catalog
from vinyl_exchange.core.domain_types import UserId
from vinyl_exchange.schemas.listing import ListingCreate, ListingResponse, ListingUpdate
from vinyl_exchange.services.listing_catalog import ListingCatalog

router = APIRouter(prefix="/api/v1/listings", tags=["listings"])


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    body: ListingCreate,
    user_id: UserId = Depends(get_current_user_id),
    catalog: ListingCatalog = Depends(get_listing_catalog),
):
    return await catalog.create_listing(user_id, body.model_dump())


@router.get("", response_model=list[ListingResponse])
async def list_listings(
    seller_id: UUID | None = Query(None),
    genre: str | None = Query(None, max_length=100),
    artist: str | None = Query(None, max_length=300),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    catalog: ListingCatalog = Depends(get_listing_catalog),
):
    """Active listings newest first; with seller_id, that seller's listings in any status."""
    return await catalog.list_listings(seller_id, genre, artist, limit, offset)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: UUID, catalog: ListingCatalog = Depends(get_listing_catalog),
):
    return await catalog.get_listing(listing_id)


@router.patch("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: UUID,
    body: ListingUpdate,
    user_id: UserId = Depends(get_current_user_id),
    catalog: ListingCatalog = Depends(get_listing_catalog),
):
    return await catalog.update_listing(
        listing_id, user_id, body.model_dump(exclude_unset=True),
    )


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    listing_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    catalog: ListingCatalog = Depends(get_listing_catalog),
):
    await catalog.delete_listing(listing_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
