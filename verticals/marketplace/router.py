"""Marketplace API router — catalog availability + bookstore ratings.

Demonstrates the standard router pattern:
- Reads use a request-scoped session via FastAPI Depends
- Writes run through run_in_transaction so conflicts are retried
- Caller identity via the principal middleware
- Service errors rendered by the app-level MarketplaceError handler
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware import Principal, require_principal
from core.database import SessionFactory, get_session, get_session_factory, run_in_transaction
from verticals.marketplace.availability import AvailabilityService, parse_item_ref
from verticals.marketplace.config import config
from verticals.marketplace.identifiers import MAX_ID
from verticals.marketplace.models.schemas import (
    AvailabilityUpdate,
    LibraryBookCreate,
    ReviewSort,
    ReviewSubmit,
    ReviewUpdate,
)
from verticals.marketplace.ratings import ReviewService
from verticals.marketplace.repository import CatalogRepository, get_catalog_repository

router = APIRouter()

# Row ids are INTEGER columns; anything outside that range is a 422.
RowId = Annotated[int, Path(ge=1, le=MAX_ID)]


async def _transaction(factory: SessionFactory, work):
    return await run_in_transaction(
        factory,
        work,
        max_retries=config.transactions.max_retries,
        backoff_base=config.transactions.backoff_base,
        backoff_max=config.transactions.backoff_max,
    )


def reviews_enabled() -> None:
    if not config.enable_reviews:
        raise HTTPException(status_code=404, detail="Reviews are disabled")


# ============================================================================
# Catalog Endpoints
# ============================================================================

@router.get("/catalog")
async def list_catalog(
    orderable_only: bool = False,
    page: int = Query(1, ge=1, le=MAX_ID),
    limit: int = Query(config.catalog_page_size, ge=1, le=100),
    repo: CatalogRepository = Depends(get_catalog_repository),
):
    """Regular and library books in one listing, with namespaced ids."""
    items, total = await repo.list_catalog(page=page, limit=limit, orderable_only=orderable_only)
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.get("/items/{item_id}")
async def get_item(item_id: str, session: AsyncSession = Depends(get_session)):
    """Get one item by its external id (``42`` or ``library-42``)."""
    return await AvailabilityService(session).get_item(parse_item_ref(item_id))


@router.put("/items/{item_id}/availability")
async def update_availability(
    item_id: str,
    request: AvailabilityUpdate,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Change an item's availability status (listing bookstore owner only)."""
    ref = parse_item_ref(item_id)
    item = await _transaction(
        factory,
        lambda s: AvailabilityService(s).set_availability(
            ref, principal.user_id, request.availability_status
        ),
    )
    return {"success": True, "item": item}


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(
    item_id: str,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Remove a catalog listing entirely."""
    ref = parse_item_ref(item_id)
    await _transaction(
        factory, lambda s: AvailabilityService(s).delete_item(ref, principal.user_id)
    )


@router.post("/bookstores/mine/library-books", status_code=201)
async def add_library_book(
    request: LibraryBookCreate,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Add a book to the caller's own bookstore."""
    return await _transaction(
        factory,
        lambda s: AvailabilityService(s).add_library_book(principal.user_id, request.model_dump()),
    )


# ============================================================================
# Review Endpoints
# ============================================================================

@router.get("/bookstores/{bookstore_id}/reviews", dependencies=[Depends(reviews_enabled)])
async def list_reviews(
    bookstore_id: RowId,
    page: int = Query(1, ge=1, le=MAX_ID),
    limit: Optional[int] = Query(None, ge=1),
    sort: ReviewSort = ReviewSort.NEWEST,
    session: AsyncSession = Depends(get_session),
):
    """Paginated reviews of a bookstore."""
    return await ReviewService(session, config.ratings).list_reviews(
        bookstore_id, page=page, limit=limit, sort=sort
    )


@router.get("/bookstores/{bookstore_id}/stats")
async def get_rating_stats(
    bookstore_id: RowId,
    session: AsyncSession = Depends(get_session),
):
    """Rating summary, 1-5 histogram and recent reviews."""
    return await ReviewService(session, config.ratings).get_stats(bookstore_id)


@router.post("/bookstores/{bookstore_id}/reviews", dependencies=[Depends(reviews_enabled)])
@router.put("/bookstores/{bookstore_id}/reviews", dependencies=[Depends(reviews_enabled)])
async def submit_review(
    bookstore_id: RowId,
    request: ReviewSubmit,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Create or replace the caller's review of a bookstore."""
    review = await _transaction(
        factory,
        lambda s: ReviewService(s, config.ratings).submit_review(
            bookstore_id,
            principal.user_id,
            request.rating,
            title=request.review_title,
            text=request.review_text,
        ),
    )
    return {"success": True, "data": review}


@router.delete("/bookstores/{bookstore_id}/reviews/mine", status_code=204)
async def retract_review(
    bookstore_id: RowId,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Delete the caller's review of a bookstore."""
    await _transaction(
        factory,
        lambda s: ReviewService(s, config.ratings).delete_review(bookstore_id, principal.user_id),
    )


@router.put("/reviews/{review_id}", dependencies=[Depends(reviews_enabled)])
async def update_review(
    review_id: RowId,
    request: ReviewUpdate,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Edit a review by id (author or admin)."""
    changes = request.model_dump(exclude_unset=True)
    fields = {}
    if "rating" in changes:
        fields["rating"] = changes["rating"]
    if "review_title" in changes:
        fields["title"] = changes["review_title"]
    if "review_text" in changes:
        fields["text"] = changes["review_text"]

    review = await _transaction(
        factory,
        lambda s: ReviewService(s, config.ratings).update_review(
            review_id, principal.user_id, is_admin=principal.is_admin, **fields
        ),
    )
    return {"success": True, "data": review}


@router.delete("/reviews/{review_id}", status_code=204)
async def delete_review(
    review_id: RowId,
    principal: Principal = Depends(require_principal),
    factory: SessionFactory = Depends(get_session_factory),
):
    """Delete a review by id (author or admin)."""
    await _transaction(
        factory,
        lambda s: ReviewService(s, config.ratings).delete_review_by_id(
            review_id, principal.user_id, is_admin=principal.is_admin
        ),
    )


@router.post(
    "/reviews/{review_id}/helpful",
    dependencies=[Depends(reviews_enabled), Depends(require_principal)],
)
async def mark_review_helpful(
    review_id: RowId,
    factory: SessionFactory = Depends(get_session_factory),
):
    """Count one more "helpful" vote on a review."""
    helpful_count = await _transaction(
        factory, lambda s: ReviewService(s, config.ratings).mark_helpful(review_id)
    )
    return {"success": True, "data": {"helpful_count": helpful_count}}
