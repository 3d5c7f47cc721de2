"""Bookstore rating aggregation.

Every review mutation runs in one transaction together with a full
recomputation of the bookstore's ``rating`` and ``total_reviews``:

1. lock the bookstore row (SELECT ... FOR UPDATE) so writers to the same
   bookstore serialize;
2. apply the review insert/update/delete and flush;
3. re-query COUNT and SUM over the whole review set and write the summary.

The summary is never adjusted incrementally. If any step raises, the
session rolls back and neither the review nor the summary changes.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AuthorizationError, NotFoundError, ValidationError
from patterns.domain_config import RatingConfig
from verticals.marketplace.models.db_models import Bookstore, LibraryReview
from verticals.marketplace.models.schemas import ReviewSort
from verticals.marketplace.repository import BookstoreRepository, ReviewRepository
from verticals.marketplace.rules import validate_rating

logger = logging.getLogger(__name__)

ZERO_RATING = Decimal("0.00")

_UNSET: Any = object()


def average_rating(count: int, total: int, precision: Decimal = Decimal("0.01")) -> Decimal:
    """Mean rating rounded half-up; 0.00 for an empty review set."""
    if count == 0:
        return ZERO_RATING
    return (Decimal(total) / Decimal(count)).quantize(precision, rounding=ROUND_HALF_UP)


async def recompute_bookstore_rating(
    session: AsyncSession,
    bookstore: Bookstore,
    precision: Decimal = Decimal("0.01"),
) -> Bookstore:
    """Re-derive rating and total_reviews from the current review set.

    Must run in the same transaction as the review write that triggered it.
    """
    count, total = await ReviewRepository(session).aggregate(bookstore.id)
    bookstore.rating = average_rating(count, total, precision)
    bookstore.total_reviews = count
    await session.flush()
    logger.info(
        "Bookstore %s rating recomputed: %s over %d reviews",
        bookstore.id, bookstore.rating, count,
    )
    return bookstore


class ReviewService:
    """Review mutations and rating statistics for bookstores."""

    def __init__(self, session: AsyncSession, config: RatingConfig | None = None):
        self.session = session
        self.config = config or RatingConfig()
        self.reviews = ReviewRepository(session)
        self.bookstores = BookstoreRepository(session)

    # -- helpers --

    def _validate(self, rating: Any) -> int:
        return validate_rating(rating, self.config.min_rating, self.config.max_rating)

    async def _lock_bookstore(self, bookstore_id: int) -> Bookstore:
        bookstore = await self.bookstores.get_row(bookstore_id, for_update=True)
        if bookstore is None:
            raise NotFoundError(
                f"Bookstore {bookstore_id} not found",
                details={"bookstore_id": bookstore_id},
            )
        return bookstore

    async def _get_review(self, review_id: int) -> LibraryReview:
        review = await self.reviews.get_row(review_id)
        if review is None:
            raise NotFoundError(
                f"Review {review_id} not found", details={"review_id": review_id}
            )
        return review

    @staticmethod
    def _check_author(review: LibraryReview, user_id: int, is_admin: bool) -> None:
        if review.user_id != user_id and not is_admin:
            raise AuthorizationError(
                "You can only change your own review",
                details={"review_id": review.id},
            )

    async def _recompute(self, bookstore: Bookstore) -> Bookstore:
        return await recompute_bookstore_rating(self.session, bookstore, self.config.precision)

    async def _serialize(self, review: LibraryReview) -> dict:
        # a freshly inserted review has no reviewer loaded yet
        await self.session.refresh(review, ["user"])
        return review.to_dict()

    # -- mutations --

    async def submit_review(
        self,
        bookstore_id: int,
        user_id: int,
        rating: Any,
        title: str | None = None,
        text: str | None = None,
    ) -> dict:
        """Create the user's review of a bookstore, or update it in place."""
        rating = self._validate(rating)
        bookstore = await self._lock_bookstore(bookstore_id)

        review = await self.reviews.get_for_user(bookstore_id, user_id)
        if review is None:
            review = await self.reviews.create({
                "bookstore_id": bookstore_id,
                "user_id": user_id,
                "rating": rating,
                "review_title": title,
                "review_text": text,
            })
            action = "created"
        else:
            review.rating = rating
            review.review_title = title
            review.review_text = text
            review.updated_at = datetime.now(timezone.utc)
            action = "updated"
        await self.session.flush()

        await self._recompute(bookstore)
        logger.info("Review %s %s for bookstore %s by user %s", review.id, action, bookstore_id, user_id)
        return await self._serialize(review)

    async def update_review(
        self,
        review_id: int,
        user_id: int,
        is_admin: bool = False,
        rating: Any = _UNSET,
        title: Any = _UNSET,
        text: Any = _UNSET,
    ) -> dict:
        """Partial update of a review by id; author or admin only."""
        if rating is not _UNSET and rating is not None:
            rating = self._validate(rating)

        review = await self._get_review(review_id)
        self._check_author(review, user_id, is_admin)
        bookstore = await self._lock_bookstore(review.bookstore_id)

        if rating is not _UNSET and rating is not None:
            review.rating = rating
        if title is not _UNSET:
            review.review_title = title
        if text is not _UNSET:
            review.review_text = text
        review.updated_at = datetime.now(timezone.utc)
        await self.session.flush()

        await self._recompute(bookstore)
        return await self._serialize(review)

    async def delete_review(self, bookstore_id: int, user_id: int) -> None:
        """Retract the user's review of a bookstore."""
        bookstore = await self._lock_bookstore(bookstore_id)
        review = await self.reviews.get_for_user(bookstore_id, user_id)
        if review is None:
            raise NotFoundError(
                "Review not found",
                details={"bookstore_id": bookstore_id, "user_id": user_id},
            )
        await self._delete(bookstore, review)

    async def delete_review_by_id(self, review_id: int, user_id: int, is_admin: bool = False) -> None:
        review = await self._get_review(review_id)
        self._check_author(review, user_id, is_admin)
        bookstore = await self._lock_bookstore(review.bookstore_id)
        await self._delete(bookstore, review)

    async def _delete(self, bookstore: Bookstore, review: LibraryReview) -> None:
        review_id = review.id
        await self.reviews.delete(review)
        await self._recompute(bookstore)
        logger.info("Review %s deleted from bookstore %s", review_id, bookstore.id)

    async def delete_user_reviews(self, user_id: int) -> list[int]:
        """Remove every review by a user ahead of deleting the account.

        The database would cascade the rows away on its own, but without
        recomputing the summaries. Returns the affected bookstore ids.
        """
        bookstore_ids = await self.reviews.bookstores_reviewed_by(user_id)
        # ascending id order keeps lock acquisition consistent across writers
        for bookstore_id in sorted(bookstore_ids):
            bookstore = await self._lock_bookstore(bookstore_id)
            review = await self.reviews.get_for_user(bookstore_id, user_id)
            if review is not None:
                await self._delete(bookstore, review)
        return sorted(bookstore_ids)

    async def mark_helpful(self, review_id: int) -> int:
        helpful_count = await self.reviews.increment_helpful(review_id)
        if helpful_count is None:
            raise NotFoundError(
                f"Review {review_id} not found", details={"review_id": review_id}
            )
        return helpful_count

    # -- reads --

    async def get_stats(self, bookstore_id: int) -> dict:
        """Summary, zero-filled 1..5 histogram and the most recent reviews."""
        bookstore = await self.bookstores.get_row(bookstore_id)
        if bookstore is None:
            raise NotFoundError(
                f"Bookstore {bookstore_id} not found",
                details={"bookstore_id": bookstore_id},
            )
        return {
            "bookstore": {
                "id": bookstore.id,
                "name": bookstore.name,
                "rating": Decimal(bookstore.rating or ZERO_RATING).quantize(self.config.precision),
                "total_reviews": bookstore.total_reviews or 0,
            },
            "distribution": await self.reviews.distribution(bookstore_id),
            "recent_reviews": await self.reviews.recent(
                bookstore_id, limit=self.config.recent_reviews_limit
            ),
        }

    async def list_reviews(
        self,
        bookstore_id: int,
        page: int = 1,
        limit: int | None = None,
        sort: ReviewSort | str = ReviewSort.NEWEST,
    ) -> dict:
        try:
            sort = ReviewSort(sort)
        except ValueError:
            raise ValidationError(
                f"Unknown sort: {sort!r}",
                details={"allowed": [s.value for s in ReviewSort]},
            )
        limit = min(limit or self.config.default_page_size, self.config.max_page_size)

        reviews, total = await self.reviews.list_for_bookstore(bookstore_id, page, limit, sort)
        offset = (page - 1) * limit
        return {
            "data": reviews,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
                "has_next": offset + len(reviews) < total,
                "has_prev": page > 1,
            },
        }
