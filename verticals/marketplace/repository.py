"""Marketplace repositories — async database access.

Extends BaseRepository with marketplace queries: ownership lookups, the
merged catalog listing, and the review aggregates the rating engine needs.
"""

from fastapi import Depends
from sqlalchemy import String, func, literal_column, select, union_all, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from patterns.repository import BaseRepository
from verticals.marketplace.identifiers import ItemKind, ItemRef
from verticals.marketplace.models.db_models import (
    Book,
    Bookstore,
    LibraryBook,
    LibraryReview,
)
from verticals.marketplace.models.schemas import AvailabilityStatus, ReviewSort
from verticals.marketplace.rules import is_orderable


# ---------------------------------------------------------------------------
# Bookstore repository
# ---------------------------------------------------------------------------

class BookstoreRepository(BaseRepository[Bookstore]):
    """Repository for bookstores and their rating summary."""

    model = Bookstore

    async def get_owned(self, bookstore_id: int, owner_id: int) -> Bookstore | None:
        """The bookstore with this id, only if ``owner_id`` owns it."""
        stmt = select(Bookstore).where(
            Bookstore.id == bookstore_id,
            Bookstore.owner_id == owner_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_for_owner(self, owner_id: int) -> Bookstore | None:
        """First bookstore owned by a user, resolved through owner_id."""
        stmt = (
            select(Bookstore)
            .where(Bookstore.owner_id == owner_id)
            .order_by(Bookstore.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Catalog repositories
# ---------------------------------------------------------------------------

class BookRepository(BaseRepository[Book]):
    """Repository for marketplace (regular) books."""

    model = Book


class LibraryBookRepository(BaseRepository[LibraryBook]):
    """Repository for bookstore-supplied books."""

    model = LibraryBook


def _catalog_keys(model: type[Book] | type[LibraryBook]):
    """(kind, raw_id, title) per row, the shape both halves of the listing share."""
    return select(
        literal_column(f"'{model.kind.value}'", String(16)).label("kind"),
        model.id.label("raw_id"),
        model.title.label("title"),
    )


class CatalogRepository:
    """Resolves tagged item refs to rows and lists both kinds together."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.books = BookRepository(session)
        self.library_books = LibraryBookRepository(session)

    def for_kind(self, kind: ItemKind) -> BookRepository | LibraryBookRepository:
        if kind is ItemKind.LIBRARY:
            return self.library_books
        return self.books

    async def get_row(self, ref: ItemRef, for_update: bool = False) -> Book | LibraryBook | None:
        return await self.for_kind(ref.kind).get_row(ref.raw_id, for_update=for_update)

    async def list_catalog(
        self,
        page: int = 1,
        limit: int = 50,
        orderable_only: bool = False,
    ) -> tuple[list[dict], int]:
        """Merged listing of regular and library books, ordered by title.

        Library rows are emitted with namespaced ids so both kinds can share
        one id column without collisions.
        """
        library_stmt = _catalog_keys(LibraryBook)
        if orderable_only:
            library_stmt = library_stmt.where(
                LibraryBook.availability_status == AvailabilityStatus.AVAILABLE.value
            )
        merged = union_all(_catalog_keys(Book), library_stmt).subquery()

        page_stmt = (
            select(merged.c.kind, merged.c.raw_id)
            .order_by(func.lower(merged.c.title), merged.c.kind, merged.c.raw_id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(page_stmt)
        keys = [(ItemKind(kind), raw_id) for kind, raw_id in result.all()]
        total = (await self.session.execute(select(func.count()).select_from(merged))).scalar() or 0

        rows = {}
        for kind in ItemKind:
            ids = [raw_id for k, raw_id in keys if k is kind]
            if ids:
                model = self.for_kind(kind).model
                result = await self.session.execute(select(model).where(model.id.in_(ids)))
                rows.update({(kind, row.id): row for row in result.scalars().all()})

        items = []
        for key in keys:
            row = rows[key]
            data = row.to_dict()
            data["is_orderable"] = is_orderable(row)
            items.append(data)
        return items, total


# ---------------------------------------------------------------------------
# Review repository
# ---------------------------------------------------------------------------

_REVIEW_ORDER = {
    ReviewSort.NEWEST: (LibraryReview.created_at.desc(), LibraryReview.id.desc()),
    ReviewSort.OLDEST: (LibraryReview.created_at.asc(), LibraryReview.id.asc()),
    ReviewSort.HIGHEST: (LibraryReview.rating.desc(), LibraryReview.created_at.desc()),
    ReviewSort.LOWEST: (LibraryReview.rating.asc(), LibraryReview.created_at.desc()),
    ReviewSort.HELPFUL: (LibraryReview.helpful_count.desc(), LibraryReview.created_at.desc()),
}


class ReviewRepository(BaseRepository[LibraryReview]):
    """Repository for bookstore reviews and their aggregates."""

    model = LibraryReview

    async def get_for_user(self, bookstore_id: int, user_id: int) -> LibraryReview | None:
        stmt = select(LibraryReview).where(
            LibraryReview.bookstore_id == bookstore_id,
            LibraryReview.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_bookstore(
        self,
        bookstore_id: int,
        page: int = 1,
        limit: int = 10,
        sort: ReviewSort = ReviewSort.NEWEST,
    ) -> tuple[list[dict], int]:
        stmt = (
            select(LibraryReview)
            .where(LibraryReview.bookstore_id == bookstore_id)
            .order_by(*_REVIEW_ORDER[sort])
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(LibraryReview).where(
            LibraryReview.bookstore_id == bookstore_id
        )

        result = await self.session.execute(stmt)
        reviews = [row.to_dict() for row in result.scalars().all()]
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return reviews, total

    async def bookstores_reviewed_by(self, user_id: int) -> list[int]:
        stmt = select(LibraryReview.bookstore_id).where(LibraryReview.user_id == user_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def aggregate(self, bookstore_id: int) -> tuple[int, int]:
        """(count, sum of ratings) over the full current review set."""
        stmt = select(
            func.count(LibraryReview.id),
            func.coalesce(func.sum(LibraryReview.rating), 0),
        ).where(LibraryReview.bookstore_id == bookstore_id)
        count, total = (await self.session.execute(stmt)).one()
        return int(count or 0), int(total or 0)

    async def distribution(self, bookstore_id: int) -> dict[int, int]:
        """Histogram of ratings; every bucket from 1 to 5 is present."""
        stmt = (
            select(LibraryReview.rating, func.count())
            .where(LibraryReview.bookstore_id == bookstore_id)
            .group_by(LibraryReview.rating)
        )
        buckets = {rating: 0 for rating in range(1, 6)}
        for rating, count in (await self.session.execute(stmt)).all():
            buckets[int(rating)] = int(count)
        return buckets

    async def recent(self, bookstore_id: int, limit: int = 5) -> list[dict]:
        reviews, _ = await self.list_for_bookstore(
            bookstore_id, page=1, limit=limit, sort=ReviewSort.NEWEST
        )
        return reviews

    async def increment_helpful(self, review_id: int) -> int | None:
        """Bump helpful_count in SQL. Returns the new value, None if missing."""
        stmt = (
            update(LibraryReview)
            .where(LibraryReview.id == review_id)
            .values(helpful_count=LibraryReview.helpful_count + 1)
            .returning(LibraryReview.helpful_count)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------

def get_catalog_repository(
    session: AsyncSession = Depends(get_session),
) -> CatalogRepository:
    """FastAPI dependency for CatalogRepository."""
    return CatalogRepository(session)
