"""Shared fixtures: an in-memory SQLite database with a small marketplace."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from decimal import Decimal
from types import SimpleNamespace

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.database import get_session_context, init_db
from verticals.marketplace.models.db_models import Book, Bookstore, LibraryBook, User


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def seed(factory):
    """Two bookstores, three readers, and one book of each kind.

    The library book and the first regular book both get id 1, which is
    exactly the collision the tagged identifiers exist for.
    """
    async with get_session_context(factory) as s:
        owner = User(email="owner@example.com", full_name="Store Owner", role="bookstore_owner")
        other_owner = User(email="rival@example.com", full_name="Rival Owner", role="bookstore_owner")
        readers = [
            User(email=f"reader{i}@example.com", full_name=f"Reader {i}") for i in range(1, 4)
        ]
        admin = User(email="admin@example.com", full_name="Admin", role="admin")
        s.add_all([owner, other_owner, *readers, admin])
        await s.flush()

        store = Bookstore(owner_id=owner.id, name="Dar Al-Kutub")
        other_store = Bookstore(owner_id=other_owner.id, name="Other Books")
        s.add_all([store, other_store])
        await s.flush()

        library_book = LibraryBook(
            bookstore_id=store.id, title="The Prophet", author="Kahlil Gibran", price=Decimal("12.50")
        )
        regular_book = Book(
            bookstore_id=store.id, title="Dune", author="Frank Herbert",
            price=Decimal("9.99"), stock_quantity=0,
        )
        marketplace_book = Book(
            bookstore_id=None, title="Emma", author="Jane Austen", price=Decimal("5.00")
        )
        s.add_all([library_book, regular_book, marketplace_book])
        await s.flush()

        return SimpleNamespace(
            owner=owner.id,
            other_owner=other_owner.id,
            readers=[r.id for r in readers],
            admin=admin.id,
            store=store.id,
            other_store=other_store.id,
            library_book=library_book.id,
            regular_book=regular_book.id,
            marketplace_book=marketplace_book.id,
        )


@pytest_asyncio.fixture
async def summary(factory):
    """Read a bookstore's (rating, total_reviews) from a fresh session."""

    async def read(bookstore_id: int) -> tuple[Decimal, int]:
        async with factory() as s:
            store = await s.get(Bookstore, bookstore_id)
            return Decimal(store.rating), store.total_reviews

    return read
