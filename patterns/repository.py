"""Async repository pattern for database access.

Provides a generic base repository with row loading, row locking, create
and delete. Verticals subclass this to add domain-specific queries.

Services that mutate rows work with ORM instances (get_row); read paths
return plain dicts via to_dict().
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository.

    Subclass and set `model` to your SQLAlchemy model::

        class BookstoreRepository(BaseRepository[Bookstore]):
            model = Bookstore

            async def find_for_owner(self, owner_id: int):
                stmt = select(self.model).where(self.model.owner_id == owner_id)
                result = await self.session.execute(stmt)
                return result.scalars().first()
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- Get by ID --

    async def get_row(self, item_id: int, for_update: bool = False) -> ModelT | None:
        """Load a row by primary key, optionally locking it (SELECT ... FOR UPDATE)."""
        stmt = select(self.model).where(self.model.id == item_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # -- Create --

    async def create(self, data: dict[str, Any]) -> ModelT:
        """Create a new row and flush it so server defaults are populated."""
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        return item

    # -- Delete --

    async def delete(self, item: ModelT) -> None:
        """Delete a loaded row and flush, so follow-up queries no longer see it."""
        await self.session.delete(item)
        await self.session.flush()
