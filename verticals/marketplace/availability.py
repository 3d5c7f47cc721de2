"""Availability status management for catalog items.

Status is a closed three-value vocabulary with free transitions: any value
may replace any other. What guards a change is validity of the new value and
ownership, which is always re-derived from ``Bookstore.owner_id`` rather than
from the user's cached ``bookstore_id``.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AuthorizationError, NotFoundError, ValidationError
from verticals.marketplace.identifiers import ItemKind, ItemRef
from verticals.marketplace.models.db_models import Book, LibraryBook
from verticals.marketplace.repository import BookstoreRepository, CatalogRepository
from verticals.marketplace.rules import is_orderable, parse_status

logger = logging.getLogger(__name__)


def _serialize(item: Book | LibraryBook) -> dict:
    data = item.to_dict()
    data["is_orderable"] = is_orderable(item)
    return data


class AvailabilityService:
    """Owner-scoped mutations on catalog items."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.catalog = CatalogRepository(session)
        self.bookstores = BookstoreRepository(session)

    async def _load(self, ref: ItemRef, for_update: bool = False) -> Book | LibraryBook:
        item = await self.catalog.get_row(ref, for_update=for_update)
        if item is None:
            raise NotFoundError(
                f"Item {ref.encode()} not found",
                details={"id": ref.encode(), "kind": ref.kind.value},
            )
        return item

    async def _require_owner(self, item: Book | LibraryBook, requester_user_id: int) -> None:
        owned = None
        if item.bookstore_id is not None:
            owned = await self.bookstores.get_owned(item.bookstore_id, requester_user_id)
        if owned is None:
            logger.warning(
                "User %s denied on item %s (bookstore %s)",
                requester_user_id, item.ref.encode(), item.bookstore_id,
            )
            raise AuthorizationError(
                "Only the owner of the listing bookstore can change this item",
                details={"id": item.ref.encode()},
            )

    async def get_item(self, ref: ItemRef) -> dict:
        return _serialize(await self._load(ref))

    async def set_availability(
        self,
        ref: ItemRef,
        requester_user_id: int,
        new_status: Any,
    ) -> dict:
        """Set an item's availability status and return the updated item."""
        status = parse_status(new_status)
        item = await self._load(ref, for_update=True)
        await self._require_owner(item, requester_user_id)

        previous = item.availability_status
        item.availability_status = status.value
        await self.session.flush()

        logger.info(
            "Item %s availability %s -> %s by user %s",
            ref.encode(), previous, status.value, requester_user_id,
        )
        return _serialize(item)

    async def add_library_book(self, requester_user_id: int, data: dict[str, Any]) -> dict:
        """Create a library book under the bookstore the requester owns."""
        bookstore = await self.bookstores.find_for_owner(requester_user_id)
        if bookstore is None:
            raise AuthorizationError(
                "You do not own a bookstore",
                details={"user_id": requester_user_id},
            )

        payload = dict(data)
        payload["availability_status"] = parse_status(
            payload.get("availability_status", "available")
        ).value
        payload["bookstore_id"] = bookstore.id
        payload.pop("id", None)

        item = await self.catalog.for_kind(ItemKind.LIBRARY).create(payload)
        logger.info("Library book %s added to bookstore %s", item.ref.encode(), bookstore.id)
        return _serialize(item)

    async def delete_item(self, ref: ItemRef, requester_user_id: int) -> None:
        """Hard-delete an owned catalog listing."""
        item = await self._load(ref, for_update=True)
        await self._require_owner(item, requester_user_id)
        await self.catalog.for_kind(ref.kind).delete(item)
        logger.info("Item %s deleted by user %s", ref.encode(), requester_user_id)


def parse_item_ref(value: str) -> ItemRef:
    """Decode an external item id, mapping bad input to ValidationError."""
    if not isinstance(value, str) or not value:
        raise ValidationError("Item id is required", details={"id": value})
    return ItemRef.parse(value)
