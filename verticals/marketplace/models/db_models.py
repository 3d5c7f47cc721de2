"""SQLAlchemy models for the marketplace vertical.

Each model inherits from Base and uses TimestampMixin for ids and audit
columns. The to_dict() method provides a standard serialisation interface
used by repositories and routers.
"""

from decimal import Decimal
from typing import ClassVar

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, TimestampMixin, isoformat
from verticals.marketplace.identifiers import ItemKind, ItemRef
from verticals.marketplace.models.schemas import AvailabilityStatus, UserRole

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in AvailabilityStatus)
_STATUS_CHECK = f"availability_status IN ({_STATUS_VALUES})"


class User(TimestampMixin, Base):
    """A marketplace account."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default=UserRole.CUSTOMER.value
    )
    # Denormalized and known to drift; ownership always goes through
    # Bookstore.owner_id instead.
    bookstore_id: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Bookstore(TimestampMixin, Base):
    """A bookstore ("library") with its derived rating summary."""

    __tablename__ = "bookstores"

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2), nullable=False, default=Decimal("0.00"), index=True
    )
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    reviews: Mapped[list["LibraryReview"]] = relationship(
        back_populates="bookstore", cascade="all, delete-orphan", passive_deletes=True
    )


class _CatalogItem(TimestampMixin):
    """Columns shared by both item kinds."""

    kind: ClassVar[ItemKind]

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    availability_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AvailabilityStatus.AVAILABLE.value
    )

    @property
    def ref(self) -> ItemRef:
        return ItemRef(self.kind, self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.ref.encode(),
            "raw_id": self.id,
            "kind": self.kind.value,
            "bookstore_id": self.bookstore_id,
            "title": self.title,
            "author": self.author,
            "price": float(self.price),
            "description": self.description,
            "availability_status": self.availability_status,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class Book(_CatalogItem, Base):
    """A marketplace book. Optionally listed by a bookstore."""

    __tablename__ = "books"
    __table_args__ = (CheckConstraint(_STATUS_CHECK, name="ck_books_availability_status"),)

    kind = ItemKind.REGULAR

    bookstore_id: Mapped[int | None] = mapped_column(
        ForeignKey("bookstores.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Legacy counter; ordering never looks at it.
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class LibraryBook(_CatalogItem, Base):
    """A book supplied directly by a bookstore."""

    __tablename__ = "library_books"
    __table_args__ = (
        CheckConstraint(_STATUS_CHECK, name="ck_library_books_availability_status"),
    )

    kind = ItemKind.LIBRARY

    bookstore_id: Mapped[int] = mapped_column(
        ForeignKey("bookstores.id", ondelete="CASCADE"), nullable=False, index=True
    )


class LibraryReview(TimestampMixin, Base):
    """One user's review of one bookstore."""

    __tablename__ = "library_reviews"
    __table_args__ = (
        UniqueConstraint("bookstore_id", "user_id", name="uq_library_reviews_bookstore_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_library_reviews_rating"),
    )

    bookstore_id: Mapped[int] = mapped_column(
        ForeignKey("bookstores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    review_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    review_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_verified_purchase: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    bookstore: Mapped["Bookstore"] = relationship(back_populates="reviews")
    # joined so every review query carries the reviewer for to_dict()
    user: Mapped["User"] = relationship(lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookstore_id": self.bookstore_id,
            "user_id": self.user_id,
            "user": {"id": self.user.id, "full_name": self.user.full_name},
            "rating": self.rating,
            "review_title": self.review_title,
            "review_text": self.review_text,
            "is_verified_purchase": self.is_verified_purchase,
            "helpful_count": self.helpful_count,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
