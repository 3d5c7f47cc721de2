"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- TimestampMixin: Adds an integer primary key and audit timestamps

Every marketplace table uses integer ids; item kinds keep separate id
spaces, which is why external identifiers are namespaced by kind.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all marketplace models."""
    pass


class TimestampMixin:
    """Mixin providing a surrogate key and standard audit columns.

    Adds:
    - id: autoincrementing integer primary key
    - created_at: Timestamp set on insert
    - updated_at: Timestamp updated on every change

    Server-generated timestamps are fetched during flush so that to_dict()
    never triggers a lazy load outside the async context.
    """

    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
