"""Tagged identifiers for catalog items.

Regular books and library books live in separate tables with overlapping
integer id spaces. Internally an item is always addressed by an ItemRef
(kind + raw id); the string form ``"42"`` / ``"library-42"`` exists only at
the HTTP boundary and is decoded immediately on the way in.
"""

from dataclasses import dataclass
from enum import Enum

from core.errors import ValidationError

LIBRARY_PREFIX = "library-"

# Largest value an INTEGER primary key column holds.
MAX_ID = 2**31 - 1


class ItemKind(str, Enum):
    REGULAR = "regular"
    LIBRARY = "library"


def _parse_raw_id(text: str) -> int:
    if not (text.isascii() and text.isdecimal()) or len(text.lstrip("0")) > len(str(MAX_ID)):
        raise ValidationError(f"Invalid item id: {text!r}", details={"id": text})
    raw_id = int(text)
    if not 0 < raw_id <= MAX_ID:
        raise ValidationError(f"Invalid item id: {text!r}", details={"id": text})
    return raw_id


def namespace_library_id(raw_id: int) -> str:
    """Encode a library book id for a listing shared with regular books."""
    return f"{LIBRARY_PREFIX}{raw_id}"


def strip_library_namespace(value: str) -> int:
    """Inverse of namespace_library_id."""
    if not value.startswith(LIBRARY_PREFIX):
        raise ValidationError(
            f"Not a library item id: {value!r}", details={"id": value}
        )
    return _parse_raw_id(value[len(LIBRARY_PREFIX):])


@dataclass(frozen=True)
class ItemRef:
    """A catalog item identifier tagged with its kind."""

    kind: ItemKind
    raw_id: int

    def __post_init__(self):
        raw_id = self.raw_id
        if isinstance(raw_id, bool) or not isinstance(raw_id, int) or not 0 < raw_id <= MAX_ID:
            raise ValidationError(
                f"Item id must be between 1 and {MAX_ID}, got {self.raw_id!r}",
                details={"id": self.raw_id},
            )

    @classmethod
    def regular(cls, raw_id: int) -> "ItemRef":
        return cls(ItemKind.REGULAR, raw_id)

    @classmethod
    def library(cls, raw_id: int) -> "ItemRef":
        return cls(ItemKind.LIBRARY, raw_id)

    @classmethod
    def parse(cls, value: str) -> "ItemRef":
        """Decode an external id: ``library-<n>`` or a bare ``<n>``."""
        value = value.strip()
        if value.startswith(LIBRARY_PREFIX):
            return cls.library(strip_library_namespace(value))
        return cls.regular(_parse_raw_id(value))

    def encode(self) -> str:
        if self.kind is ItemKind.LIBRARY:
            return namespace_library_id(self.raw_id)
        return str(self.raw_id)

    def __str__(self) -> str:
        return self.encode()
