"""Marketplace business rules — pure functions.

Builds on the rules engine pattern: each rule takes an item (an ORM row or
its to_dict() form) and returns a RuleResult. No database access.

Regular books carry no stock gate: once listed they can always be ordered,
whatever their legacy stock_quantity says. Library books are gated only by
their availability status.
"""

from typing import Any, Iterable

from core.errors import ValidationError
from patterns.rules_engine import RuleResult, RuleSetResult, evaluate_rules
from verticals.marketplace.identifiers import ItemKind
from verticals.marketplace.models.schemas import AvailabilityStatus

__all__ = [
    "RuleResult",
    "RuleSetResult",
    "parse_status",
    "is_orderable",
    "check_orderable",
    "check_cart_orderable",
    "validate_rating",
]


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _kind(item: Any) -> ItemKind:
    kind = _field(item, "kind")
    if isinstance(kind, ItemKind):
        return kind
    try:
        return ItemKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown item kind: {kind!r}", details={"kind": kind})


def parse_status(value: Any) -> AvailabilityStatus:
    """Exact, case-sensitive match against the closed status vocabulary."""
    if isinstance(value, AvailabilityStatus):
        return value
    for status in AvailabilityStatus:
        if isinstance(value, str) and value == status.value:
            return status
    raise ValidationError(
        f"Invalid availability status: {value!r}",
        details={
            "availability_status": value,
            "allowed": [s.value for s in AvailabilityStatus],
        },
    )


def is_orderable(item: Any) -> bool:
    if _kind(item) is ItemKind.REGULAR:
        return True
    return _field(item, "availability_status") == AvailabilityStatus.AVAILABLE.value


def check_orderable(item: Any) -> RuleResult:
    """Explain whether an item can be ordered."""
    kind = _kind(item)
    status = _field(item, "availability_status")
    passed = is_orderable(item)

    if kind is ItemKind.REGULAR:
        message = "Marketplace book, always orderable"
    elif passed:
        message = "Library book is available"
    else:
        message = f"Library book is {status}"

    return RuleResult(
        passed=passed,
        rule_name="item_orderable",
        message=message,
        details={"kind": kind.value, "availability_status": status},
    )


def check_cart_orderable(items: Iterable[Any]) -> RuleSetResult:
    """Evaluate orderability for every item in a cart."""
    return evaluate_rules(*(check_orderable(item) for item in items))


def validate_rating(rating: Any, min_rating: int = 1, max_rating: int = 5) -> int:
    """Return the rating if it is an integer within range, else raise."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError(
            f"Rating must be an integer between {min_rating} and {max_rating}",
            details={"rating": rating},
        )
    if not min_rating <= rating <= max_rating:
        raise ValidationError(
            f"Rating must be between {min_rating} and {max_rating}",
            details={"rating": rating},
        )
    return rating
