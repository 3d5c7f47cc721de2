"""Dataclass-based domain configuration pattern.

Each vertical defines its thresholds, limits, and feature flags as a
frozen dataclass. This gives you:
- Type safety (IDE autocompletion, mypy checking)
- Default values (sensible out-of-the-box)
- Immutability (frozen=True prevents accidental mutation)
- Easy overrides (from env vars)

Domain: a bookstore marketplace with bookstore ratings and item availability.
"""

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RatingConfig:
    """Review and rating aggregation settings."""

    min_rating: int = 1
    max_rating: int = 5
    precision: Decimal = Decimal("0.01")  # two fraction digits
    recent_reviews_limit: int = 5
    default_page_size: int = 10
    max_page_size: int = 50


@dataclass(frozen=True)
class TransactionConfig:
    """Retry policy for write conflicts on aggregate rows."""

    max_retries: int = 3
    backoff_base: float = 0.05  # seconds
    backoff_max: float = 1.0


# ---------------------------------------------------------------------------
# Top-level domain config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketplaceConfig:
    """Complete configuration for the marketplace vertical.

    Usage::

        config = MarketplaceConfig.from_env()
        if not config.ratings.min_rating <= rating <= config.ratings.max_rating:
            raise ValidationError(...)
    """

    ratings: RatingConfig = field(default_factory=RatingConfig)
    transactions: TransactionConfig = field(default_factory=TransactionConfig)

    # Feature flags
    enable_reviews: bool = True
    catalog_page_size: int = 50

    @classmethod
    def default(cls) -> "MarketplaceConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "MARKETPLACE_") -> "MarketplaceConfig":
        """Create config from environment variables.

        Example: MARKETPLACE_TX_MAX_RETRIES=5
        """
        config = cls()

        retries = os.getenv(f"{prefix}TX_MAX_RETRIES")
        if retries:
            config = replace(
                config,
                transactions=replace(config.transactions, max_retries=int(retries)),
            )

        recent = os.getenv(f"{prefix}RECENT_REVIEWS_LIMIT")
        if recent:
            config = replace(
                config,
                ratings=replace(config.ratings, recent_reviews_limit=int(recent)),
            )

        enable_reviews = os.getenv(f"{prefix}ENABLE_REVIEWS")
        if enable_reviews:
            config = replace(config, enable_reviews=enable_reviews.lower() == "true")

        return config
