"""Pydantic schemas for API request/response validation.

Rating and availability values are accepted loosely here and validated by
the service layer, so that bad values surface as structured ValidationError
responses rather than framework 422s.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    COMING_SOON = "coming_soon"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    BOOKSTORE_OWNER = "bookstore_owner"
    ADMIN = "admin"


class ReviewSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    HIGHEST = "highest"
    LOWEST = "lowest"
    HELPFUL = "helpful"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class AvailabilityUpdate(BaseModel):
    availability_status: Any


class LibraryBookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    availability_status: str = AvailabilityStatus.AVAILABLE.value


class ReviewSubmit(BaseModel):
    rating: Any
    review_title: Optional[str] = Field(None, max_length=255)
    review_text: Optional[str] = None


class ReviewUpdate(BaseModel):
    rating: Any = None
    review_title: Optional[str] = Field(None, max_length=255)
    review_text: Optional[str] = None

