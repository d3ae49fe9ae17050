"""Schema for equipment listings and categories."""

import logging
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Optional

from beanie import Document, Indexed
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class Condition(StrEnum):
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"


class ListingStatus(StrEnum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    LIVE = "LIVE"
    SOLD = "SOLD"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"


class Listing(BaseModel):
    """A listing as returned by search.

    Field names match the store's document fields; the JSON form uses camelCase.
    """

    id: str
    title: str
    description: str = ""
    brand: Optional[str] = None
    model: Optional[str] = None
    category_id: str
    condition: Condition
    price: Decimal
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    negotiable: bool = False
    pickup_only: bool = False
    can_arrange_shipping: bool = False
    status: ListingStatus = ListingStatus.DRAFT
    is_active: bool = True
    views: int = 0
    saves: int = 0
    seller_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    # Only set on free-text searches
    relevance_score: Optional[float] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class Category(BaseModel):
    """A node of the category tree."""

    id: str
    name: str
    slug: Optional[str] = None
    parent_id: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListingDocument(Document):
    """MongoDB document for listings.

    Owned by the listing management workflows; search only reads it.
    """

    id: str  # type: ignore[assignment]
    title: str
    description: str = ""
    brand: Optional[str] = None
    model: Optional[str] = None
    category_id: Annotated[str, Indexed()]
    condition: Annotated[Condition, Indexed()]
    price: Annotated[Decimal, Indexed()]
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    negotiable: bool = False
    pickup_only: bool = False
    can_arrange_shipping: bool = False
    status: Annotated[ListingStatus, Indexed()] = ListingStatus.DRAFT
    is_active: bool = True
    views: int = 0
    saves: int = 0
    seller_id: Optional[str] = None
    created_at: Annotated[datetime, Indexed()] = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(protected_namespaces=())

    class Settings:
        name = "listings"
        indexes = [
            [("is_active", 1), ("status", 1), ("created_at", -1)],  # Default browse order
            [("views", -1), ("saves", -1), ("created_at", -1)],  # Relevance proxy sort
            [("latitude", 1), ("longitude", 1)],  # Bounding box search
            [("city", 1), ("state", 1)],  # Location facet
        ]


class CategoryDocument(Document):
    """MongoDB document for categories."""

    id: str  # type: ignore[assignment]
    name: Annotated[str, Indexed()]
    slug: Optional[str] = None
    parent_id: Annotated[Optional[str], Indexed()] = None

    class Settings:
        name = "categories"
