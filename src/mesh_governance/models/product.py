"""Data product models for the catalog."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator


class ProductStatus(str, Enum):
    """Lifecycle status of a data product."""

    ACTIVE = "active"
    DEVELOPMENT = "development"
    DEPRECATED = "deprecated"


class Sensitivity(str, Enum):
    """Access level governing the default authorization policy."""

    PUBLIC = "public"
    INTERNAL = "internal"
    RESTRICTED = "restricted"


class ProductCategory(str, Enum):
    """Kind of data a product publishes."""

    TRANSACTIONAL = "transactional"
    ANALYTICAL = "analytical"
    STREAMING = "streaming"


class UpdateFrequency(str, Enum):
    """How often the owning domain refreshes a product."""

    REAL_TIME = "real-time"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class QualityBand(str, Enum):
    """Coarse quality classification shown next to a quality score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class SortKey(str, Enum):
    """Catalog search orderings."""

    UPDATED = "updated"
    NAME = "name"
    QUALITY = "quality"
    CONSUMERS = "consumers"


ALL_DOMAINS = "all"


def quality_band_for(score: int) -> QualityBand:
    if score >= 90:
        return QualityBand.EXCELLENT
    if score >= 80:
        return QualityBand.GOOD
    if score >= 70:
        return QualityBand.FAIR
    return QualityBand.POOR


class DataProduct(BaseModel):
    """A named, owned unit of published data and its catalog metadata."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique product identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Free-text description")
    domain: str = Field(..., description="Owning domain")
    owner: str = Field(..., description="Owner identity")
    tags: list[str] = Field(default_factory=list, description="Search tags")
    status: ProductStatus = Field(default=ProductStatus.DEVELOPMENT)
    access_level: Sensitivity = Field(default=Sensitivity.INTERNAL)
    quality_score: int = Field(default=0, ge=0, le=100, description="Externally supplied quality score")
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    consumers: int = Field(default=0, ge=0)
    downloads: int = Field(default=0, ge=0)
    category: Optional[ProductCategory] = None
    update_frequency: Optional[UpdateFrequency] = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for tag in tags:
            tag = tag.strip()
            if tag:
                seen.setdefault(tag, None)
        return list(seen)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def quality_band(self) -> QualityBand:
        return quality_band_for(self.quality_score)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over name, description and tags."""
        needle = query.casefold()
        if not needle:
            return True
        return (
            needle in self.name.casefold()
            or needle in self.description.casefold()
            or any(needle in tag.casefold() for tag in self.tags)
        )


class ProductFeedback(BaseModel):
    """A consumer's rating of a data product."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    product_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
