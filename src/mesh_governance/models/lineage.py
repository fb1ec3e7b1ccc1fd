"""Data lineage records: where a product's data comes from and goes to."""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class LineageRecord(BaseModel):
    """One source-to-destination flow feeding a data product."""

    id: str = Field(default_factory=lambda: f"lineage-{uuid4().hex[:8]}")
    product_id: str
    source: str = Field(..., description="Upstream system, e.g. a CRM")
    transformations: list[str] = Field(default_factory=list, description="Steps applied, in order")
    destination: str = Field(..., description="Where the product is materialized")
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
