"""
Dashboard rollup models.

All of these are computed on demand by the aggregation service and never
stored.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CatalogStats(BaseModel):
    """Headline numbers for the catalog page."""

    total_products: int = 0
    active_domains: int = 0
    total_consumers: int = 0
    average_quality: int = 0


class DomainRollup(BaseModel):
    """Per-domain summary for the domain dashboard."""

    domain: str
    total_products: int = 0
    active_products: int = 0
    total_consumers: int = 0
    total_downloads: int = 0
    average_quality: int = 0
    average_rating: Optional[float] = Field(None, description="Mean feedback rating, None without ratings")
    rating_count: int = 0


class ComplianceRollup(BaseModel):
    """Platform-wide compliance summary for the governance page."""

    total_rules: int = 0
    active_rules: int = 0
    rules_in_warning: int = 0
    total_violations: int = 0
    compliance_score: int = 100


class AccessSummary(BaseModel):
    """Counts of requests and grants by current (derived) status."""

    pending_requests: int = 0
    under_review_requests: int = 0
    approved_requests: int = 0
    denied_requests: int = 0
    active_grants: int = 0
    expiring_grants: int = 0
    expired_grants: int = 0
    revoked_grants: int = 0
