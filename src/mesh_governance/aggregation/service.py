"""
Aggregation Service for the governance dashboards.

Computes domain, compliance, catalog and access rollups on demand from
component snapshots. Nothing here is cached or stored, so every rollup
reflects the state at the time of the call.
"""

from typing import Optional

from mesh_governance.access.lifecycle import AccessLifecycleManager
from mesh_governance.catalog.feedback import FeedbackBoard
from mesh_governance.catalog.index import CatalogIndex, round_half_up
from mesh_governance.compliance.registry import ComplianceRuleRegistry
from mesh_governance.core import NotFoundError
from mesh_governance.models.access import GrantStatus, RequestStatus
from mesh_governance.models.compliance import RuleStatus
from mesh_governance.models.dashboard import (
    AccessSummary,
    CatalogStats,
    ComplianceRollup,
    DomainRollup,
)
from mesh_governance.models.product import DataProduct, ProductStatus

MAX_COMPLIANCE_SCORE = 100


class AggregationService:
    """
    Dashboard rollups.

    Reads only; never mutates any component it aggregates.
    """

    def __init__(
        self,
        catalog: CatalogIndex,
        lifecycle: AccessLifecycleManager,
        compliance: ComplianceRuleRegistry,
        feedback: Optional[FeedbackBoard] = None,
    ):
        """
        Initialize the aggregation service.

        Args:
            catalog: Source of product snapshots.
            lifecycle: Source of requests and grants.
            compliance: Source of compliance rules.
            feedback: Optional source of product ratings.
        """
        self.catalog = catalog
        self.lifecycle = lifecycle
        self.compliance = compliance
        self.feedback = feedback

    def domain_rollups(self) -> list[DomainRollup]:
        """
        Summarize every domain present in the catalog.

        Returns:
            One rollup per domain, sorted by domain name.
        """
        by_domain: dict[str, list[DataProduct]] = {}
        for product in self.catalog.snapshot():
            by_domain.setdefault(product.domain, []).append(product)

        ratings = self.feedback.ratings_by_product() if self.feedback else {}
        return [
            self._rollup(domain, by_domain[domain], ratings)
            for domain in sorted(by_domain)
        ]

    def domain_rollup(self, domain: str) -> DomainRollup:
        """
        Summarize one domain.

        Raises:
            NotFoundError: If no product belongs to the domain.
        """
        products = [p for p in self.catalog.snapshot() if p.domain == domain]
        if not products:
            raise NotFoundError(
                f"Domain '{domain}' has no data products",
                entity_type="domain",
                entity_id=domain,
            )
        ratings = self.feedback.ratings_by_product() if self.feedback else {}
        return self._rollup(domain, products, ratings)

    def compliance_rollup(self) -> ComplianceRollup:
        """
        Summarize compliance across all enabled rules.

        The score starts at 100 and loses each enabled rule's violations
        weighted by severity (low 1, medium 2, high 3, critical 5). It never
        leaves the range 0..100.
        """
        rules = self.compliance.list_rules()
        enabled = [r for r in rules if r.enabled]

        penalty = sum(r.penalty for r in enabled)
        score = max(0, min(MAX_COMPLIANCE_SCORE, MAX_COMPLIANCE_SCORE - penalty))

        return ComplianceRollup(
            total_rules=len(rules),
            active_rules=len(enabled),
            rules_in_warning=sum(1 for r in enabled if r.status == RuleStatus.WARNING),
            total_violations=sum(r.violations for r in enabled),
            compliance_score=score,
        )

    def catalog_stats(self) -> CatalogStats:
        return self.catalog.compute_aggregate_stats()

    def access_summary(self) -> AccessSummary:
        """Count requests by status and grants by derived status."""
        requests = self.lifecycle.list_requests()
        grants = self.lifecycle.list_grants()

        def count_requests(status: RequestStatus) -> int:
            return sum(1 for r in requests if r.status == status)

        def count_grants(status: GrantStatus) -> int:
            return sum(1 for g in grants if g.status == status)

        return AccessSummary(
            pending_requests=count_requests(RequestStatus.PENDING),
            under_review_requests=count_requests(RequestStatus.UNDER_REVIEW),
            approved_requests=count_requests(RequestStatus.APPROVED),
            denied_requests=count_requests(RequestStatus.DENIED),
            active_grants=count_grants(GrantStatus.ACTIVE),
            expiring_grants=count_grants(GrantStatus.EXPIRING),
            expired_grants=count_grants(GrantStatus.EXPIRED),
            revoked_grants=count_grants(GrantStatus.REVOKED),
        )

    def _rollup(
        self,
        domain: str,
        products: list[DataProduct],
        ratings: dict[str, list[int]],
    ) -> DomainRollup:
        domain_ratings = [r for p in products for r in ratings.get(p.id, [])]
        average_rating = None
        if domain_ratings:
            average_rating = round(sum(domain_ratings) / len(domain_ratings), 2)

        return DomainRollup(
            domain=domain,
            total_products=len(products),
            active_products=sum(1 for p in products if p.status == ProductStatus.ACTIVE),
            total_consumers=sum(p.consumers for p in products),
            total_downloads=sum(p.downloads for p in products),
            average_quality=round_half_up(sum(p.quality_score for p in products) / len(products)),
            average_rating=average_rating,
            rating_count=len(domain_ratings),
        )
