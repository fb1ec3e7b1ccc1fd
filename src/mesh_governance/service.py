"""
Governance service facade.

Wires the catalog, lineage, policy, access lifecycle, audit, compliance,
feedback and aggregation components from one ``GovernanceConfig``. The HTTP API and the
demo seed are thin clients of this class.

Authorization for owner actions (review, approve, deny, revoke, deprecate)
is checked here: administrators and data stewards may act on any product,
domain owners only on products they own.
"""

from datetime import datetime
from typing import Callable, Optional, Union

from mesh_governance.access.lifecycle import AccessLifecycleManager
from mesh_governance.aggregation.service import AggregationService
from mesh_governance.audit.log import AuditLog
from mesh_governance.catalog.feedback import FeedbackBoard
from mesh_governance.catalog.index import BeforeCommit, CatalogIndex
from mesh_governance.catalog.lineage import LineageRegistry
from mesh_governance.compliance.registry import ComplianceRuleRegistry
from mesh_governance.core import (
    AuthorizationError,
    Clock,
    GovernanceConfig,
    get_logger,
    utc_now,
)
from mesh_governance.models.access import (
    AccessGrant,
    AccessRequest,
    AccessType,
    ApiKey,
    GrantFilters,
    RequestFilters,
)
from mesh_governance.models.audit import (
    AuditAction,
    AuditChainVerification,
    AuditFilters,
    AuditPage,
)
from mesh_governance.models.compliance import ComplianceRule, RuleSeverity
from mesh_governance.models.dashboard import (
    AccessSummary,
    CatalogStats,
    ComplianceRollup,
    DomainRollup,
)
from mesh_governance.models.lineage import LineageRecord
from mesh_governance.models.policy import Policy, Principal, Role
from mesh_governance.models.product import (
    ALL_DOMAINS,
    DataProduct,
    ProductFeedback,
    ProductStatus,
    SortKey,
)
from mesh_governance.notifications.dispatcher import NotificationDispatcher, Notifier
from mesh_governance.policy.store import PolicyStore

logger = get_logger(__name__)

# Roles that may act on any product regardless of ownership
PLATFORM_ROLES = frozenset({Role.ADMIN, Role.DATA_STEWARD})


class GovernanceService:
    """Single entry point to the catalog and access lifecycle engine."""

    def __init__(
        self,
        config: Optional[GovernanceConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
    ):
        """
        Build all components.

        Args:
            config: Engine configuration; defaults to ``GovernanceConfig()``.
            notifier: Delivery channel for owner notifications; defaults to logging.
            clock: Time source shared by every component.
        """
        self.config = config or GovernanceConfig()
        self.clock = clock

        self.audit_log = AuditLog(capacity=self.config.audit_capacity, clock=clock)
        self.catalog = CatalogIndex(clock=clock)
        self.feedback = FeedbackBoard(self.catalog, clock=clock)
        self.lineage = LineageRegistry(self.catalog, clock=clock)
        self.policy_store = PolicyStore(self.audit_log, clock=clock)
        self.dispatcher = NotificationDispatcher(
            notifier=notifier,
            max_workers=self.config.notification_workers,
        )
        self.lifecycle = AccessLifecycleManager(
            catalog=self.catalog,
            policy_store=self.policy_store,
            audit_log=self.audit_log,
            dispatcher=self.dispatcher,
            grant_duration=self.config.grant_duration,
            warning_window=self.config.expiry_warning_window,
            clock=clock,
        )
        self.compliance = ComplianceRuleRegistry(clock=clock)
        self.aggregation = AggregationService(
            catalog=self.catalog,
            lifecycle=self.lifecycle,
            compliance=self.compliance,
            feedback=self.feedback,
        )

    def close(self) -> None:
        """Stop the notification workers, waiting for queued deliveries."""
        self.dispatcher.shutdown(wait=True)

    # ==================== Catalog ====================

    def search_products(
        self,
        query: str = "",
        domain: Optional[str] = ALL_DOMAINS,
        sort_key: Union[SortKey, str] = SortKey.UPDATED,
    ) -> list[DataProduct]:
        return self.catalog.search(query=query, domain=domain, sort_key=sort_key)

    def get_product(self, product_id: str) -> DataProduct:
        return self.catalog.get(product_id)

    def list_domains(self) -> list[str]:
        return sorted(self.catalog.list_domains())

    def catalog_stats(self) -> CatalogStats:
        return self.catalog.compute_aggregate_stats()

    def publish_product(self, principal: Principal, product: DataProduct) -> DataProduct:
        """
        Publish a product into the catalog.

        The audit entry is appended before the product becomes visible, so a
        failed append leaves the catalog unchanged.

        Raises:
            AuthorizationError: If a plain data consumer publishes.
            ValidationError: If the catalog rejects the product.
            AuditStorageExhaustedError: If the audit log is full.
        """
        if principal.role == Role.DATA_CONSUMER:
            raise AuthorizationError(
                "Data consumers cannot publish data products",
                principal_id=principal.id,
                required_role=Role.DOMAIN_OWNER.value,
            )
        return self.catalog.publish(
            product,
            before_commit=self._product_audit(principal, AuditAction.PRODUCT_PUBLISHED, lambda p: {
                "name": p.name,
                "domain": p.domain,
                "access_level": p.access_level.value,
            }),
        )

    def update_quality(self, principal: Principal, product_id: str, quality_score: int) -> DataProduct:
        self._authorize_owner_action(principal, product_id)
        return self.catalog.update_quality(
            product_id,
            quality_score,
            before_commit=self._product_audit(principal, AuditAction.PRODUCT_UPDATED, lambda p: {
                "quality_score": p.quality_score,
            }),
        )

    def deprecate_product(self, principal: Principal, product_id: str) -> DataProduct:
        """
        Deprecate a product. Existing grants are untouched; new requests fail.

        Raises:
            AuthorizationError: If the principal may not act on the product.
            InvalidStateError: If the product is already deprecated.
        """
        self._authorize_owner_action(principal, product_id)
        return self.catalog.set_status(
            product_id,
            ProductStatus.DEPRECATED,
            before_commit=self._product_audit(principal, AuditAction.PRODUCT_DEPRECATED, lambda p: {}),
        )

    def submit_feedback(
        self,
        principal: Principal,
        product_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> ProductFeedback:
        return self.feedback.submit(product_id, principal.id, rating, comment)

    def list_feedback(self, product_id: str) -> list[ProductFeedback]:
        self.catalog.get(product_id)
        return self.feedback.list_for_product(product_id)

    def register_lineage(
        self,
        principal: Principal,
        product_id: str,
        source: str,
        destination: str,
        transformations: Optional[list[str]] = None,
    ) -> LineageRecord:
        """
        Record where a product's data comes from and where it lands.

        Raises:
            AuthorizationError: If the principal may not act on the product.
            ValidationError: If source or destination is blank.
        """
        self._authorize_owner_action(principal, product_id)

        def audit(record: LineageRecord) -> None:
            if self.policy_store.get().audit_logging:
                self.audit_log.append(
                    action=AuditAction.LINEAGE_RECORDED,
                    actor_id=principal.id,
                    subject_type="lineage",
                    subject_id=record.id,
                    details={
                        "product_id": record.product_id,
                        "source": record.source,
                        "destination": record.destination,
                    },
                )

        return self.lineage.register(
            product_id, source, destination, transformations, before_commit=audit,
        )

    def list_lineage(self, product_id: Optional[str] = None) -> list[LineageRecord]:
        if product_id is None:
            return self.lineage.list_records()
        self.catalog.get(product_id)
        return self.lineage.list_for_product(product_id)

    # ==================== Access ====================

    def submit_request(
        self,
        principal: Principal,
        product_id: str,
        access_type: Union[AccessType, str] = AccessType.API,
        justification: Optional[str] = None,
    ) -> AccessRequest:
        return self.lifecycle.submit_request(
            user_id=principal.id,
            product_id=product_id,
            access_type=access_type,
            justification=justification,
        )

    def start_review(self, principal: Principal, request_id: str) -> AccessRequest:
        request = self.lifecycle.get_request(request_id)
        self._authorize_owner_action(principal, request.product_id)
        return self.lifecycle.start_review(request_id=request_id, reviewer_id=principal.id)

    def approve_request(
        self,
        principal: Principal,
        request_id: str,
        expected_version: Optional[int] = None,
    ) -> AccessRequest:
        request = self.lifecycle.get_request(request_id)
        self._authorize_owner_action(principal, request.product_id)
        return self.lifecycle.approve(
            request_id=request_id,
            approver_id=principal.id,
            expected_version=expected_version,
        )

    def deny_request(
        self,
        principal: Principal,
        request_id: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> AccessRequest:
        request = self.lifecycle.get_request(request_id)
        self._authorize_owner_action(principal, request.product_id)
        return self.lifecycle.deny(
            request_id=request_id,
            approver_id=principal.id,
            reason=reason,
            expected_version=expected_version,
        )

    def get_request(self, request_id: str) -> AccessRequest:
        return self.lifecycle.get_request(request_id)

    def list_requests(self, filters: Optional[RequestFilters] = None) -> list[AccessRequest]:
        return self.lifecycle.list_requests(filters)

    def revoke_grant(self, principal: Principal, grant_id: str, reason: Optional[str] = None) -> AccessGrant:
        grant = self.lifecycle.get_grant(grant_id)
        self._authorize_owner_action(principal, grant.product_id)
        return self.lifecycle.revoke(grant_id=grant_id, actor_id=principal.id, reason=reason)

    def record_usage(self, principal: Principal, grant_id: str) -> AccessGrant:
        """
        Count one use of a grant.

        Raises:
            AuthorizationError: If the principal is neither the holder nor platform staff.
        """
        self._require_holder(principal, self.lifecycle.get_grant(grant_id))
        return self.lifecycle.record_usage(grant_id=grant_id)

    def get_grant(self, grant_id: str) -> AccessGrant:
        return self.lifecycle.get_grant(grant_id)

    def list_grants(self, filters: Optional[GrantFilters] = None) -> list[AccessGrant]:
        return self.lifecycle.list_grants(filters)

    def issue_api_key(
        self,
        principal: Principal,
        grant_id: str,
        name: Optional[str] = None,
    ) -> tuple[str, ApiKey]:
        """
        Issue an API key for an ``api`` grant. The raw key is returned only here.

        Raises:
            AuthorizationError: If the principal is neither the holder nor platform staff.
        """
        self._require_holder(principal, self.lifecycle.get_grant(grant_id))
        return self.lifecycle.issue_api_key(grant_id, actor_id=principal.id, name=name)

    def get_api_key(self, key_id: str) -> ApiKey:
        return self.lifecycle.get_api_key(key_id)

    def list_api_keys(
        self,
        holder_id: Optional[str] = None,
        grant_id: Optional[str] = None,
    ) -> list[ApiKey]:
        return self.lifecycle.list_api_keys(holder_id=holder_id, grant_id=grant_id)

    # ==================== Policy and audit ====================

    def get_policy(self, principal: Principal) -> Policy:
        """
        Current policy version.

        Raises:
            AuthorizationError: If the principal is not an administrator.
        """
        if not principal.is_admin:
            raise AuthorizationError(
                "Only administrators may view governance policy",
                principal_id=principal.id,
                required_role=Role.ADMIN.value,
            )
        return self.policy_store.get()

    def update_policy(self, principal: Principal, **changes: bool) -> Policy:
        return self.policy_store.update(principal, **changes)

    def query_audit(self, filters: Optional[AuditFilters] = None) -> AuditPage:
        return self.audit_log.query(filters)

    def verify_audit_chain(self) -> AuditChainVerification:
        return self.audit_log.verify_chain()

    # ==================== Compliance ====================

    def register_rule(
        self,
        principal: Principal,
        name: str,
        description: str = "",
        severity: Union[RuleSeverity, str] = RuleSeverity.MEDIUM,
        warning_threshold: int = 3,
    ) -> ComplianceRule:
        self._require_platform_role(principal)
        return self.compliance.register(name, description, severity, warning_threshold)

    def list_rules(self) -> list[ComplianceRule]:
        return self.compliance.list_rules()

    def record_check(
        self,
        principal: Principal,
        rule_id: str,
        violations: int,
        checked_at: Optional[datetime] = None,
    ) -> ComplianceRule:
        self._require_platform_role(principal)
        return self.compliance.record_check(rule_id, violations, checked_at)

    def set_rule_enabled(self, principal: Principal, rule_id: str, enabled: bool) -> ComplianceRule:
        self._require_platform_role(principal)
        return self.compliance.set_enabled(rule_id, enabled)

    # ==================== Dashboards ====================

    def domain_rollups(self) -> list[DomainRollup]:
        return self.aggregation.domain_rollups()

    def domain_rollup(self, domain: str) -> DomainRollup:
        return self.aggregation.domain_rollup(domain)

    def compliance_rollup(self) -> ComplianceRollup:
        return self.aggregation.compliance_rollup()

    def access_summary(self) -> AccessSummary:
        return self.aggregation.access_summary()

    # ==================== Internals ====================

    def _authorize_owner_action(self, principal: Principal, product_id: str) -> None:
        if principal.role in PLATFORM_ROLES:
            return
        product = self.catalog.get(product_id)
        if principal.role == Role.DOMAIN_OWNER and principal.id == product.owner:
            return
        logger.warning(
            "owner_action_forbidden",
            principal_id=principal.id,
            role=principal.role,
            product_id=product_id,
        )
        raise AuthorizationError(
            f"'{principal.id}' does not own data product '{product_id}'",
            principal_id=principal.id,
            required_role=Role.DOMAIN_OWNER.value,
        )

    @staticmethod
    def _require_holder(principal: Principal, grant: AccessGrant) -> None:
        if grant.holder_id != principal.id and principal.role not in PLATFORM_ROLES:
            raise AuthorizationError(
                f"Grant '{grant.id}' belongs to another identity",
                principal_id=principal.id,
                required_role="grant_holder",
            )

    @staticmethod
    def _require_platform_role(principal: Principal) -> None:
        if principal.role not in PLATFORM_ROLES:
            raise AuthorizationError(
                "Only administrators and data stewards manage compliance rules",
                principal_id=principal.id,
                required_role=Role.DATA_STEWARD.value,
            )

    def _product_audit(
        self,
        principal: Principal,
        action: AuditAction,
        details: Callable[[DataProduct], dict],
    ) -> BeforeCommit:
        """Audit hook run by the catalog before a product change is committed."""
        def append(product: DataProduct) -> None:
            if self.policy_store.get().audit_logging:
                self.audit_log.append(
                    action=action,
                    actor_id=principal.id,
                    subject_type="data_product",
                    subject_id=product.id,
                    details=details(product),
                )
        return append
