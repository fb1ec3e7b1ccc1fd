"""Pydantic data models for the governance engine."""

from mesh_governance.models.product import (
    ALL_DOMAINS,
    DataProduct,
    ProductCategory,
    ProductFeedback,
    ProductStatus,
    QualityBand,
    Sensitivity,
    SortKey,
    UpdateFrequency,
    quality_band_for,
)
from mesh_governance.models.access import (
    AccessGrant,
    AccessRequest,
    AccessType,
    ApiKey,
    ApiKeyStatus,
    GrantFilters,
    GrantStatus,
    RequestFilters,
    RequestStatus,
)
from mesh_governance.models.policy import (
    Policy,
    PolicyDecision,
    PolicyEvaluation,
    Principal,
    Role,
)
from mesh_governance.models.audit import (
    AuditAction,
    AuditChainVerification,
    AuditEntry,
    AuditFilters,
    AuditOutcome,
    AuditPage,
)
from mesh_governance.models.lineage import LineageRecord
from mesh_governance.models.compliance import (
    ComplianceRule,
    RuleSeverity,
    RuleStatus,
)
from mesh_governance.models.dashboard import (
    AccessSummary,
    CatalogStats,
    ComplianceRollup,
    DomainRollup,
)

__all__ = [
    # Catalog
    "ALL_DOMAINS",
    "DataProduct",
    "ProductCategory",
    "ProductFeedback",
    "ProductStatus",
    "QualityBand",
    "Sensitivity",
    "SortKey",
    "UpdateFrequency",
    "quality_band_for",
    # Access
    "AccessGrant",
    "AccessRequest",
    "AccessType",
    "ApiKey",
    "ApiKeyStatus",
    "GrantFilters",
    "GrantStatus",
    "RequestFilters",
    "RequestStatus",
    # Policy
    "Policy",
    "PolicyDecision",
    "PolicyEvaluation",
    "Principal",
    "Role",
    # Audit
    "AuditAction",
    "AuditChainVerification",
    "AuditEntry",
    "AuditFilters",
    "AuditOutcome",
    "AuditPage",
    # Lineage
    "LineageRecord",
    # Compliance
    "ComplianceRule",
    "RuleSeverity",
    "RuleStatus",
    # Dashboard
    "AccessSummary",
    "CatalogStats",
    "ComplianceRollup",
    "DomainRollup",
]
