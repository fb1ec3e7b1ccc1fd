"""Governance policy, principal and decision models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Platform roles, as managed by the user administration screen."""

    DATA_CONSUMER = "data_consumer"
    DOMAIN_OWNER = "domain_owner"
    DATA_STEWARD = "data_steward"
    ADMIN = "admin"


class Principal(BaseModel):
    """The identity performing an operation."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role = Role.DATA_CONSUMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Policy(BaseModel):
    """Organization-wide access policy.

    Immutable; every change produces a new version via ``PolicyStore``.
    """

    model_config = ConfigDict(frozen=True)

    auto_approve: bool = Field(default=False, description="Public products skip manual review")
    require_justification: bool = Field(default=True, description="Requests must carry a justification")
    notify_owners: bool = Field(default=True, description="Notify owners of access events")
    audit_logging: bool = Field(default=True, description="Write audit entries for transitions")
    version: int = 1
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_by: Optional[str] = None


POLICY_OPTIONS = ("auto_approve", "require_justification", "notify_owners", "audit_logging")


class PolicyDecision(str, Enum):
    """Outcome of evaluating an access request against policy."""

    AUTO_APPROVE = "auto_approve"
    REQUIRE_REVIEW = "require_review"
    DENY = "deny"


class PolicyEvaluation(BaseModel):
    """A policy decision together with the rule that produced it."""

    model_config = ConfigDict(frozen=True)

    decision: PolicyDecision
    reason: str
    policy_version: int
