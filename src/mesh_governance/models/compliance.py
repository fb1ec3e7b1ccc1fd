"""Compliance rule models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field


class RuleSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Penalty per violation when computing the compliance score
SEVERITY_WEIGHTS: dict[RuleSeverity, int] = {
    RuleSeverity.LOW: 1,
    RuleSeverity.MEDIUM: 2,
    RuleSeverity.HIGH: 3,
    RuleSeverity.CRITICAL: 5,
}


class RuleStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    DISABLED = "disabled"


class ComplianceRule(BaseModel):
    """An organization-wide compliance check and its latest result."""

    id: str = Field(default_factory=lambda: f"rule-{uuid4().hex[:8]}")
    name: str = Field(..., min_length=1)
    description: str = ""
    severity: RuleSeverity = RuleSeverity.MEDIUM
    enabled: bool = True
    violations: int = Field(default=0, ge=0)
    last_check: Optional[datetime] = None
    warning_threshold: int = Field(default=3, ge=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> RuleStatus:
        if not self.enabled:
            return RuleStatus.DISABLED
        if self.violations >= self.warning_threshold:
            return RuleStatus.WARNING
        return RuleStatus.ACTIVE

    @property
    def penalty(self) -> int:
        return self.violations * SEVERITY_WEIGHTS[self.severity]
