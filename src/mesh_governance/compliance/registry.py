"""
Compliance rule registry.

Holds the organization-wide compliance rules shown on the governance page
(LGPD, retention, classification, ...) together with the result of their
most recent check.
"""

import threading
from datetime import datetime
from typing import Optional, Union

from mesh_governance.core import Clock, NotFoundError, ValidationError, ensure_utc, get_logger, utc_now
from mesh_governance.models.compliance import ComplianceRule, RuleSeverity

logger = get_logger(__name__)


class ComplianceRuleRegistry:
    """Thread-safe store of compliance rules."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._rules: dict[str, ComplianceRule] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        description: str = "",
        severity: Union[RuleSeverity, str] = RuleSeverity.MEDIUM,
        warning_threshold: int = 3,
    ) -> ComplianceRule:
        """
        Register a new enabled rule with no recorded violations.

        Raises:
            ValidationError: If the name is blank or already registered,
                or the severity is unknown.
        """
        if not name or not name.strip():
            raise ValidationError("Rule name is required", field="name")
        try:
            severity = RuleSeverity(severity)
        except ValueError:
            raise ValidationError(
                f"Unknown severity '{severity}'",
                field="severity",
                failed_checks=[s.value for s in RuleSeverity],
            ) from None
        if warning_threshold < 1:
            raise ValidationError("warning_threshold must be at least 1", field="warning_threshold")

        rule = ComplianceRule(
            name=name.strip(),
            description=description,
            severity=severity,
            warning_threshold=warning_threshold,
        )
        with self._lock:
            key = rule.name.casefold()
            if any(r.name.casefold() == key for r in self._rules.values()):
                raise ValidationError(
                    f"Compliance rule '{rule.name}' already exists",
                    field="name",
                    failed_checks=["unique_name"],
                )
            self._rules[rule.id] = rule

        logger.info("compliance_rule_registered", rule_id=rule.id, name=rule.name, severity=severity)
        return rule.model_copy(deep=True)

    def get(self, rule_id: str) -> ComplianceRule:
        with self._lock:
            rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(
                f"Compliance rule '{rule_id}' not found",
                entity_type="compliance_rule",
                entity_id=rule_id,
            )
        return rule.model_copy(deep=True)

    def list_rules(self, enabled_only: bool = False) -> list[ComplianceRule]:
        """Rules ordered by name."""
        with self._lock:
            rules = list(self._rules.values())
        if enabled_only:
            rules = [r for r in rules if r.enabled]
        rules.sort(key=lambda r: (r.name.casefold(), r.id))
        return [r.model_copy(deep=True) for r in rules]

    def record_check(
        self,
        rule_id: str,
        violations: int,
        checked_at: Optional[datetime] = None,
    ) -> ComplianceRule:
        """
        Store the outcome of a compliance check run.

        Args:
            rule_id: Rule that was checked.
            violations: Number of violations the check found.
            checked_at: When the check ran; defaults to now.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If violations is negative.
        """
        if violations < 0:
            raise ValidationError("violations cannot be negative", field="violations")
        checked_at = ensure_utc(checked_at) if checked_at else self._clock()

        updated = self._update(rule_id, violations=violations, last_check=checked_at)
        logger.info(
            "compliance_check_recorded",
            rule_id=rule_id,
            violations=violations,
            status=updated.status,
        )
        return updated

    def set_enabled(self, rule_id: str, enabled: bool) -> ComplianceRule:
        updated = self._update(rule_id, enabled=enabled)
        logger.info("compliance_rule_toggled", rule_id=rule_id, enabled=enabled)
        return updated

    def _update(self, rule_id: str, **changes) -> ComplianceRule:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise NotFoundError(
                    f"Compliance rule '{rule_id}' not found",
                    entity_type="compliance_rule",
                    entity_id=rule_id,
                )
            updated = rule.model_copy(update=changes)
            self._rules[rule_id] = updated
        return updated.model_copy(deep=True)
