"""
Unit tests for the Compliance Rule Registry.
"""

import pytest
from datetime import datetime, timezone

from mesh_governance.compliance import ComplianceRuleRegistry
from mesh_governance.core import NotFoundError, ValidationError
from mesh_governance.models import RuleSeverity, RuleStatus


@pytest.fixture
def registry(clock):
    return ComplianceRuleRegistry(clock=clock)


def test_register(registry):
    rule = registry.register("LGPD - Dados Pessoais", "Sensitive data scan", RuleSeverity.CRITICAL)
    assert rule.id.startswith("rule-")
    assert rule.enabled
    assert rule.violations == 0
    assert rule.status == RuleStatus.ACTIVE
    assert registry.get(rule.id) == rule


def test_register_accepts_severity_value(registry):
    assert registry.register("Retention", severity="high").severity == RuleSeverity.HIGH


def test_register_rejects_blank_and_duplicate_names(registry):
    registry.register("Retention")
    with pytest.raises(ValidationError):
        registry.register("  ")
    with pytest.raises(ValidationError):
        registry.register("retention ")


def test_register_rejects_unknown_severity(registry):
    with pytest.raises(ValidationError) as exc_info:
        registry.register("Retention", severity="urgent")
    assert exc_info.value.field == "severity"


def test_record_check_sets_violations_and_status(registry, clock):
    rule = registry.register("Classification", warning_threshold=3)

    checked = registry.record_check(rule.id, 2)
    assert checked.violations == 2
    assert checked.last_check == clock()
    assert checked.status == RuleStatus.ACTIVE

    explicit = datetime(2024, 1, 21, tzinfo=timezone.utc)
    checked = registry.record_check(rule.id, 5, checked_at=explicit)
    assert checked.status == RuleStatus.WARNING
    assert checked.last_check == explicit


def test_record_check_rejects_negative(registry):
    rule = registry.register("Classification")
    with pytest.raises(ValidationError):
        registry.record_check(rule.id, -1)


def test_disable_rule(registry):
    rule = registry.register("Classification")
    registry.record_check(rule.id, 10)
    disabled = registry.set_enabled(rule.id, False)
    assert disabled.status == RuleStatus.DISABLED
    assert registry.list_rules(enabled_only=True) == []


def test_unknown_rule(registry):
    with pytest.raises(NotFoundError):
        registry.get("rule-missing")
    with pytest.raises(NotFoundError):
        registry.record_check("rule-missing", 1)


def test_list_rules_sorted_by_name(registry):
    registry.register("Retenção")
    registry.register("Classificação")
    registry.register("LGPD")
    assert [r.name for r in registry.list_rules()] == ["Classificação", "LGPD", "Retenção"]
