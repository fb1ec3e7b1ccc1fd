"""Compliance rules and their latest check results."""

from mesh_governance.compliance.registry import ComplianceRuleRegistry

__all__ = ["ComplianceRuleRegistry"]
