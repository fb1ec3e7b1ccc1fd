"""Append-only audit trail."""

from mesh_governance.audit.log import AuditLog

__all__ = ["AuditLog"]
