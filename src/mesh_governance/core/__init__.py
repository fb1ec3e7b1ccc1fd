"""Core utilities for the governance engine."""

from mesh_governance.core.logging import get_logger, configure_logging, bind_actor
from mesh_governance.core.clock import Clock, utc_now, ensure_utc
from mesh_governance.core.config import GovernanceConfig
from mesh_governance.core.tracing import traced
from mesh_governance.core.errors import (
    MeshGovernanceError,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    ConflictError,
    AuthorizationError,
    AuditStorageExhaustedError,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "bind_actor",
    # Clock and configuration
    "Clock",
    "utc_now",
    "ensure_utc",
    "GovernanceConfig",
    # Tracing
    "traced",
    # Errors
    "MeshGovernanceError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "AuthorizationError",
    "AuditStorageExhaustedError",
]
