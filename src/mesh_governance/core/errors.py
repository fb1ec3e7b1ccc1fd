"""Custom exception classes for the data mesh governance engine."""

from typing import Optional


class MeshGovernanceError(Exception):
    """Base exception for all governance engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ValidationError(MeshGovernanceError):
    """Malformed or missing required input.

    Not retryable until the caller fixes the input.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        failed_checks: Optional[list] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="VALIDATION", **kwargs)
        self.field = field
        self.failed_checks = failed_checks or []
        self.details.update({
            "field": field,
            "failed_checks": self.failed_checks,
        })


class NotFoundError(MeshGovernanceError):
    """Reference to an unknown product, request, grant or rule."""

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="NOT_FOUND", **kwargs)
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.details.update({
            "entity_type": entity_type,
            "entity_id": entity_id,
        })


class InvalidStateError(MeshGovernanceError):
    """Operation attempted against an entity whose state forbids it.

    Not retryable; the caller must re-fetch the current state.
    """

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        current_state: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="INVALID_STATE", **kwargs)
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.details.update({
            "entity_type": entity_type,
            "entity_id": entity_id,
            "current_state": current_state,
        })


class ConflictError(MeshGovernanceError):
    """A concurrent mutation won the race. Safe to retry after re-fetch."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="CONFLICT", **kwargs)
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.details.update({
            "entity_id": entity_id,
            "expected_version": expected_version,
            "actual_version": actual_version,
        })


class AuthorizationError(MeshGovernanceError):
    """The acting principal lacks the role required for the operation."""

    def __init__(
        self,
        message: str,
        principal_id: Optional[str] = None,
        required_role: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="FORBIDDEN", **kwargs)
        self.principal_id = principal_id
        self.required_role = required_role
        self.details.update({
            "principal_id": principal_id,
            "required_role": required_role,
        })


class AuditStorageExhaustedError(MeshGovernanceError):
    """The audit log cannot accept further entries. Fatal."""

    def __init__(self, message: str, capacity: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="AUDIT_STORAGE_EXHAUSTED", **kwargs)
        self.capacity = capacity
        self.details.update({"capacity": capacity})
