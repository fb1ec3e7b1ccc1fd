"""
Audit trail models for the governance engine.

Entries are hash-chained: each entry's SHA-256 hash covers its content and
the previous entry's hash, so any in-place modification is detectable.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4
import hashlib
import json

from pydantic import BaseModel, ConfigDict, Field


# Genesis block hash, used as previous_hash for the first entry
GENESIS_HASH = "0" * 64


class AuditAction(str, Enum):
    """Kinds of access-affecting actions recorded in the audit log."""

    PRODUCT_PUBLISHED = "product.published"
    PRODUCT_UPDATED = "product.updated"
    PRODUCT_DEPRECATED = "product.deprecated"
    ACCESS_REQUESTED = "access.requested"
    ACCESS_AUTO_APPROVED = "access.auto_approved"
    ACCESS_REVIEW_STARTED = "access.review_started"
    ACCESS_APPROVED = "access.approved"
    ACCESS_DENIED = "access.denied"
    GRANT_REVOKED = "grant.revoked"
    GRANT_USED = "grant.used"
    API_KEY_ISSUED = "api_key.issued"
    LINEAGE_RECORDED = "lineage.recorded"
    POLICY_UPDATED = "policy.updated"


class AuditOutcome(str, Enum):
    """Outcome of an audited action."""

    SUCCESS = "success"
    DENIED = "denied"


class AuditEntry(BaseModel):
    """An immutable, hash-chained audit log entry."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    sequence_number: int = Field(description="Insertion position; breaks timestamp ties")
    action: AuditAction
    actor_id: str
    subject_type: str
    subject_id: str
    timestamp: datetime
    outcome: AuditOutcome = AuditOutcome.SUCCESS
    details: dict[str, Any] = Field(default_factory=dict)
    previous_hash: str
    entry_hash: str

    @staticmethod
    def compute_hash(
        sequence_number: int,
        action: AuditAction,
        actor_id: str,
        subject_type: str,
        subject_id: str,
        timestamp: datetime,
        outcome: AuditOutcome,
        details: dict[str, Any],
        previous_hash: str,
    ) -> str:
        """Compute the SHA-256 hash of an entry's content plus the previous hash."""
        content = {
            "sequence_number": sequence_number,
            "action": action.value,
            "actor_id": actor_id,
            "subject_type": subject_type,
            "subject_id": subject_id,
            "timestamp": timestamp.isoformat(),
            "outcome": outcome.value,
            "details": details,
            "previous_hash": previous_hash,
        }
        content_str = json.dumps(content, sort_keys=True, default=str)
        return hashlib.sha256(content_str.encode("utf-8")).hexdigest()

    def verify_hash(self) -> bool:
        """Return True if the stored hash still matches the entry's content."""
        return self.entry_hash == self.compute_hash(
            sequence_number=self.sequence_number,
            action=self.action,
            actor_id=self.actor_id,
            subject_type=self.subject_type,
            subject_id=self.subject_id,
            timestamp=self.timestamp,
            outcome=self.outcome,
            details=self.details,
            previous_hash=self.previous_hash,
        )


class AuditFilters(BaseModel):
    """Filters and pagination for audit queries."""

    actor_id: Optional[str] = None
    subject_id: Optional[str] = None
    action: Optional[AuditAction] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=500)


class AuditPage(BaseModel):
    """One page of audit entries, newest first."""

    entries: list[AuditEntry]
    total: int
    page: int
    page_size: int
    has_more: bool


class AuditChainVerification(BaseModel):
    """Result of verifying the audit hash chain."""

    is_valid: bool
    total_entries: int
    verified_entries: int
    first_invalid_sequence: Optional[int] = None
    error_message: Optional[str] = None
