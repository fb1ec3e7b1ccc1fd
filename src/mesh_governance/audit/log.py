"""
Append-only, hash-chained audit log.

Every access-affecting transition in the engine lands here as exactly one
entry. Entries are never updated or deleted. Timestamps are monotonically
non-decreasing; entries sharing a timestamp are ordered by sequence number.
"""

import threading
from typing import Any, Optional

from mesh_governance.core import (
    AuditStorageExhaustedError,
    Clock,
    ensure_utc,
    get_logger,
    utc_now,
)
from mesh_governance.models.audit import (
    GENESIS_HASH,
    AuditAction,
    AuditChainVerification,
    AuditEntry,
    AuditFilters,
    AuditOutcome,
    AuditPage,
)

logger = get_logger(__name__)


class AuditLog:
    """
    Append-only storage for hash-chained audit entries.

    Provides:
    - SHA-256 hash chaining
    - Append-only operations (no update/delete)
    - Filtered, paginated queries, newest first
    - Chain verification
    """

    def __init__(self, capacity: Optional[int] = None, clock: Clock = utc_now):
        """
        Initialize the audit log.

        Args:
            capacity: Maximum number of entries; None means unbounded.
            clock: Time source for entry timestamps.
        """
        self._entries: list[AuditEntry] = []
        self._capacity = capacity
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def last_hash(self) -> str:
        """Hash of the last entry, or the genesis hash if empty."""
        if not self._entries:
            return GENESIS_HASH
        return self._entries[-1].entry_hash

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self,
        action: AuditAction,
        actor_id: str,
        subject_type: str,
        subject_id: str,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        """
        Append a new entry to the chain.

        This is the only way to add entries.

        Raises:
            AuditStorageExhaustedError: If the configured capacity is reached.
        """
        with self._lock:
            if self._capacity is not None and len(self._entries) >= self._capacity:
                logger.critical("audit_storage_exhausted", capacity=self._capacity)
                raise AuditStorageExhaustedError(
                    f"Audit log capacity of {self._capacity} entries reached",
                    capacity=self._capacity,
                )

            timestamp = ensure_utc(self._clock())
            if self._entries and timestamp < self._entries[-1].timestamp:
                timestamp = self._entries[-1].timestamp

            sequence_number = len(self._entries)
            previous_hash = self.last_hash
            details = dict(details or {})
            entry = AuditEntry(
                sequence_number=sequence_number,
                action=action,
                actor_id=actor_id,
                subject_type=subject_type,
                subject_id=subject_id,
                timestamp=timestamp,
                outcome=outcome,
                details=details,
                previous_hash=previous_hash,
                entry_hash=AuditEntry.compute_hash(
                    sequence_number=sequence_number,
                    action=action,
                    actor_id=actor_id,
                    subject_type=subject_type,
                    subject_id=subject_id,
                    timestamp=timestamp,
                    outcome=outcome,
                    details=details,
                    previous_hash=previous_hash,
                ),
            )
            self._entries.append(entry)

        logger.info(
            "audit_entry_appended",
            action=action,
            actor_id=actor_id,
            subject_id=subject_id,
            outcome=outcome,
            sequence_number=sequence_number,
        )
        return entry.model_copy(deep=True)

    def query(self, filters: Optional[AuditFilters] = None) -> AuditPage:
        """
        Query entries by actor, subject, action and time range.

        Args:
            filters: Filters and pagination; defaults to the first page of everything.

        Returns:
            A page of matching entries, newest first.
        """
        filters = filters or AuditFilters()
        with self._lock:
            entries = list(self._entries)

        since = ensure_utc(filters.since) if filters.since else None
        until = ensure_utc(filters.until) if filters.until else None

        matching = [
            e for e in reversed(entries)
            if (filters.actor_id is None or e.actor_id == filters.actor_id)
            and (filters.subject_id is None or e.subject_id == filters.subject_id)
            and (filters.action is None or e.action == filters.action)
            and (since is None or e.timestamp >= since)
            and (until is None or e.timestamp <= until)
        ]

        start = (filters.page - 1) * filters.page_size
        end = start + filters.page_size
        return AuditPage(
            entries=[e.model_copy(deep=True) for e in matching[start:end]],
            total=len(matching),
            page=filters.page,
            page_size=filters.page_size,
            has_more=end < len(matching),
        )

    def entries_for(self, subject_id: str) -> list[AuditEntry]:
        """All entries about one subject, oldest first."""
        with self._lock:
            return [e.model_copy(deep=True) for e in self._entries if e.subject_id == subject_id]

    def verify_chain(self) -> AuditChainVerification:
        """
        Verify every entry's hash and its link to the previous entry.

        Returns:
            Verification result naming the first broken sequence number, if any.
        """
        with self._lock:
            entries = list(self._entries)

        expected_previous = GENESIS_HASH
        for verified, entry in enumerate(entries):
            if entry.previous_hash != expected_previous:
                return AuditChainVerification(
                    is_valid=False,
                    total_entries=len(entries),
                    verified_entries=verified,
                    first_invalid_sequence=entry.sequence_number,
                    error_message="Chain link broken: previous_hash mismatch",
                )
            if not entry.verify_hash():
                return AuditChainVerification(
                    is_valid=False,
                    total_entries=len(entries),
                    verified_entries=verified,
                    first_invalid_sequence=entry.sequence_number,
                    error_message="Entry content does not match its hash",
                )
            expected_previous = entry.entry_hash

        return AuditChainVerification(
            is_valid=True,
            total_entries=len(entries),
            verified_entries=len(entries),
        )
