"""
Versioned policy configuration.

The current ``Policy`` is an immutable value. Readers take it once per
decision and pass it explicitly into the policy engine; administrators
replace it with a new version.
"""

import threading
from typing import Optional

from mesh_governance.audit.log import AuditLog
from mesh_governance.core import (
    AuthorizationError,
    Clock,
    ValidationError,
    get_logger,
    utc_now,
)
from mesh_governance.models.audit import AuditAction
from mesh_governance.models.policy import POLICY_OPTIONS, Policy, Principal, Role

logger = get_logger(__name__)


class PolicyStore:
    """Holds the organization-wide policy and its version history."""

    def __init__(
        self,
        audit_log: AuditLog,
        initial: Optional[Policy] = None,
        clock: Clock = utc_now,
    ):
        self._audit_log = audit_log
        self._clock = clock
        self._current = initial or Policy(updated_at=clock())
        self._history: list[Policy] = [self._current]
        self._lock = threading.Lock()

    def get(self) -> Policy:
        """Current policy version."""
        return self._current

    def history(self) -> list[Policy]:
        """All policy versions, oldest first."""
        with self._lock:
            return list(self._history)

    def update(self, principal: Principal, **changes: bool) -> Policy:
        """
        Replace the policy with a new version.

        Args:
            principal: Acting principal; must be an administrator.
            **changes: New values for auto_approve, require_justification,
                notify_owners and/or audit_logging.

        Returns:
            The new policy version.

        Raises:
            AuthorizationError: If the principal is not an administrator.
            ValidationError: If an unknown option or a non-boolean value is given.
        """
        if not principal.is_admin:
            logger.warning("policy_update_forbidden", principal_id=principal.id, role=principal.role)
            raise AuthorizationError(
                "Only administrators may change governance policy",
                principal_id=principal.id,
                required_role=Role.ADMIN.value,
            )

        unknown = sorted(set(changes) - set(POLICY_OPTIONS))
        if unknown:
            raise ValidationError(
                f"Unknown policy options: {', '.join(unknown)}",
                field=unknown[0],
                failed_checks=unknown,
            )
        not_bool = sorted(k for k, v in changes.items() if not isinstance(v, bool))
        if not_bool:
            raise ValidationError(
                f"Policy options must be booleans: {', '.join(not_bool)}",
                field=not_bool[0],
                failed_checks=not_bool,
            )

        with self._lock:
            previous = self._current
            updated = previous.model_copy(update={
                **changes,
                "version": previous.version + 1,
                "updated_at": self._clock(),
                "updated_by": principal.id,
            })
            # Turning audit logging off is itself recorded.
            if previous.audit_logging or updated.audit_logging:
                self._audit_log.append(
                    action=AuditAction.POLICY_UPDATED,
                    actor_id=principal.id,
                    subject_type="policy",
                    subject_id=f"policy-v{updated.version}",
                    details={
                        "changes": {k: v for k, v in changes.items() if getattr(previous, k) != v},
                        "previous_version": previous.version,
                    },
                )
            self._current = updated
            self._history.append(updated)

        logger.info(
            "policy_updated",
            version=updated.version,
            updated_by=principal.id,
            auto_approve=updated.auto_approve,
            require_justification=updated.require_justification,
            notify_owners=updated.notify_owners,
            audit_logging=updated.audit_logging,
        )
        return updated
