"""Derived (read-time) grant status.

Grants store only ``active`` or ``revoked``. Whether an active grant is
``expiring`` or ``expired`` depends on the clock, so it is recomputed on
every read instead of by a background job.
"""

from datetime import datetime, timedelta

from mesh_governance.core import ensure_utc
from mesh_governance.models.access import AccessGrant, GrantStatus


def derived_status(grant: AccessGrant, now: datetime, warning_window: timedelta) -> GrantStatus:
    if grant.status == GrantStatus.REVOKED or grant.expires_at is None:
        return grant.status
    now = ensure_utc(now)
    expires_at = ensure_utc(grant.expires_at)
    if now > expires_at:
        return GrantStatus.EXPIRED
    if expires_at - now <= warning_window:
        return GrantStatus.EXPIRING
    return GrantStatus.ACTIVE


def refresh_derived_status(
    grant: AccessGrant,
    now: datetime,
    warning_window: timedelta,
) -> AccessGrant:
    """Return a copy of ``grant`` carrying its status as of ``now``.

    The stored grant is never modified.
    """
    return grant.model_copy(
        update={"status": derived_status(grant, now, warning_window)},
        deep=True,
    )
