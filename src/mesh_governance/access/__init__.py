"""Access request and grant lifecycle."""

from mesh_governance.access.lifecycle import AccessLifecycleManager, POLICY_ENGINE_ACTOR
from mesh_governance.access.status import derived_status, refresh_derived_status

__all__ = [
    "AccessLifecycleManager",
    "POLICY_ENGINE_ACTOR",
    "derived_status",
    "refresh_derived_status",
]
