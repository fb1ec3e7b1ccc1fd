"""Access policy engine and configuration."""

from mesh_governance.policy.engine import decide, evaluate, has_justification
from mesh_governance.policy.store import PolicyStore

__all__ = ["decide", "evaluate", "has_justification", "PolicyStore"]
