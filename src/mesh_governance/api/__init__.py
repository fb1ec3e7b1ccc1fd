"""HTTP API for the governance engine."""

from mesh_governance.api.rest import create_app, current_principal

__all__ = ["create_app", "current_principal"]
