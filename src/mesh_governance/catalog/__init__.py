"""Data product catalog."""

from mesh_governance.catalog.index import CatalogIndex, collation_key
from mesh_governance.catalog.feedback import FeedbackBoard
from mesh_governance.catalog.lineage import LineageRegistry

__all__ = ["CatalogIndex", "FeedbackBoard", "LineageRegistry", "collation_key"]
