"""Dashboard rollups."""

from mesh_governance.aggregation.service import AggregationService

__all__ = ["AggregationService"]
