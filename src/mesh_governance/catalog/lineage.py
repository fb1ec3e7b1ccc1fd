"""
Lineage registry for data products.

Each record describes one flow into a product: the upstream source, the
transformations applied in order, and the destination where the product is
materialized. Records are appended, never edited.
"""

import threading
from collections import defaultdict
from typing import Callable, Optional

from mesh_governance.catalog.index import CatalogIndex
from mesh_governance.core import Clock, ValidationError, get_logger, utc_now
from mesh_governance.models.lineage import LineageRecord

logger = get_logger(__name__)


class LineageRegistry:
    """Stores lineage records per product."""

    def __init__(self, catalog: CatalogIndex, clock: Clock = utc_now):
        self._catalog = catalog
        self._clock = clock
        self._records: dict[str, list[LineageRecord]] = defaultdict(list)
        self._lock = threading.Lock()

    def register(
        self,
        product_id: str,
        source: str,
        destination: str,
        transformations: Optional[list[str]] = None,
        before_commit: Optional[Callable[[LineageRecord], None]] = None,
    ) -> LineageRecord:
        """
        Record a lineage flow for a product.

        Args:
            product_id: Product fed by this flow.
            source: Upstream system.
            destination: Where the product lands.
            transformations: Processing steps in order; blank steps are dropped.
            before_commit: Runs under the registry lock before the record is
                stored; if it raises, nothing is stored.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If source or destination is blank.
        """
        self._catalog.get(product_id)
        failed = [name for name, value in (("source", source), ("destination", destination))
                  if not value or not value.strip()]
        if failed:
            raise ValidationError(
                f"Lineage record is missing required fields: {', '.join(failed)}",
                field=failed[0],
                failed_checks=failed,
            )

        record = LineageRecord(
            product_id=product_id,
            source=source.strip(),
            destination=destination.strip(),
            transformations=[t.strip() for t in transformations or [] if t.strip()],
            recorded_at=self._clock(),
        )
        with self._lock:
            if before_commit is not None:
                before_commit(record.model_copy(deep=True))
            self._records[product_id].append(record)

        logger.info(
            "lineage_recorded",
            product_id=product_id,
            lineage_id=record.id,
            steps=len(record.transformations),
        )
        return record.model_copy(deep=True)

    def list_for_product(self, product_id: str) -> list[LineageRecord]:
        """Lineage of one product, newest first."""
        with self._lock:
            items = list(self._records.get(product_id, []))
        return [r.model_copy(deep=True) for r in reversed(items)]

    def list_records(self) -> list[LineageRecord]:
        """Every lineage record, newest first, ties broken by ID."""
        with self._lock:
            items = [r for records in self._records.values() for r in records]
        items.sort(key=lambda r: r.id)
        items.sort(key=lambda r: r.recorded_at, reverse=True)
        return [r.model_copy(deep=True) for r in items]
