"""Consumer feedback (ratings and comments) on data products."""

import threading
from collections import defaultdict
from typing import Optional

from mesh_governance.catalog.index import CatalogIndex
from mesh_governance.core import Clock, ValidationError, get_logger, utc_now
from mesh_governance.models.product import ProductFeedback

logger = get_logger(__name__)


class FeedbackBoard:
    """Collects ratings per product for the domain dashboard."""

    def __init__(self, catalog: CatalogIndex, clock: Clock = utc_now):
        self._catalog = catalog
        self._clock = clock
        self._feedback: dict[str, list[ProductFeedback]] = defaultdict(list)
        self._lock = threading.Lock()

    def submit(
        self,
        product_id: str,
        user_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> ProductFeedback:
        """
        Record a rating from 1 to 5.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If the rating is out of range.
        """
        self._catalog.get(product_id)
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", field="rating")

        feedback = ProductFeedback(
            product_id=product_id,
            user_id=user_id,
            rating=rating,
            comment=comment or "",
            submitted_at=self._clock(),
        )
        with self._lock:
            self._feedback[product_id].append(feedback)

        logger.info("feedback_submitted", product_id=product_id, rating=rating)
        return feedback.model_copy()

    def list_for_product(self, product_id: str) -> list[ProductFeedback]:
        """Feedback for one product, newest first."""
        with self._lock:
            items = list(self._feedback.get(product_id, []))
        return [f.model_copy() for f in reversed(items)]

    def ratings_by_product(self) -> dict[str, list[int]]:
        with self._lock:
            return {pid: [f.rating for f in items] for pid, items in self._feedback.items()}
