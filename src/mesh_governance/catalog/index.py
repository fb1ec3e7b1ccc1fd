"""
Catalog index for data product metadata.

The index keeps products in an immutable tuple. Writers build a new tuple
under the write lock and swap it in; readers take one reference and work on
it, so every query sees a single point-in-time view.
"""

import threading
import unicodedata
from typing import Callable, Optional, Union

from mesh_governance.core import (
    Clock,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    get_logger,
    utc_now,
)
from mesh_governance.models.dashboard import CatalogStats
from mesh_governance.models.product import (
    ALL_DOMAINS,
    DataProduct,
    ProductStatus,
    SortKey,
)

logger = get_logger(__name__)

# Called with the new product state just before it becomes visible
BeforeCommit = Callable[[DataProduct], None]


def collation_key(text: str) -> str:
    """Accent- and case-insensitive key approximating locale ordering."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def _identity_key(name: str, domain: str) -> tuple[str, str]:
    return (name.strip().casefold(), domain.strip().casefold())


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _sort(products: list[DataProduct], sort_key: SortKey) -> list[DataProduct]:
    # Stable sorts: order by id first so ties resolve by id ascending.
    ordered = sorted(products, key=lambda p: p.id)
    if sort_key == SortKey.NAME:
        return sorted(ordered, key=lambda p: collation_key(p.name))
    if sort_key == SortKey.QUALITY:
        return sorted(ordered, key=lambda p: p.quality_score, reverse=True)
    if sort_key == SortKey.CONSUMERS:
        return sorted(ordered, key=lambda p: p.consumers, reverse=True)
    return sorted(ordered, key=lambda p: p.last_updated, reverse=True)


class CatalogIndex:
    """
    Stores data products and answers catalog queries.

    The index exclusively owns product records. Products are never deleted;
    they are transitioned to ``deprecated``.
    """

    def __init__(self, clock: Clock = utc_now):
        self._products: tuple[DataProduct, ...] = ()
        self._write_lock = threading.Lock()
        self._clock = clock

    # ==================== Reads ====================

    def snapshot(self) -> tuple[DataProduct, ...]:
        """Return the current point-in-time product tuple (deep copies)."""
        return tuple(p.model_copy(deep=True) for p in self._products)

    def get(self, product_id: str) -> DataProduct:
        """
        Get a product by ID.

        Raises:
            NotFoundError: If no product has this ID.
        """
        for product in self._products:
            if product.id == product_id:
                return product.model_copy(deep=True)
        raise NotFoundError(
            f"Data product '{product_id}' not found",
            entity_type="data_product",
            entity_id=product_id,
        )

    def exists(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self._products)

    def search(
        self,
        query: str = "",
        domain: Optional[str] = ALL_DOMAINS,
        sort_key: Union[SortKey, str] = SortKey.UPDATED,
    ) -> list[DataProduct]:
        """
        Search the catalog.

        Args:
            query: Case-insensitive substring matched against name, description and tags.
            domain: Domain to restrict to; "all" or None disables domain filtering.
            sort_key: One of updated (default), name, quality, consumers.

        Returns:
            Matching products in order, ties broken by product ID ascending.

        Raises:
            ValidationError: If sort_key is not a known ordering.
        """
        try:
            key = SortKey(sort_key or SortKey.UPDATED)
        except ValueError:
            raise ValidationError(
                f"Unknown sort key '{sort_key}'",
                field="sort_key",
                failed_checks=[k.value for k in SortKey],
            ) from None

        products = self._products
        matches = [
            p for p in products
            if p.matches(query or "")
            and (domain in (None, ALL_DOMAINS) or p.domain == domain)
        ]
        return [p.model_copy(deep=True) for p in _sort(matches, key)]

    def list_domains(self) -> set[str]:
        """Domains that own at least one product, for filter facets."""
        return {p.domain for p in self._products}

    def compute_aggregate_stats(self) -> CatalogStats:
        """
        Compute headline catalog statistics.

        The average quality is the mean over all stored products, rounded to
        the nearest integer. An empty catalog yields zero-valued stats.
        """
        products = self._products
        if not products:
            return CatalogStats()
        return CatalogStats(
            total_products=len(products),
            active_domains=len({p.domain for p in products}),
            total_consumers=sum(p.consumers for p in products),
            average_quality=round_half_up(
                sum(p.quality_score for p in products) / len(products)
            ),
        )

    # ==================== Writes ====================

    def publish(
        self,
        product: DataProduct,
        before_commit: Optional[BeforeCommit] = None,
    ) -> DataProduct:
        """
        Add a new product to the catalog.

        ``before_commit`` runs under the write lock once validation has
        passed; if it raises, the product is not added.

        Raises:
            ValidationError: If name or domain is blank, or the name+domain
                pair or the ID is already taken.
        """
        failed = []
        if not product.name.strip():
            failed.append("name")
        if not product.domain.strip():
            failed.append("domain")
        if failed:
            raise ValidationError(
                f"Data product is missing required fields: {', '.join(failed)}",
                field=failed[0],
                failed_checks=failed,
            )

        stored = product.model_copy(deep=True)
        with self._write_lock:
            identity = _identity_key(stored.name, stored.domain)
            for existing in self._products:
                if existing.id == stored.id:
                    raise ValidationError(
                        f"Data product ID '{stored.id}' already exists",
                        field="id",
                    )
                if _identity_key(existing.name, existing.domain) == identity:
                    raise ValidationError(
                        f"Data product '{stored.name}' already exists in domain '{stored.domain}'",
                        field="name",
                    )
            if before_commit is not None:
                before_commit(stored.model_copy(deep=True))
            self._products = self._products + (stored,)

        logger.info(
            "data_product_published",
            product_id=stored.id,
            domain=stored.domain,
            access_level=stored.access_level,
        )
        return stored.model_copy(deep=True)

    def update_quality(
        self,
        product_id: str,
        quality_score: int,
        before_commit: Optional[BeforeCommit] = None,
    ) -> DataProduct:
        """Record a new externally computed quality score."""
        if not 0 <= quality_score <= 100:
            raise ValidationError(
                "Quality score must be between 0 and 100",
                field="quality_score",
            )
        return self._mutate(
            product_id,
            lambda p: p.model_copy(update={
                "quality_score": quality_score,
                "last_updated": self._clock(),
            }),
            before_commit,
        )

    def set_status(
        self,
        product_id: str,
        status: ProductStatus,
        before_commit: Optional[BeforeCommit] = None,
    ) -> DataProduct:
        """
        Transition a product's lifecycle status.

        Raises:
            InvalidStateError: If the product is already deprecated.
        """
        def transition(product: DataProduct) -> DataProduct:
            if product.status == ProductStatus.DEPRECATED:
                raise InvalidStateError(
                    f"Data product '{product.id}' is deprecated",
                    entity_type="data_product",
                    entity_id=product.id,
                    current_state=product.status.value,
                )
            return product.model_copy(update={
                "status": status,
                "last_updated": self._clock(),
            })

        updated = self._mutate(product_id, transition, before_commit)
        logger.info("data_product_status_changed", product_id=product_id, status=status)
        return updated

    def increment_consumers(self, product_id: str, amount: int = 1) -> DataProduct:
        return self._mutate(
            product_id,
            lambda p: p.model_copy(update={"consumers": p.consumers + amount}),
        )

    def increment_downloads(self, product_id: str, amount: int = 1) -> DataProduct:
        return self._mutate(
            product_id,
            lambda p: p.model_copy(update={"downloads": p.downloads + amount}),
        )

    def _mutate(
        self,
        product_id: str,
        change: Callable[[DataProduct], DataProduct],
        before_commit: Optional[BeforeCommit] = None,
    ) -> DataProduct:
        """Apply ``change`` to one product and swap in the new snapshot."""
        with self._write_lock:
            products = list(self._products)
            for i, product in enumerate(products):
                if product.id == product_id:
                    products[i] = change(product.model_copy(deep=True))
                    if before_commit is not None:
                        before_commit(products[i].model_copy(deep=True))
                    self._products = tuple(products)
                    return products[i].model_copy(deep=True)
        raise NotFoundError(
            f"Data product '{product_id}' not found",
            entity_type="data_product",
            entity_id=product_id,
        )
