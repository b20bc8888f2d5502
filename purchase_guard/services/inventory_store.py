"""
Inventory Store - Last-known server purchase record per product.

All mutations happen on the event loop, so the map has a single writer
at a time. Callers only ever receive read-only views or copies.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from structlog import get_logger

from purchase_guard.models.domain import PurchaseRecord

logger = get_logger(__name__)


class InventoryStore:
    """In-memory entitlement snapshot keyed by product id."""

    def __init__(self) -> None:
        self._records: dict[str, PurchaseRecord] = {}
        self._view: Mapping[str, PurchaseRecord] = MappingProxyType(self._records)

    def upsert(self, record: PurchaseRecord) -> None:
        """Insert a record, replacing any prior record for the product wholesale."""
        replaced = record.product_id in self._records
        self._records[record.product_id] = record
        logger.debug(
            "inventory_record_upserted",
            product_id=record.product_id,
            status=record.status,
            replaced=replaced,
        )

    def replace_all(self, records: Iterable[PurchaseRecord]) -> None:
        """Clear the snapshot and repopulate it from a full inventory sync."""
        self._records.clear()
        for record in records:
            self._records[record.product_id] = record
        logger.debug("inventory_replaced", count=len(self._records))

    def get(self, product_id: str) -> PurchaseRecord | None:
        return self._records.get(product_id)

    def is_owned(self, product_id: str) -> bool:
        """Check if the product is present with an active status."""
        record = self._records.get(product_id)
        return record is not None and record.is_active()

    def view(self) -> Mapping[str, PurchaseRecord]:
        """Live read-only view of the snapshot."""
        return self._view

    def copy(self) -> dict[str, PurchaseRecord]:
        """Detached copy of the snapshot."""
        return dict(self._records)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._records

    def __len__(self) -> int:
        return len(self._records)
