"""
Store Controller Protocol - The platform purchasing layer the validator drives.

The validator never talks to a storefront SDK directly. The host adapts its
purchasing SDK to this interface.
"""

from collections.abc import Sequence
from typing import Protocol

from purchase_guard.models.domain import Order


class StoreController(Protocol):
    """
    Platform purchasing collaborator.

    Any purchasing SDK (Unity IAP, StoreKit, Play Billing, etc.) must be
    adapted to this interface.
    """

    def get_purchases(self) -> Sequence[Order]:
        """
        Return the live transaction list known to the store.

        Order references can go stale across asynchronous gaps, so the
        validator calls this again before every confirmation.
        """
        ...

    def confirm_purchase(self, order: Order) -> None:
        """
        Close out a pending order.

        Args:
            order: Pending order freshly resolved from get_purchases()
        """
        ...


def find_pending_order(store: StoreController, product_id: str) -> Order | None:
    """Re-resolve the current pending order for a product from the live list."""
    for order in store.get_purchases():
        if order.product_id == product_id and order.is_pending:
            return order
    return None


def has_receipt(store: StoreController, product_id: str) -> bool:
    """Check if the store holds a receipt (transaction) for the product."""
    return any(
        order.product_id == product_id and order.has_transaction()
        for order in store.get_purchases()
    )


def has_active_receipt(store: StoreController) -> bool:
    """Check for any non-consumable or subscription purchase with a receipt."""
    return any(
        order.product_type.is_restorable() and order.has_transaction()
        for order in store.get_purchases()
    )
