"""
Purchase Guard - In-app purchase receipt validation engine.

Validates store receipts locally and against a remote validation service,
and keeps an entitlement inventory for the user.
"""

from purchase_guard.config import InventoryRequestType, Settings, get_settings
from purchase_guard.models.domain import (
    Order,
    Platform,
    ProductType,
    PurchaseRecord,
    PurchaseStatus,
    Storefront,
    ValidationOutcome,
)
from purchase_guard.services.purchase_validator import PurchaseValidator
from purchase_guard.services.store_controller import StoreController

__all__ = [
    "InventoryRequestType",
    "Order",
    "Platform",
    "ProductType",
    "PurchaseRecord",
    "PurchaseStatus",
    "PurchaseValidator",
    "Settings",
    "StoreController",
    "Storefront",
    "ValidationOutcome",
    "get_settings",
]
