"""
Google Play domain models - Immutable dataclasses for local receipt validation.

NO DICTIONARIES - All data uses strongly typed models.
"""

from dataclasses import dataclass

from purchase_guard.models.domain import DecodedReceipt

# purchaseState values reported in the signed purchase data
PURCHASE_STATE_PURCHASED = 0
PURCHASE_STATE_CANCELED = 1
PURCHASE_STATE_PENDING = 2
PURCHASE_STATE_DEFERRED = 4

DEFERRED_PURCHASE_STATES = frozenset({PURCHASE_STATE_PENDING, PURCHASE_STATE_DEFERRED})


@dataclass(frozen=True)
class GooglePlayReceipt(DecodedReceipt):
    """Signed Google Play purchase data after signature verification."""

    order_id: str = ""
    purchase_token: str = ""

    def is_deferred(self) -> bool:
        """Check if payment has not been processed yet (e.g. parental approval)."""
        return self.purchase_state in DEFERRED_PURCHASE_STATES


@dataclass(frozen=True)
class GooglePlaySignedData:
    """Signed purchase payload extracted from the unified receipt."""

    json: str  # Exact signed JSON string
    signature: str  # Base64 RSA signature over json

    def __post_init__(self) -> None:
        """Validate signed data fields."""
        if not self.json:
            raise ValueError("Signed purchase data required")
        if not self.signature:
            raise ValueError("Signature required")
