"""
API Models - Pydantic models for the validation service wire format.

NO DICTIONARIES - All data structures are strongly typed.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from purchase_guard.models.domain import PurchaseRecord

# ============================================================================
# Receipt Validation Models
# ============================================================================


class ReceiptRequest(BaseModel):
    """POST/PUT {validation_endpoint}/{app_id} request body."""

    store: str = Field(..., min_length=1, description="Storefront identifier")
    bid: str = Field(..., description="Application bundle id")
    pid: str = Field(..., min_length=1, description="Store-specific product id")
    type: Literal["Consumable", "Subscription", "Non-Consumable"]
    user: str = Field("", description="Opaque user id, may be empty")
    receipt: str = Field(..., min_length=1, description="Transaction id or receipt payload")


class PurchaseData(BaseModel):
    """Purchase record fields as returned by the validation service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: str = Field(..., alias="productId", min_length=1)
    status: int
    type: str = ""
    sandbox: bool = False
    expires_date: int | None = Field(None, alias="expiresDate")
    auto_renew: bool | None = Field(None, alias="autoRenew")
    cancel_reason: int | None = Field(None, alias="cancelReason")
    billing_retry: bool | None = Field(None, alias="billingRetry")
    group_id: str | None = Field(None, alias="groupId")

    def to_record(self) -> PurchaseRecord:
        """Convert to immutable domain record."""
        return PurchaseRecord(
            product_id=self.product_id,
            status=self.status,
            type=self.type,
            sandbox=self.sandbox,
            expires_date=self.expires_date,
            auto_renew=self.auto_renew,
            cancel_reason=self.cancel_reason,
            billing_retry=self.billing_retry,
            group_id=self.group_id,
        )


class ValidationResponse(BaseModel):
    """Accepted receipt validation reply, as read by check_validation_reply."""

    model_config = ConfigDict(extra="ignore")

    data: PurchaseData | None = None
    user: str | None = None
    error: str | None = None
    code: int | None = None

    def is_success(self) -> bool:
        """No error reported and purchase data present."""
        return not self.error and self.data is not None


# ============================================================================
# Inventory Models
# ============================================================================


class InventoryEntry(BaseModel):
    """One element of the inventory purchases array."""

    model_config = ConfigDict(extra="ignore")

    data: PurchaseData


class InventoryResponse(BaseModel):
    """GET {inventory_endpoint}/{app_id}/{user_id} response body."""

    model_config = ConfigDict(extra="ignore")

    purchases: list[InventoryEntry] = Field(default_factory=list)

    def to_records(self) -> dict[str, PurchaseRecord]:
        """Records keyed by product id; later entries win on duplicates."""
        return {entry.data.product_id: entry.data.to_record() for entry in self.purchases}
