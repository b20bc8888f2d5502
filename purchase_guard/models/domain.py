"""
Domain Models - Internal validation engine models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


class Platform(str, Enum):
    """Runtime platform the host application is running on."""

    ANDROID = "android"
    IPHONE = "iphone"
    OSX = "osx"
    TVOS = "tvos"
    WINDOWS = "windows"
    LINUX = "linux"
    WEBGL = "webgl"
    EDITOR = "editor"


class Storefront(str, Enum):
    """Active storefront; the value is the identifier sent to the service."""

    GOOGLE_PLAY = "GooglePlay"
    APPLE_APP_STORE = "AppleAppStore"
    MAC_APP_STORE = "MacAppStore"
    AMAZON_APP_STORE = "AmazonAppStore"
    WINDOWS_STORE = "WindowsStore"
    FAKE = "fake"


class ProductType(str, Enum):
    """Product type as declared in the store catalog."""

    CONSUMABLE = "Consumable"
    NON_CONSUMABLE = "NonConsumable"
    SUBSCRIPTION = "Subscription"

    def is_restorable(self) -> bool:
        """Consumables are used up and cannot be restored."""
        return self != ProductType.CONSUMABLE

    def wire_name(self) -> str:
        """Product type string expected by the validation service."""
        if self == ProductType.NON_CONSUMABLE:
            return "Non-Consumable"
        return self.value


class ValidationOutcome(str, Enum):
    """Result of a purchase validation request."""

    PURCHASED = "purchased"  # Close transaction and grant reward
    PENDING = "pending"  # Keep transaction open, resolved later
    FAILED = "failed"  # Close transaction without reward

    def should_complete_transaction(self) -> bool:
        """Check if the host may close the store transaction now."""
        return self != ValidationOutcome.PENDING


class PurchaseStatus(IntEnum):
    """Server-side purchase status ordinals."""

    ACTIVE = 0
    ACTIVE_TRIAL = 1
    EXPIRED = 2
    INVALID = 3
    GRACE_PERIOD = 4


ACTIVE_STATUSES: frozenset[int] = frozenset(
    {PurchaseStatus.ACTIVE, PurchaseStatus.ACTIVE_TRIAL, PurchaseStatus.GRACE_PERIOD}
)


@dataclass(frozen=True)
class PurchaseRecord:
    """Server-confirmed entitlement for one product.

    Replaced wholesale whenever the same product is validated again.
    """

    product_id: str
    status: int  # See PurchaseStatus; unknown ordinals are kept as received
    type: str  # "Consumable", "Non-Consumable", "Subscription"
    sandbox: bool = False

    # Subscription fields
    expires_date: int | None = None  # Unix timestamp in milliseconds
    auto_renew: bool | None = None
    cancel_reason: int | None = None
    billing_retry: bool | None = None
    group_id: str | None = None

    def __post_init__(self) -> None:
        """Validate purchase record fields."""
        if not self.product_id:
            raise ValueError("Product ID required")

    def is_active(self) -> bool:
        """Check if the entitlement currently grants access."""
        return self.status in ACTIVE_STATUSES

    def describe(self) -> str:
        """Compact summary for debug output."""
        result = (
            f"ProductId:{self.product_id}, Status:{self.status}, "
            f"Type:{self.type}, Sandbox:{self.sandbox}"
        )
        if self.expires_date is not None:
            result += f", ExpiresDate:{self.expires_date}"
        if self.auto_renew is not None:
            result += f", AutoRenew:{self.auto_renew}"
        if self.cancel_reason is not None:
            result += f", CancelReason:{self.cancel_reason}"
        if self.billing_retry is not None:
            result += f", BillingRetry:{self.billing_retry}"
        if self.group_id:
            result += f", GroupId:{self.group_id}"
        return result


@dataclass(frozen=True)
class Order:
    """Purchase/order handed over by the platform purchasing layer."""

    product_id: str
    product_type: ProductType
    transaction_id: str | None = None
    receipt: str | bytes | None = None  # Raw receipt payload
    store_specific_id: str = ""  # Defaults to product_id when empty
    is_pending: bool = True  # Still waiting for confirmation in the store

    @property
    def store_product_id(self) -> str:
        """Store-specific product id (falls back to the catalog id)."""
        return self.store_specific_id or self.product_id

    def has_transaction(self) -> bool:
        """Check if the order carries a transaction identifier."""
        return bool(self.transaction_id)


@dataclass(frozen=True)
class DecodedReceipt:
    """Claim decoded by a local validator."""

    product_id: str
    purchase_state: int
    transaction_id: str = ""
    package_name: str = ""
    purchase_time_millis: int = 0

    def is_deferred(self) -> bool:
        """Check if payment is still outstanding. Storefront-specific."""
        return False
