"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes and fixtures for testing:
- Settings for each inventory request policy
- A fake store controller with a live transaction list
- httpx MockTransport-backed validation service
- Google Play signing keys and signed receipts
- Fully wired validators for supported and unsupported storefronts
"""

import base64
import json
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from prometheus_client import CollectorRegistry

from purchase_guard.config import InventoryRequestType, Settings
from purchase_guard.models.domain import Order, Platform, ProductType, Storefront
from purchase_guard.observability.metrics import ValidatorMetrics
from purchase_guard.services.purchase_validator import PurchaseValidator
from purchase_guard.services.state_store import MemoryKeyValueStore

APP_ID = "a1b2c3d4e5f6a7b8"
BUNDLE_ID = "com.example.game"
NOW = 1_700_000_000.0

# ============================================================================
# Fakes
# ============================================================================


class FakeStore:
    """In-memory StoreController with a live transaction list."""

    def __init__(self, orders: list[Order] | None = None) -> None:
        self.orders: list[Order] = list(orders or [])
        self.confirmed: list[Order] = []

    def get_purchases(self) -> list[Order]:
        return list(self.orders)

    def confirm_purchase(self, order: Order) -> None:
        self.confirmed.append(order)
        self.orders = [
            replace(o, is_pending=False) if o.transaction_id == order.transaction_id else o
            for o in self.orders
        ]


@dataclass
class FakeValidationService:
    """Routes requests to canned responses and records them."""

    receipt_responses: list[httpx.Response | Exception] = field(default_factory=list)
    inventory_responses: list[httpx.Response | Exception] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            queue = self.inventory_responses
        else:
            queue = self.receipt_responses
        if not queue:
            return httpx.Response(500, json={"error": "no canned response"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        # Fresh copy, the last canned response may be served repeatedly
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)

    @property
    def receipt_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method != "GET"]

    @property
    def inventory_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _make_order(
    product_id: str = "no_ads",
    product_type: ProductType = ProductType.NON_CONSUMABLE,
    transaction_id: str | None = "GPA.1234-5678",
    receipt: str | None = None,
    is_pending: bool = True,
) -> Order:
    """Build an order with sensible defaults."""
    return Order(
        product_id=product_id,
        product_type=product_type,
        transaction_id=transaction_id,
        receipt=receipt,
        is_pending=is_pending,
    )


def _purchase_data(product_id: str = "no_ads", status: int = 0, **extra: Any) -> dict[str, Any]:
    """Purchase record fields in wire format."""
    data: dict[str, Any] = {
        "productId": product_id,
        "status": status,
        "type": "Non-Consumable",
        "sandbox": True,
    }
    data.update(extra)
    return data


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Factory for settings with test defaults."""

    def factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "app_id": APP_ID,
            "bundle_id": BUNDLE_ID,
            "validation_endpoint": "https://validator.test/v1/receipt",
            "inventory_endpoint": "https://validator.test/v1/user",
            "metrics_enabled": True,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    """Settings with inventory disabled."""
    return make_settings()


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def store() -> FakeStore:
    """Empty fake store."""
    return FakeStore()


@pytest.fixture
def service() -> FakeValidationService:
    """Fake validation service with no canned responses."""
    return FakeValidationService()


@pytest.fixture
def metrics() -> ValidatorMetrics:
    """Metrics on an isolated registry."""
    return ValidatorMetrics(registry=CollectorRegistry())


@pytest.fixture
def state_store() -> MemoryKeyValueStore:
    """Volatile persisted state."""
    return MemoryKeyValueStore()


@pytest.fixture
def clock() -> Callable[[], float]:
    """Controllable wall clock starting at NOW."""

    class Clock:
        def __init__(self) -> None:
            self.now = NOW

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return Clock()


@pytest.fixture
def make_validator(
    make_settings: Callable[..., Settings],
    service: FakeValidationService,
    state_store: MemoryKeyValueStore,
    metrics: ValidatorMetrics,
    clock: Callable[[], float],
) -> Callable[..., PurchaseValidator]:
    """Factory for validators wired to the fake service."""

    async def no_sleep(seconds: float) -> None:
        return None

    def factory(
        platform: Platform = Platform.IPHONE,
        storefront: Storefront = Storefront.APPLE_APP_STORE,
        store: FakeStore | None = None,
        sleep: Callable[[float], Any] = no_sleep,
        **setting_overrides: Any,
    ) -> PurchaseValidator:
        validator = PurchaseValidator(
            make_settings(**setting_overrides),
            platform,
            storefront,
            http_client=service.client(),
            state_store=state_store,
            metrics=metrics,
            clock=clock,
            restore_delay=lambda: 3.0,
            sleep=sleep,
        )
        if store is not None:
            validator.initialize(store)
        return validator

    return factory


@pytest.fixture
def inventory_settings() -> dict[str, Any]:
    """Overrides enabling inventory syncing once per session."""
    return {"inventory_request_type": InventoryRequestType.ONCE, "user_id": "user-42"}


# ============================================================================
# Google Play Signing Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def google_play_private_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for the Play Console license key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def google_play_public_key(google_play_private_key: rsa.RSAPrivateKey) -> str:
    """Base64 DER public key, as shown in the Play Console."""
    der = google_play_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der).decode("ascii")


@pytest.fixture
def sign_receipt(google_play_private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Build a unified Google Play receipt signed with the test key."""

    def factory(
        product_id: str = "no_ads",
        purchase_state: int = 0,
        package_name: str = BUNDLE_ID,
        order_id: str = "GPA.1234-5678",
        tamper: bool = False,
    ) -> str:
        purchase_json = json.dumps(
            {
                "orderId": order_id,
                "packageName": package_name,
                "productId": product_id,
                "purchaseTime": 1700000000000,
                "purchaseState": purchase_state,
                "purchaseToken": "token-abcdefghijklmnop",
            }
        )
        signature = google_play_private_key.sign(
            purchase_json.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1()
        )
        if tamper:
            purchase_json = purchase_json.replace('"purchaseState": 0', '"purchaseState": 1')
        payload = json.dumps(
            {"json": purchase_json, "signature": base64.b64encode(signature).decode("ascii")}
        )
        return json.dumps({"Store": "GooglePlay", "TransactionID": order_id, "Payload": payload})

    return factory


# ============================================================================
# Builder Fixtures
# ============================================================================


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory for store orders."""
    return _make_order


@pytest.fixture
def purchase_data() -> Callable[..., dict[str, Any]]:
    """Factory for wire-format purchase records."""
    return _purchase_data


@pytest.fixture
def make_store() -> Callable[..., FakeStore]:
    """Factory for fake stores holding the given orders."""
    return FakeStore
