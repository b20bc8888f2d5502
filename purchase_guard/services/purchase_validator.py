"""
Purchase Validator - Composition of the validation workflows.

Constructed explicitly by the host's composition root and passed to the
code that needs it. There is no process-wide instance.

Usage:
    validator = PurchaseValidator(settings, Platform.ANDROID, Storefront.GOOGLE_PLAY)
    validator.validation_completed.subscribe(on_validated)
    validator.initialize(store, request_inventory=True)

    outcome = validator.request_purchase(order)
    if outcome.should_complete_transaction():
        ...  # grant or reject now, close the transaction
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping

import httpx
from structlog import get_logger

from purchase_guard.config import Settings
from purchase_guard.models.domain import (
    Order,
    Platform,
    PurchaseRecord,
    Storefront,
    ValidationOutcome,
)
from purchase_guard.observability.metrics import ValidatorMetrics
from purchase_guard.services.capability import CapabilityGate
from purchase_guard.services.events import BackgroundTasks, EventHook
from purchase_guard.services.inventory_store import InventoryStore
from purchase_guard.services.inventory_sync import InventorySyncWorkflow
from purchase_guard.services.local_validator import create_local_validator
from purchase_guard.services.pipeline import ValidationPipeline
from purchase_guard.services.restore import RestoreWorkflow
from purchase_guard.services.session import SessionState
from purchase_guard.services.state_store import (
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    PurchaseHistoryMarker,
)
from purchase_guard.services.store_controller import StoreController, has_receipt
from purchase_guard.services.validation_client import ValidationServiceClient

logger = get_logger(__name__)


class PurchaseValidator:
    """
    Receipt validation engine.

    Fire ordering: validation_completed always fires before the store
    transaction is confirmed.
    """

    def __init__(
        self,
        settings: Settings,
        platform: Platform,
        storefront: Storefront,
        *,
        http_client: httpx.AsyncClient | None = None,
        state_store: KeyValueStore | None = None,
        metrics: ValidatorMetrics | None = None,
        clock: Callable[[], float] = time.time,
        restore_delay: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the validator.

        Args:
            settings: Validator settings
            platform: Runtime platform of the host application
            storefront: Active storefront
            http_client: Optional shared HTTP client for the validation service
            state_store: Persistence for the purchase history marker
                (defaults to the configured state file, or memory)
            metrics: Metrics sink (defaults to a private registry)
            clock: Wall clock in Unix seconds
            restore_delay: Generator for the delay between restore submissions
            sleep: Awaitable sleep used between restore submissions
        """
        self.settings = settings
        self.gate = CapabilityGate(platform, storefront)
        self.session = SessionState(user_id=settings.user_id)
        self.inventory = InventoryStore()
        self.tasks = BackgroundTasks()
        self.metrics = metrics or ValidatorMetrics(enabled=settings.metrics_enabled)
        self.client = ValidationServiceClient(settings, http_client)

        if state_store is None:
            state_store = (
                JsonFileKeyValueStore(settings.state_file)
                if settings.state_file
                else MemoryKeyValueStore()
            )
        self.history = PurchaseHistoryMarker(
            state_store,
            settings.history_marker_key,
            settings.purchase_history_window_seconds,
        )

        self.pipeline = ValidationPipeline(
            settings,
            self.gate,
            self.session,
            self.inventory,
            self.client,
            self.tasks,
            self.metrics,
        )
        self.inventory_sync = InventorySyncWorkflow(
            settings,
            self.gate,
            self.session,
            self.inventory,
            self.history,
            self.client,
            self.tasks,
            self.metrics,
            clock=clock,
        )
        self.restore = RestoreWorkflow(
            settings,
            self.gate,
            self.session,
            self.inventory,
            self.pipeline,
            self.tasks,
            self.metrics,
            delay=restore_delay,
            sleep=sleep,
        )

        logger.info(
            "purchase_validator_created",
            platform=platform.value,
            storefront=storefront.value,
            local_validation=self.gate.local_validation,
            remote_validation=self.gate.remote_validation,
            inventory_request_type=settings.inventory_request_type.value,
        )

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def initialize(self, store: StoreController, request_inventory: bool = False) -> None:
        """
        Connect the purchasing layer and build the local validator.

        Call once the store has fetched its purchases. Pass
        request_inventory=True (from inside the event loop) to request the
        inventory right away; otherwise the host calls request_inventory()
        itself when it wants the server snapshot.
        """
        self.session.store = store
        self.pipeline.local_validator = create_local_validator(self.gate, self.settings)
        logger.info(
            "purchase_validator_initialized",
            local_validator=self.pipeline.local_validator is not None,
        )
        if request_inventory:
            self.request_inventory()

    @property
    def is_initialized(self) -> bool:
        return self.session.is_connected

    async def wait_idle(self) -> None:
        """Wait until every background validation, sync and restore has finished."""
        await self.tasks.wait_idle()

    async def aclose(self) -> None:
        """Cancel background work and release the HTTP client."""
        await self.tasks.cancel_all()
        await self.client.aclose()

    # ========================================================================
    # Notifications
    # ========================================================================

    @property
    def validation_completed(self) -> EventHook:
        """Observers receive (success, order, raw_response)."""
        return self.pipeline.validation_completed

    @property
    def inventory_ready(self) -> EventHook:
        """Observers receive the read-only inventory snapshot."""
        return self.inventory_sync.inventory_ready

    # ========================================================================
    # User
    # ========================================================================

    @property
    def user_id(self) -> str:
        return self.session.user_id

    @user_id.setter
    def user_id(self, value: str) -> None:
        self.session.user_id = value

    # ========================================================================
    # Operations
    # ========================================================================

    def request_purchase(self, order: Order) -> ValidationOutcome:
        """Validate a newly bought or restored purchase."""
        return self.pipeline.request_purchase(order)

    def request_inventory(self) -> asyncio.Task[None] | None:
        """Request the user inventory from the validation service."""
        return self.inventory_sync.request_inventory()

    def can_request_inventory(self) -> bool:
        """Check if an inventory request is currently allowed."""
        return self.inventory_sync.can_request_inventory()

    def request_restore(self) -> asyncio.Task[None] | None:
        """Re-validate restorable purchases missing from the inventory."""
        return self.restore.request_restore()

    def get_inventory(self) -> Mapping[str, PurchaseRecord]:
        """Live read-only view of the inventory snapshot."""
        return self.inventory.view()

    def is_owned(self, product_id: str) -> bool:
        """
        Check if a product is owned.

        With inventory syncing enabled this requires an active server record.
        Otherwise it degrades to the presence of a local store receipt.
        """
        if self.inventory_sync.enabled:
            return self.inventory.is_owned(product_id)

        store = self.session.store
        if store is None:
            return False
        return has_receipt(store, product_id)
