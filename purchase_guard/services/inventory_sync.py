"""
Inventory Sync Workflow - Fetch the full entitlement set for the user.

Subject to the configured request policy, a single-flight guard and a
heuristic that skips users known to have no purchases.
"""

import asyncio
import time
from collections.abc import Callable

from structlog import get_logger

from purchase_guard.config import InventoryRequestType, Settings
from purchase_guard.exceptions import PurchaseGuardError
from purchase_guard.observability.metrics import ValidatorMetrics
from purchase_guard.services.capability import CapabilityGate
from purchase_guard.services.events import BackgroundTasks, EventHook
from purchase_guard.services.inventory_store import InventoryStore
from purchase_guard.services.session import SessionState
from purchase_guard.services.state_store import PurchaseHistoryMarker
from purchase_guard.services.store_controller import has_active_receipt
from purchase_guard.services.validation_client import ValidationServiceClient

logger = get_logger(__name__)


class InventorySyncWorkflow:
    """Replaces the inventory snapshot with the server's view of the user."""

    def __init__(
        self,
        settings: Settings,
        gate: CapabilityGate,
        session: SessionState,
        inventory: InventoryStore,
        history: PurchaseHistoryMarker,
        client: ValidationServiceClient,
        tasks: BackgroundTasks,
        metrics: ValidatorMetrics,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gate = gate
        self.session = session
        self.inventory = inventory
        self.history = history
        self.client = client
        self.tasks = tasks
        self.metrics = metrics
        self.clock = clock

        self.request_type = settings.inventory_request_type
        self.delay_seconds = settings.inventory_delay_seconds

        self.last_sync_at: float | None = None  # Never synced this session
        self.in_flight = False

        # Observers receive the live read-only snapshot
        self.inventory_ready = EventHook("inventory_ready")

    @property
    def enabled(self) -> bool:
        return self.request_type != InventoryRequestType.DISABLED

    def _policy_allows(self) -> bool:
        if self.request_type == InventoryRequestType.DISABLED:
            return False
        if self.last_sync_at is None:
            return True
        if self.request_type == InventoryRequestType.ONCE:
            return False
        # DELAY: limit bandwidth and API usage
        return self.clock() - self.last_sync_at > self.delay_seconds

    def can_request_inventory(self) -> bool:
        """Check the single-flight guard, the request policy and the user id."""
        if self.in_flight:
            return False
        if not self._policy_allows():
            return False
        return bool(self.session.user_id)

    def _skip(self, reason: str) -> None:
        self.metrics.record_inventory_skipped(reason)
        if self.enabled:
            logger.warning("inventory_request_skipped", reason=reason)

    def request_inventory(self) -> asyncio.Task[None] | None:
        """
        Request the user inventory (fire-and-forget).

        Returns:
            The scheduled sync task, or None when the request was skipped
        """
        if not self.can_request_inventory():
            self._skip("not_allowed")
            return None

        store = self.session.store
        if store is None or not self.gate.remote_validation:
            self._skip("unsupported")
            return None

        # No purchase on this device and none seen recently: the user
        # has to start a restore first
        if not has_active_receipt(store) and not self.history.has_recent_history(self.clock()):
            self._skip("no_purchase_history")
            return None

        self.in_flight = True
        task = self.tasks.spawn(self.sync(), name="inventory_sync")
        if task is None:
            self.in_flight = False
            self._skip("no_event_loop")
        return task

    async def sync(self) -> None:
        """Fetch the inventory and replace the snapshot (clear, then repopulate)."""
        try:
            response = await self.client.fetch_inventory(self.session.user_id)
        except PurchaseGuardError as exc:
            self.metrics.record_inventory_sync("failed")
            logger.warning("inventory_sync_failed", error=str(exc))
            return
        finally:
            self.in_flight = False

        records = response.to_records()
        self.inventory.replace_all(records.values())
        self.history.update(len(self.inventory), self.clock())

        self.last_sync_at = self.clock()
        self.metrics.record_inventory_sync("success")
        logger.info("inventory_synced", count=len(self.inventory))

        self.inventory_ready.emit(self.inventory.view())
