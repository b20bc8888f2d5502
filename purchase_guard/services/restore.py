"""
Restore Workflow - Resubmit restorable store purchases for validation.

Submissions are spaced by a randomized delay so a restore never bursts
the validation endpoint into rate limiting.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable

from structlog import get_logger

from purchase_guard.config import Settings
from purchase_guard.models.domain import Order
from purchase_guard.observability.metrics import ValidatorMetrics
from purchase_guard.services.capability import CapabilityGate
from purchase_guard.services.events import BackgroundTasks
from purchase_guard.services.inventory_store import InventoryStore
from purchase_guard.services.pipeline import ValidationPipeline
from purchase_guard.services.session import SessionState

logger = get_logger(__name__)


def jitter(min_seconds: float, max_seconds: float) -> Callable[[], float]:
    """Delay generator sampling uniformly from [min_seconds, max_seconds]."""
    return lambda: random.uniform(min_seconds, max_seconds)


class RestoreWorkflow:
    """Re-validates purchases the store knows about but the inventory does not."""

    def __init__(
        self,
        settings: Settings,
        gate: CapabilityGate,
        session: SessionState,
        inventory: InventoryStore,
        pipeline: ValidationPipeline,
        tasks: BackgroundTasks,
        metrics: ValidatorMetrics,
        delay: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.gate = gate
        self.session = session
        self.inventory = inventory
        self.pipeline = pipeline
        self.tasks = tasks
        self.metrics = metrics
        self.delay = delay or jitter(
            settings.restore_delay_min_seconds, settings.restore_delay_max_seconds
        )
        self.sleep = sleep

    def candidates(self) -> list[Order]:
        """Restorable orders: not consumable, with a transaction, not in inventory."""
        store = self.session.store
        if store is None:
            return []

        selected: list[Order] = []
        seen: set[str] = set()
        for order in store.get_purchases():
            if not order.product_type.is_restorable() or not order.has_transaction():
                continue
            if order.product_id in self.inventory or order.product_id in seen:
                continue
            seen.add(order.product_id)
            selected.append(order)
        return selected

    def request_restore(self) -> asyncio.Task[None] | None:
        """
        Start a restore (fire-and-forget).

        Returns:
            The scheduled restore task, or None on an unsupported or
            unconnected store or without a running event loop
        """
        if not self.session.is_connected or not self.gate.remote_validation:
            logger.info("restore_not_supported", storefront=self.gate.storefront.value)
            return None

        return self.tasks.spawn(self.restore(), name="restore")

    async def restore(self) -> None:
        """Submit each candidate, waiting a randomized delay between submissions."""
        orders = self.candidates()
        logger.info("restore_started", candidates=len(orders))

        submitted = 0
        for order in orders:
            if submitted:
                await self.sleep(self.delay())
            # An earlier submission may have filled this product in meanwhile
            if order.product_id in self.inventory:
                continue

            self.pipeline.submit(order)
            self.metrics.record_restore_submission()
            submitted += 1

        logger.info("restore_submitted", submitted=submitted)
