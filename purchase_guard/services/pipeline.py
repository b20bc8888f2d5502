"""
Validation Request Pipeline - Local validation, remote validation and
transaction confirmation for a single purchase.

State machine for one purchase:
    Received -> LocallyValidating -> RemotelyValidating -> Purchased | Failed

RemotelyValidating may park in Pending (open store transaction) until the
remote continuation resolves it or a later launch re-drives the purchase.
"""

import asyncio
import json
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError
from structlog import get_logger

from purchase_guard.config import Settings
from purchase_guard.exceptions import (
    InvalidResponseError,
    InvalidSignatureError,
    MissingReceiptError,
    ServerRateLimitedError,
    ServerValidationRejectedError,
    TransportError,
)
from purchase_guard.models.api import PurchaseData, ReceiptRequest, ValidationResponse
from purchase_guard.models.domain import Order, ValidationOutcome
from purchase_guard.observability.logging import log_context
from purchase_guard.observability.metrics import ValidatorMetrics
from purchase_guard.services.capability import CapabilityGate
from purchase_guard.services.events import BackgroundTasks, EventHook
from purchase_guard.services.inventory_store import InventoryStore
from purchase_guard.services.local_validator import LocalValidator
from purchase_guard.services.session import SessionState
from purchase_guard.services.store_controller import find_pending_order
from purchase_guard.services.validation_client import ServiceReply, ValidationServiceClient

logger = get_logger(__name__)


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or json.dumps(error))
    return str(error)


def check_validation_reply(reply: ServiceReply, rate_limited_code: int) -> ValidationResponse:
    """
    Interpret a receipt validation reply.

    The outcome is decided by which keys the body carries, so an error
    payload of any shape still rejects or rate limits the request.

    Args:
        reply: Parsed reply from the validation service
        rate_limited_code: Error code the service uses for too many requests

    Returns:
        The validated response when the receipt was accepted

    Raises:
        ServerRateLimitedError: If the service asks to retry later
        ServerValidationRejectedError: If the service rejected the receipt or
            sent purchase data that cannot be read
    """
    body = reply.body
    code = body.get("code")
    error_code = code if isinstance(code, int) and not isinstance(code, bool) else None

    if "error" in body:
        message = _error_message(body["error"])
        if code == rate_limited_code:
            raise ServerRateLimitedError(rate_limited_code, message)
        raise ServerValidationRejectedError(message, error_code)

    if not reply.ok:
        raise ServerValidationRejectedError(f"HTTP {reply.status_code}", error_code)

    data = body.get("data")
    if not isinstance(data, dict):
        raise ServerValidationRejectedError("missing data", error_code)

    try:
        purchase = PurchaseData.model_validate(data)
    except ValidationError as exc:
        raise ServerValidationRejectedError(
            f"unreadable purchase data ({exc.error_count()} errors)", error_code
        ) from exc

    user = body.get("user")
    return ValidationResponse(
        data=purchase,
        user=None if user is None else str(user),
        code=error_code,
    )


class ValidationPipeline:
    """
    Per-purchase validation.

    request_purchase() never blocks on the network: when remote validation
    applies it schedules the continuation and answers Pending.
    """

    def __init__(
        self,
        settings: Settings,
        gate: CapabilityGate,
        session: SessionState,
        inventory: InventoryStore,
        client: ValidationServiceClient,
        tasks: BackgroundTasks,
        metrics: ValidatorMetrics,
        local_validator: LocalValidator | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.settings = settings
        self.gate = gate
        self.session = session
        self.inventory = inventory
        self.client = client
        self.tasks = tasks
        self.metrics = metrics
        self.local_validator = local_validator
        self.timer = timer

        # Observers receive (success, order, raw_response)
        self.validation_completed = EventHook("validation_completed")

    def request_purchase(self, order: Order) -> ValidationOutcome:
        """
        Validate a newly bought or restored purchase.

        Remote validation runs on the running event loop. Without one the
        order stays Pending and is re-driven on a later launch.

        Args:
            order: Order handed over by the purchasing layer

        Returns:
            Purchased, Pending (keep the transaction open) or Failed
        """
        outcome = self._evaluate(order)
        self.metrics.record_outcome(outcome.value, self.gate.storefront.value)
        logger.info(
            "purchase_validation_requested",
            product_id=order.product_id,
            outcome=outcome.value,
        )
        return outcome

    def _evaluate(self, order: Order) -> ValidationOutcome:
        # Running on an unsupported store or not connected yet: nothing to validate against
        if not self.session.is_connected:
            return ValidationOutcome.PURCHASED

        if not order.has_transaction():
            error = MissingReceiptError(order.product_id)
            logger.warning("purchase_validation_failed", error=str(error))
            return ValidationOutcome.FAILED

        outcome = ValidationOutcome.PURCHASED
        if self.gate.local_validation and self.local_validator is not None:
            outcome = self.validate_locally(order)

        if outcome == ValidationOutcome.PURCHASED and self.gate.remote_validation:
            self.submit(order)
            return ValidationOutcome.PENDING

        return outcome

    def validate_locally(self, order: Order) -> ValidationOutcome:
        """Run the local validator; deferred payments stay pending."""
        if self.local_validator is None:
            return ValidationOutcome.PURCHASED

        try:
            if order.receipt is None:
                raise InvalidSignatureError("no receipt payload")
            receipts = self.local_validator.validate(order.receipt)
        except InvalidSignatureError as exc:
            logger.warning(
                "local_validation_failed",
                product_id=order.product_id,
                error=exc.message,
            )
            return ValidationOutcome.FAILED

        product_ids = {order.product_id, order.store_product_id}
        for receipt in receipts:
            if receipt.product_id in product_ids and receipt.is_deferred():
                logger.info(
                    "local_validation_deferred",
                    product_id=order.product_id,
                    purchase_state=receipt.purchase_state,
                )
                return ValidationOutcome.PENDING

        return ValidationOutcome.PURCHASED

    def build_request(self, order: Order) -> ReceiptRequest:
        """Build the validation request body for an order."""
        return ReceiptRequest(
            store=self.gate.storefront.value,
            bid=self.settings.bundle_id,
            pid=order.store_product_id,
            type=order.product_type.wire_name(),
            user=self.session.user_id,
            receipt=order.transaction_id or "",
        )

    def submit(self, order: Order) -> asyncio.Task[None] | None:
        """Schedule remote validation for an order; None when no event loop runs."""
        return self.tasks.spawn(
            self.validate_remotely(order),
            name=f"validate_receipt:{order.product_id}",
        )

    async def validate_remotely(self, order: Order) -> None:
        """
        Remote validation continuation.

        Fires validation_completed before any confirmation is attempted. The
        store transaction stays open when no JSON object came back or the
        request was rate limited, so the purchase is re-driven on a later launch.
        Any other reply closes it, with the parsed body handed to observers.
        """
        with log_context(product_id=order.product_id):
            started = self.timer()
            raw: dict[str, Any] | None = None
            success = False

            try:
                reply = await self.client.submit_receipt(self.build_request(order))
                raw = reply.body
                response = check_validation_reply(reply, self.settings.rate_limited_error_code)
            except (TransportError, InvalidResponseError) as exc:
                raw = None
                result = "transport_error" if isinstance(exc, TransportError) else "invalid_response"
                logger.warning("remote_validation_unavailable", result=result, error=str(exc))
            except ServerRateLimitedError as exc:
                result = "rate_limited"
                logger.warning("remote_validation_rate_limited", code=exc.code)
            except ServerValidationRejectedError as exc:
                result = "rejected"
                logger.warning("remote_validation_rejected", error=exc.message, code=exc.code)
            else:
                result = "success"
                success = True
                record = response.data.to_record()  # type: ignore[union-attr]
                self.session.adopt_user_id(response.user)
                self.inventory.upsert(record)
                logger.info("remote_validation_succeeded", status=record.status)

            self.metrics.record_remote_validation(result, self.timer() - started)
            self.validation_completed.emit(success, order, raw)

            if result in ("transport_error", "invalid_response", "rate_limited"):
                logger.info("transaction_left_pending", result=result)
                return

            self.confirm(order.product_id)

    def confirm(self, product_id: str) -> bool:
        """Confirm the live pending order for a product, if the store still has one."""
        store = self.session.store
        if store is None:
            return False

        current = find_pending_order(store, product_id)
        if current is None:
            logger.info("no_pending_order_to_confirm", product_id=product_id)
            return False

        store.confirm_purchase(current)
        self.metrics.record_confirmation()
        logger.info(
            "transaction_confirmed",
            product_id=product_id,
            transaction_id=current.transaction_id,
        )
        return True
