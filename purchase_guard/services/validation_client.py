"""
Validation Service Client - HTTP access to the receipt validation backend.

NO DICTIONARIES - Requests and inventory responses use strongly typed models.
The raw receipt reply is kept as parsed JSON because it is handed to
validation observers unchanged.
"""

from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError
from structlog import get_logger

from purchase_guard.config import Settings
from purchase_guard.exceptions import InventoryFetchError, InvalidResponseError, TransportError
from purchase_guard.models.api import InventoryResponse, ReceiptRequest

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceReply:
    """Parsed reply of a receipt validation request."""

    status_code: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        """Transport-level success (no HTTP error status)."""
        return self.status_code < 400


class ValidationServiceClient:
    """
    Client for the receipt validation and user inventory endpoints.

    An injected httpx.AsyncClient stays owned by the caller; otherwise one is
    created on first use and closed by aclose().
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        """
        Initialize validation service client.

        Args:
            settings: Validator settings with endpoints and timeouts
            http_client: Optional shared HTTP client
        """
        self.settings = settings
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a JSON request, mapping network failures to TransportError."""
        headers = {"Content-Type": "application/json"}
        try:
            return await self._get_client().request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("validation_service_unreachable", method=method, url=url, error=str(exc))
            raise TransportError(url, str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _parse_object(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidResponseError(response.status_code, response.text) from exc
        if not isinstance(body, dict):
            raise InvalidResponseError(response.status_code, response.text)
        return body

    async def submit_receipt(self, request: ReceiptRequest) -> ServiceReply:
        """
        Submit a receipt for validation.

        Args:
            request: Validation request body

        Returns:
            Reply with HTTP status and parsed JSON body (error statuses included,
            since the body carries the error details)

        Raises:
            TransportError: If the service cannot be reached
            InvalidResponseError: If the body is not a JSON object
        """
        url = self.settings.receipt_url
        logger.info(
            "submitting_receipt",
            store=request.store,
            product_id=request.pid,
            product_type=request.type,
        )

        response = await self._request(
            self.settings.validation_method.upper(),
            url,
            json=request.model_dump(),
        )
        body = self._parse_object(response)

        logger.info(
            "receipt_reply_received",
            product_id=request.pid,
            status=response.status_code,
            has_data="data" in body,
            error=body.get("error"),
        )
        return ServiceReply(status_code=response.status_code, body=body)

    async def fetch_inventory(self, user_id: str) -> InventoryResponse:
        """
        Fetch every purchase known for a user.

        Args:
            user_id: Non-empty user identifier

        Returns:
            Parsed inventory response

        Raises:
            TransportError: If the service cannot be reached
            InventoryFetchError: If the service returns an error status
            InvalidResponseError: If the body does not match the inventory format
        """
        url = self.settings.inventory_url(user_id)
        logger.info("fetching_inventory", user_id=user_id)

        response = await self._request("GET", url)

        if response.status_code >= 400:
            logger.error(
                "inventory_fetch_error",
                status=response.status_code,
                error=response.text[:500],
            )
            raise InventoryFetchError(response.status_code, response.text[:200])

        body = self._parse_object(response)
        try:
            inventory = InventoryResponse.model_validate(body)
        except ValidationError as exc:
            raise InvalidResponseError(response.status_code, response.text) from exc

        logger.info("inventory_fetched", user_id=user_id, count=len(inventory.purchases))
        return inventory
