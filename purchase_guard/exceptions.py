"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""


class PurchaseGuardError(Exception):
    """Base exception for all purchase validation errors."""

    pass


class MissingReceiptError(PurchaseGuardError):
    """Raised when an order carries no transaction identifier."""

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"No transaction id for product: {product_id}")


class InvalidSignatureError(PurchaseGuardError):
    """Raised when a local validator rejects the receipt signature or format."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid receipt: {message}")


class TransportError(PurchaseGuardError):
    """Raised when the validation service cannot be reached."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        self.message = message
        super().__init__(f"Transport error for {url}: {message}")


class InvalidResponseError(PurchaseGuardError):
    """Raised when the validation service returns a body that is not usable JSON."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Invalid response (HTTP {status_code}): {body[:200]}")


class ServerRateLimitedError(PurchaseGuardError):
    """Raised when the validation service reports too many requests."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Rate limited ({code}): {message}")


class ServerValidationRejectedError(PurchaseGuardError):
    """Raised when the validation service rejects the receipt."""

    def __init__(self, message: str, code: int | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(f"Validation rejected ({code}): {message}")


class InventoryFetchError(PurchaseGuardError):
    """Raised when the inventory request returns an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Inventory fetch failed (HTTP {status_code}): {message}")
