"""
Tests for exception classes.

Covers all exception types and their string representations.
"""

import pytest

from purchase_guard.config import ConfigurationError
from purchase_guard.exceptions import (
    InvalidResponseError,
    InvalidSignatureError,
    InventoryFetchError,
    MissingReceiptError,
    PurchaseGuardError,
    ServerRateLimitedError,
    ServerValidationRejectedError,
    TransportError,
)


class TestPurchaseGuardError:
    """Tests for base PurchaseGuardError."""

    def test_is_exception(self):
        """PurchaseGuardError is a subclass of Exception."""
        assert issubclass(PurchaseGuardError, Exception)

    def test_can_be_raised(self):
        """PurchaseGuardError can be raised and caught."""
        with pytest.raises(PurchaseGuardError):
            raise PurchaseGuardError("test error")

    @pytest.mark.parametrize(
        "exc",
        [
            MissingReceiptError("coins"),
            InvalidSignatureError("bad"),
            TransportError("https://validator.test", "timeout"),
            InvalidResponseError(502, "<html>"),
            ServerRateLimitedError(10130, "Too many requests"),
            ServerValidationRejectedError("Receipt invalid", 10001),
            InventoryFetchError(404, "not found"),
        ],
    )
    def test_all_errors_share_base(self, exc):
        """Every validation error derives from PurchaseGuardError."""
        assert isinstance(exc, PurchaseGuardError)

    def test_configuration_error_is_separate(self):
        """Startup configuration errors are not purchase validation errors."""
        assert not issubclass(ConfigurationError, PurchaseGuardError)


class TestMissingReceiptError:
    """Tests for MissingReceiptError."""

    def test_attributes_and_message(self):
        exc = MissingReceiptError("coins")
        assert exc.product_id == "coins"
        assert "coins" in str(exc)


class TestInvalidSignatureError:
    """Tests for InvalidSignatureError."""

    def test_message_format(self):
        exc = InvalidSignatureError("Signature verification failed")
        assert exc.message == "Signature verification failed"
        assert str(exc) == "Invalid receipt: Signature verification failed"


class TestTransportError:
    """Tests for TransportError."""

    def test_attributes(self):
        exc = TransportError("https://validator.test/v1/receipt/app", "connection refused")
        assert exc.url == "https://validator.test/v1/receipt/app"
        assert exc.message == "connection refused"
        assert "connection refused" in str(exc)


class TestInvalidResponseError:
    """Tests for InvalidResponseError."""

    def test_body_truncated_in_message(self):
        """Long bodies are kept on the attribute but truncated in the message."""
        body = "x" * 1000
        exc = InvalidResponseError(500, body)
        assert exc.status_code == 500
        assert exc.body == body
        assert len(str(exc)) < 300


class TestServerRateLimitedError:
    """Tests for ServerRateLimitedError."""

    def test_attributes(self):
        exc = ServerRateLimitedError(10130, "Too many requests")
        assert exc.code == 10130
        assert exc.message == "Too many requests"
        assert "10130" in str(exc)


class TestServerValidationRejectedError:
    """Tests for ServerValidationRejectedError."""

    def test_code_is_optional(self):
        exc = ServerValidationRejectedError("missing data")
        assert exc.code is None
        assert "missing data" in str(exc)


class TestInventoryFetchError:
    """Tests for InventoryFetchError."""

    def test_attributes(self):
        exc = InventoryFetchError(503, "unavailable")
        assert exc.status_code == 503
        assert "503" in str(exc)
