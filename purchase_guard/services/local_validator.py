"""
Local Validator - On-device receipt signature and format checks.

One implementation per storefront, selected by create_local_validator().
"""

import base64
import binascii
import json
from typing import Any, Callable, Protocol, Sequence

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from structlog import get_logger

from purchase_guard.config import ConfigurationError, Settings
from purchase_guard.exceptions import InvalidSignatureError
from purchase_guard.models.domain import DecodedReceipt, Storefront
from purchase_guard.models.google_play import GooglePlayReceipt, GooglePlaySignedData
from purchase_guard.services.capability import CapabilityGate

logger = get_logger(__name__)


class LocalValidator(Protocol):
    """
    Local validator protocol.

    Implementations decode the raw receipt and verify its signature without
    any network access.
    """

    def validate(self, receipt: str | bytes) -> Sequence[DecodedReceipt]:
        """
        Validate a raw receipt.

        Args:
            receipt: Raw receipt payload from the store

        Returns:
            Decoded purchase claims contained in the receipt

        Raises:
            InvalidSignatureError: If signature or format verification fails
        """
        ...


class GooglePlayLocalValidator:
    """
    Google Play receipt validator.

    Verifies the RSA signature Google Play attaches to the purchase data
    using the app's license public key.
    """

    def __init__(self, public_key_b64: str, package_name: str = "") -> None:
        """
        Initialize Google Play validator.

        Args:
            public_key_b64: Base64 DER public key from the Play Console
            package_name: Expected Android package name (skipped when empty)

        Raises:
            ConfigurationError: If the public key cannot be loaded
        """
        try:
            key = serialization.load_der_public_key(base64.b64decode(public_key_b64))
        except (binascii.Error, ValueError, UnsupportedAlgorithm) as exc:
            raise ConfigurationError(f"Invalid Google Play public key: {exc}") from exc

        if not isinstance(key, rsa.RSAPublicKey):
            raise ConfigurationError("Google Play public key must be an RSA key")

        self.public_key = key
        self.package_name = package_name

    def validate(self, receipt: str | bytes) -> list[GooglePlayReceipt]:
        """Verify the signed purchase data and decode it."""
        signed = self._extract_signed_data(receipt)
        self._verify_signature(signed)

        try:
            purchase: dict[str, Any] = json.loads(signed.json)
        except json.JSONDecodeError as exc:
            raise InvalidSignatureError("Signed purchase data is not JSON") from exc
        if not isinstance(purchase, dict):
            raise InvalidSignatureError("Signed purchase data is not an object")

        package_name = str(purchase.get("packageName", ""))
        if self.package_name and package_name != self.package_name:
            raise InvalidSignatureError(
                f"Package name mismatch: expected {self.package_name}, got {package_name}"
            )

        try:
            decoded = GooglePlayReceipt(
                product_id=str(purchase["productId"]),
                purchase_state=int(purchase.get("purchaseState", 0)),
                transaction_id=str(purchase.get("orderId", "")),
                package_name=package_name,
                purchase_time_millis=int(purchase.get("purchaseTime", 0)),
                order_id=str(purchase.get("orderId", "")),
                purchase_token=str(purchase.get("purchaseToken", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidSignatureError(f"Malformed purchase data: {exc}") from exc

        logger.debug(
            "google_play_receipt_verified",
            product_id=decoded.product_id,
            purchase_state=decoded.purchase_state,
        )
        return [decoded]

    def _extract_signed_data(self, receipt: str | bytes) -> GooglePlaySignedData:
        """Unwrap {"Store","TransactionID","Payload"} or a bare {"json","signature"}."""
        try:
            text = receipt.decode("utf-8") if isinstance(receipt, bytes) else receipt
            document = json.loads(text)
            payload = document.get("Payload", document)
            if isinstance(payload, str):
                payload = json.loads(payload)
            return GooglePlaySignedData(
                json=str(payload.get("json") or ""),
                signature=str(payload.get("signature") or ""),
            )
        except (UnicodeDecodeError, json.JSONDecodeError, AttributeError, ValueError) as exc:
            raise InvalidSignatureError(f"Unreadable receipt: {exc}") from exc

    def _verify_signature(self, signed: GooglePlaySignedData) -> None:
        """Check the PKCS#1 v1.5 SHA-1 signature Google Play uses."""
        try:
            signature = base64.b64decode(signed.signature)
            self.public_key.verify(
                signature,
                signed.json.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA1(),
            )
        except binascii.Error as exc:
            raise InvalidSignatureError("Signature is not base64") from exc
        except InvalidSignature as exc:
            raise InvalidSignatureError("Signature verification failed") from exc


def _build_google_play(settings: Settings) -> LocalValidator | None:
    if not settings.google_play_public_key:
        logger.warning("google_play_public_key_not_configured")
        return None
    return GooglePlayLocalValidator(settings.google_play_public_key, settings.bundle_id)


LOCAL_VALIDATOR_FACTORIES: dict[Storefront, Callable[[Settings], LocalValidator | None]] = {
    Storefront.GOOGLE_PLAY: _build_google_play,
}


def create_local_validator(gate: CapabilityGate, settings: Settings) -> LocalValidator | None:
    """
    Build the local validator for the active storefront.

    Returns None when local validation is unsupported or not configured,
    which means the local step is skipped entirely.
    """
    if not gate.local_validation:
        return None

    factory = LOCAL_VALIDATOR_FACTORIES.get(gate.storefront)
    if factory is None:
        return None

    validator = factory(settings)
    if validator is not None:
        logger.info("local_validator_initialized", storefront=gate.storefront.value)
    return validator
