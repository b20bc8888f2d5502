"""
Tests for local receipt validation.

Covers Google Play signature verification, receipt formats and the
validator factory.
"""

import base64
import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from purchase_guard.config import ConfigurationError
from purchase_guard.exceptions import InvalidSignatureError
from purchase_guard.models.domain import Platform, Storefront
from purchase_guard.models.google_play import GooglePlayReceipt
from purchase_guard.services.capability import CapabilityGate
from purchase_guard.services.local_validator import (
    GooglePlayLocalValidator,
    create_local_validator,
)

BUNDLE_ID = "com.example.game"


@pytest.fixture
def validator(google_play_public_key):
    """Google Play validator bound to the test key and package."""
    return GooglePlayLocalValidator(google_play_public_key, BUNDLE_ID)


class TestGooglePlayKeyLoading:
    """Tests for public key loading."""

    def test_invalid_base64(self):
        with pytest.raises(ConfigurationError):
            GooglePlayLocalValidator("not-a-key!!")

    def test_non_rsa_key(self):
        key = ec.generate_private_key(ec.SECP256R1()).public_key()
        der = key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        with pytest.raises(ConfigurationError, match="RSA"):
            GooglePlayLocalValidator(base64.b64encode(der).decode("ascii"))


class TestGooglePlayValidation:
    """Tests for signature and format checks."""

    def test_valid_receipt(self, validator, sign_receipt):
        receipts = validator.validate(sign_receipt(product_id="coins"))

        assert len(receipts) == 1
        receipt = receipts[0]
        assert isinstance(receipt, GooglePlayReceipt)
        assert receipt.product_id == "coins"
        assert receipt.purchase_state == 0
        assert receipt.order_id == "GPA.1234-5678"
        assert receipt.package_name == BUNDLE_ID
        assert not receipt.is_deferred()

    def test_bytes_receipt(self, validator, sign_receipt):
        receipts = validator.validate(sign_receipt().encode("utf-8"))
        assert receipts[0].product_id == "no_ads"

    def test_deferred_receipt(self, validator, sign_receipt):
        receipts = validator.validate(sign_receipt(purchase_state=2))
        assert receipts[0].is_deferred()

    def test_bare_signed_payload(self, validator, sign_receipt):
        """The inner {json, signature} object is accepted without the wrapper."""
        payload = json.loads(sign_receipt())["Payload"]
        receipts = validator.validate(payload)
        assert receipts[0].product_id == "no_ads"

    def test_tampered_data(self, validator, sign_receipt):
        with pytest.raises(InvalidSignatureError, match="Signature verification failed"):
            validator.validate(sign_receipt(tamper=True))

    def test_wrong_package(self, validator, sign_receipt):
        with pytest.raises(InvalidSignatureError, match="Package name mismatch"):
            validator.validate(sign_receipt(package_name="com.other.game"))

    def test_package_check_skipped_without_expected_name(self, google_play_public_key, sign_receipt):
        validator = GooglePlayLocalValidator(google_play_public_key)
        assert validator.validate(sign_receipt(package_name="com.other.game"))

    @pytest.mark.parametrize(
        "receipt",
        [
            "not json",
            "[]",
            json.dumps({"Store": "GooglePlay", "Payload": "not json"}),
            json.dumps({"Store": "GooglePlay", "Payload": json.dumps({"json": "{}"})}),
        ],
    )
    def test_unreadable_receipts(self, validator, receipt):
        with pytest.raises(InvalidSignatureError):
            validator.validate(receipt)

    def test_signature_not_base64(self, validator):
        receipt = json.dumps({"json": "{}", "signature": "%%%"})
        with pytest.raises(InvalidSignatureError):
            validator.validate(receipt)


class TestCreateLocalValidator:
    """Tests for the validator factory."""

    def test_google_play_with_key(self, make_settings, google_play_public_key):
        settings = make_settings(google_play_public_key=google_play_public_key)
        gate = CapabilityGate(Platform.ANDROID, Storefront.GOOGLE_PLAY)
        validator = create_local_validator(gate, settings)
        assert isinstance(validator, GooglePlayLocalValidator)
        assert validator.package_name == BUNDLE_ID

    def test_google_play_without_key(self, settings):
        gate = CapabilityGate(Platform.ANDROID, Storefront.GOOGLE_PLAY)
        assert create_local_validator(gate, settings) is None

    def test_unsupported_storefront(self, make_settings, google_play_public_key):
        settings = make_settings(google_play_public_key=google_play_public_key)
        gate = CapabilityGate(Platform.IPHONE, Storefront.APPLE_APP_STORE)
        assert create_local_validator(gate, settings) is None
