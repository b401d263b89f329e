"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- Encoded receipts and ProductPurchase records
- Mocked androidpublisher clients
- Verifiers with injected credentials and client
"""

import base64
import json
import os
from typing import Any
from unittest.mock import MagicMock

import pytest

# Set environment variables BEFORE importing validator modules
os.environ.setdefault("TIME_ZONE", "UTC")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("TRACING_ENABLED", "false")

from playstore_validator.config import Settings
from playstore_validator.models.google_play import ReceiptPayload
from playstore_validator.services.google_play_verifier import GooglePlayReceiptVerifier

PACKAGE_NAME = "com.example.game"
PRODUCT_ID = "coins_100"
PURCHASE_TOKEN = "opaque-token-abcdefghij.AO-J1Oy"


def encode_receipt(data: Any) -> str:
    """Base64-encode a JSON value the way the client does."""
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


def make_purchase_record(**overrides: Any) -> dict[str, Any]:
    """Build a ProductPurchase record as returned by purchases.products.get."""
    record: dict[str, Any] = {
        "kind": "androidpublisher#productPurchase",
        "purchaseTimeMillis": "1700000000000",
        "purchaseState": 0,
        "consumptionState": 0,
        "developerPayload": "",
        "orderId": "GPA.3345-1234-5678-90123",
        "acknowledgementState": 1,
        "regionCode": "US",
    }
    record.update(overrides)
    return record


def make_service(response: Any = None, side_effect: Any = None) -> MagicMock:
    """Create a mock androidpublisher client whose products.get().execute() is stubbed."""
    service = MagicMock()
    execute = service.purchases.return_value.products.return_value.get.return_value.execute
    if side_effect is not None:
        execute.side_effect = side_effect
    else:
        execute.return_value = response
    return service


# ============================================================================
# Receipt Fixtures
# ============================================================================


@pytest.fixture
def receipt_payload() -> ReceiptPayload:
    """Standard decoded receipt."""
    return ReceiptPayload(
        package_name=PACKAGE_NAME,
        product_id=PRODUCT_ID,
        purchase_token=PURCHASE_TOKEN,
    )


@pytest.fixture
def encoded_receipt() -> str:
    """Standard base64-encoded receipt."""
    return encode_receipt(
        {
            "packageName": PACKAGE_NAME,
            "productId": PRODUCT_ID,
            "purchaseToken": PURCHASE_TOKEN,
        }
    )


@pytest.fixture
def purchase_record() -> dict[str, Any]:
    """Purchased, not-yet-consumed ProductPurchase record."""
    return make_purchase_record()


# ============================================================================
# Verifier Fixtures
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a dummy service account key."""
    return Settings(
        google_play_service_account_key=base64.b64encode(b"{}").decode("ascii"),
        time_zone="UTC",
    )


@pytest.fixture
def mock_credentials() -> MagicMock:
    """Opaque credentials handle."""
    credentials = MagicMock()
    credentials.service_account_email = "verifier@example.iam.gserviceaccount.com"
    return credentials


@pytest.fixture
def mock_service(purchase_record: dict[str, Any]) -> MagicMock:
    """androidpublisher client returning the standard purchase record."""
    return make_service(purchase_record)


@pytest.fixture
def verifier(
    mock_credentials: MagicMock,
    mock_service: MagicMock,
    test_settings: Settings,
) -> GooglePlayReceiptVerifier:
    """Verifier with injected credentials and client."""
    return GooglePlayReceiptVerifier(
        mock_credentials,
        service=mock_service,
        settings=test_settings,
    )
