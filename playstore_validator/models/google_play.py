"""
Google Play domain models - Immutable dataclasses for purchase verification.

NO DICTIONARIES - All data uses strongly typed models. The raw API record is
kept on the result for callers that need fields not mapped here.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from functools import cached_property
from typing import Any

from playstore_validator.exceptions import InvalidReceiptError, ValidationError

# Keys of the client-submitted receipt JSON
RECEIPT_FIELDS = ("packageName", "productId", "purchaseToken")

# Keys the ProductPurchase record must carry for a result to be built
REQUIRED_RESPONSE_FIELDS = ("orderId", "purchaseTimeMillis", "purchaseState", "consumptionState")


def strip_base64_whitespace(encoded: bytes | str) -> bytes:
    """
    Drop line breaks and other ASCII whitespace from base64 text.

    Android's Base64.DEFAULT wraps output at 76 characters and appends a newline.
    """
    if isinstance(encoded, str):
        encoded = encoded.encode("ascii")
    return b"".join(encoded.split())


@dataclass(frozen=True)
class ReceiptPayload:
    """Decoded receipt submitted by the Android client."""

    package_name: str
    product_id: str
    purchase_token: str

    def __post_init__(self) -> None:
        """Validate receipt fields."""
        if not isinstance(self.package_name, str) or not self.package_name:
            raise ValueError("Package name required")
        if not isinstance(self.product_id, str) or not self.product_id:
            raise ValueError("Product ID required")
        if not isinstance(self.purchase_token, str) or not self.purchase_token:
            raise ValueError("Purchase token required")

    @classmethod
    def from_base64(cls, raw_receipt: bytes | str) -> "ReceiptPayload":
        """
        Decode a base64-encoded JSON receipt.

        Args:
            raw_receipt: Receipt as submitted by the client

        Returns:
            Decoded receipt payload

        Raises:
            InvalidReceiptError: If the receipt is not base64 JSON with the
                expected string fields
        """
        if not isinstance(raw_receipt, (bytes, str)):
            raise InvalidReceiptError(
                f"Receipt must be bytes or str, got {type(raw_receipt).__name__}"
            )

        try:
            decoded = base64.b64decode(strip_base64_whitespace(raw_receipt), validate=True)
            data = json.loads(decoded.decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidReceiptError(f"Receipt is not base64-encoded JSON: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise InvalidReceiptError(f"Receipt could not be decoded: {exc}") from exc

        if not isinstance(data, dict):
            raise InvalidReceiptError("Receipt must be a JSON object")

        missing = [key for key in RECEIPT_FIELDS if key not in data]
        if missing:
            raise InvalidReceiptError(f"Receipt missing fields: {', '.join(missing)}")

        try:
            return cls(
                package_name=data["packageName"],
                product_id=data["productId"],
                purchase_token=data["purchaseToken"],
            )
        except ValueError as exc:
            raise InvalidReceiptError(str(exc)) from exc

    def to_base64(self) -> str:
        """Encode the payload the way the client submits it."""
        data = {
            "packageName": self.package_name,
            "productId": self.product_id,
            "purchaseToken": self.purchase_token,
        }
        return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class VerificationResult:
    """Result of Google Play purchase verification."""

    order_id: str
    kind: str
    purchase_time_millis: int
    purchase_state: int  # 0: purchased, 1: canceled, 2: pending
    consumption_state: int  # 0: not consumed, 1: consumed
    bundle_id: str
    product_id: str
    developer_payload: str | None = None
    purchase_type: int | None = None  # None: real, 0: test, 1: promo, 2: rewarded
    original_response: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    time_zone: tzinfo = field(default=UTC, repr=False, compare=False)

    @classmethod
    def from_response(
        cls,
        response: dict[str, Any],
        *,
        bundle_id: str,
        product_id: str,
        time_zone: tzinfo = UTC,
    ) -> "VerificationResult":
        """
        Map an Android Publisher ProductPurchase record.

        Args:
            response: Record returned by purchases.products.get
            bundle_id: Package name the lookup was made for
            product_id: Product ID the lookup was made for
            time_zone: Zone used for purchase_date

        Returns:
            Verification result

        Raises:
            ValidationError: If a required field is missing or not numeric
        """
        missing = [key for key in REQUIRED_RESPONSE_FIELDS if response.get(key) is None]
        if missing:
            raise ValidationError(f"Purchase record missing fields: {', '.join(missing)}")

        # int64 fields arrive as JSON strings
        purchase_type = response.get("purchaseType")
        try:
            return cls(
                order_id=str(response["orderId"]),
                kind=str(response.get("kind", "")),
                purchase_time_millis=int(response["purchaseTimeMillis"]),
                purchase_state=int(response["purchaseState"]),
                consumption_state=int(response["consumptionState"]),
                bundle_id=bundle_id,
                product_id=product_id,
                developer_payload=response.get("developerPayload"),
                purchase_type=int(purchase_type) if purchase_type is not None else None,
                original_response=response,
                time_zone=time_zone,
            )
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Purchase record has malformed fields: {exc}") from exc

    def is_purchased(self) -> bool:
        """Check if the purchase completed."""
        return self.purchase_state == 0

    def is_consumed(self) -> bool:
        """Check the consumption flag (true when consumption_state is 0)."""
        return self.consumption_state == 0

    def is_test_purchase(self) -> bool:
        """Check if this is a test purchase (license tester account)."""
        return self.purchase_type == 0

    @cached_property
    def purchase_date(self) -> datetime:
        """Purchase time as an aware datetime in the configured zone."""
        return datetime.fromtimestamp(self.purchase_time_millis / 1000, tz=self.time_zone)
