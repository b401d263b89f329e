"""
Google Play Receipt Verifier.

Decodes client receipts, looks the purchase up with the Android Publisher
API and maps the record into a VerificationResult.

NO DICTIONARIES - Callers receive strongly typed models.
"""

from collections.abc import Callable
from functools import lru_cache
from typing import Any

from google.auth.exceptions import RefreshError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from playstore_validator.config import Settings, get_settings
from playstore_validator.exceptions import CredentialError, InvalidReceiptError, ValidationError
from playstore_validator.models.google_play import ReceiptPayload, VerificationResult
from playstore_validator.observability.logging import get_logger, log_context
from playstore_validator.observability.metrics import VerificationOutcome, metrics, track_lookup
from playstore_validator.observability.tracing import add_span_attributes, trace_operation
from playstore_validator.services.google_play_auth import load_credentials

logger = get_logger(__name__)


class GooglePlayReceiptVerifier:
    """
    Google Play one-time product receipt verifier.

    Credentials may be injected; otherwise they are loaded from settings on
    first use. A verifier holds no per-call state, but the underlying API
    client is not thread-safe, so threads should not share one instance.
    """

    def __init__(
        self,
        credentials: service_account.Credentials | None = None,
        *,
        service: Any | None = None,
        settings: Settings | None = None,
        credentials_loader: Callable[[str], service_account.Credentials] | None = None,
    ) -> None:
        """
        Initialize Google Play receipt verifier.

        Args:
            credentials: Service account credentials (loaded lazily if omitted)
            service: Prebuilt androidpublisher v3 client (built lazily if omitted)
            settings: Validator settings (global settings if omitted)
            credentials_loader: Builds credentials from the encoded key
                (load_credentials if omitted)
        """
        self.settings = settings or get_settings()
        self._credentials_loader = credentials_loader
        self._credentials = credentials
        self._service = service

    @property
    def credentials(self) -> service_account.Credentials:
        """Service account credentials, loaded on first access."""
        if self._credentials is None:
            loader = self._credentials_loader or load_credentials
            self._credentials = loader(self.settings.google_play_service_account_key)
        return self._credentials

    @property
    def service(self) -> Any:
        """Android Publisher API client, built on first access."""
        if self._service is None:
            self._service = build(
                "androidpublisher", "v3", credentials=self.credentials, cache_discovery=False
            )
        return self._service

    def verify(self, raw_receipt: bytes | str) -> VerificationResult:
        """
        Verify a base64-encoded receipt.

        Args:
            raw_receipt: Base64 JSON with packageName, productId and purchaseToken

        Returns:
            Verification result

        Raises:
            InvalidReceiptError: If the receipt cannot be decoded
            ValidationError: If Google Play returned no usable purchase
            CredentialError: If service account credentials cannot be built
            HttpError: If the Google Play API call fails
        """
        try:
            payload = ReceiptPayload.from_base64(raw_receipt)
        except InvalidReceiptError as exc:
            logger.warning("google_play_receipt_invalid", error=exc.message)
            metrics.record_verification(VerificationOutcome.INVALID_RECEIPT, self.settings)
            raise

        return self.verify_payload(payload)

    def verify_payload(self, payload: ReceiptPayload) -> VerificationResult:
        """
        Verify an already decoded receipt.

        Args:
            payload: Decoded receipt

        Returns:
            Verification result

        Raises:
            ValidationError: If Google Play returned no usable purchase
            CredentialError: If service account credentials cannot be built
            HttpError: If the Google Play API call fails
        """
        with log_context(package_name=payload.package_name, product_id=payload.product_id):
            with trace_operation(
                "google_play.verify_purchase",
                self.settings,
                package_name=payload.package_name,
                product_id=payload.product_id,
            ) as span:
                response = self._lookup(payload)

                if not response:
                    logger.warning("google_play_purchase_not_found")
                    metrics.record_verification(VerificationOutcome.NOT_FOUND, self.settings)
                    raise ValidationError("Purchase not found")

                try:
                    result = VerificationResult.from_response(
                        response,
                        bundle_id=payload.package_name,
                        product_id=payload.product_id,
                        time_zone=self.settings.zone,
                    )
                except ValidationError as exc:
                    logger.warning("google_play_purchase_unmappable", error=exc.message)
                    metrics.record_verification(
                        VerificationOutcome.INVALID_RESPONSE, self.settings
                    )
                    raise

                add_span_attributes(
                    span,
                    order_id=result.order_id,
                    purchase_state=result.purchase_state,
                )

            logger.info(
                "google_play_purchase_verified",
                order_id=result.order_id,
                purchase_state=result.purchase_state,
                consumption_state=result.consumption_state,
                purchase_type=result.purchase_type,
                is_test=result.is_test_purchase(),
            )
            metrics.record_verification(VerificationOutcome.VERIFIED, self.settings)
            return result

    def _lookup(self, payload: ReceiptPayload) -> dict[str, Any] | None:
        """Call purchases.products.get; errors propagate unchanged."""
        logger.info("verifying_google_play_purchase")

        try:
            request = self.service.purchases().products().get(
                packageName=payload.package_name,
                productId=payload.product_id,
                token=payload.purchase_token,
            )
            with track_lookup(self.settings):
                return request.execute()  # type: ignore[no-any-return]

        except CredentialError as exc:
            logger.error("google_play_credentials_unavailable", error=exc.message)
            metrics.record_verification(VerificationOutcome.CREDENTIAL_ERROR, self.settings)
            raise

        except HttpError as exc:
            error_content = exc.content.decode("utf-8") if exc.content else str(exc)
            logger.error(
                "google_play_lookup_failed",
                status=exc.resp.status,
                error=error_content,
            )
            metrics.record_verification(VerificationOutcome.UPSTREAM_ERROR, self.settings)
            raise

        except RefreshError as exc:
            logger.error("google_play_token_refresh_failed", error=str(exc))
            metrics.record_verification(VerificationOutcome.UPSTREAM_ERROR, self.settings)
            raise


@lru_cache(maxsize=1)
def _shared_credentials(encoded_key: str) -> service_account.Credentials:
    """Credentials reused across verify_receipt() calls when enabled."""
    return load_credentials(encoded_key)


def verify_receipt(
    raw_receipt: bytes | str,
    settings: Settings | None = None,
) -> VerificationResult:
    """
    Verify a receipt with a verifier built from settings.

    A new verifier is built per call. Credentials are rebuilt per call too,
    unless google_play_reuse_credentials is enabled. Either way they are only
    loaded once the receipt has decoded.

    Args:
        raw_receipt: Base64 JSON receipt from the client
        settings: Validator settings (global settings if omitted)

    Returns:
        Verification result
    """
    settings = settings or get_settings()

    loader = _shared_credentials if settings.google_play_reuse_credentials else None
    verifier = GooglePlayReceiptVerifier(settings=settings, credentials_loader=loader)
    return verifier.verify(raw_receipt)
