"""
Google Play service account credentials.

Builds signed credentials scoped to the Android Publisher API from a
base64-encoded JSON key held in host configuration.
"""

import base64
import binascii
import json
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from structlog import get_logger

from playstore_validator.config import Settings, get_settings
from playstore_validator.exceptions import CredentialError
from playstore_validator.models.google_play import strip_base64_whitespace

logger = get_logger(__name__)

ANDROID_PUBLISHER_SCOPES = ["https://www.googleapis.com/auth/androidpublisher"]


@contextmanager
def service_account_key_file(key_material: bytes) -> Iterator[str]:
    """
    Write key material to a private temporary file for the duration of the block.

    The file is removed when the block exits, including on exceptions.

    Args:
        key_material: Decoded service account JSON

    Yields:
        Path of the temporary key file
    """
    fd, path = tempfile.mkstemp(prefix="service-account-", suffix=".json")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(key_material)
        yield path
    finally:
        os.unlink(path)


def load_credentials(
    encoded_key: str | bytes,
    scopes: list[str] | None = None,
) -> service_account.Credentials:
    """
    Build service account credentials from a base64-encoded JSON key.

    Args:
        encoded_key: Base64-encoded service account JSON
        scopes: OAuth scopes (defaults to androidpublisher)

    Returns:
        Service account credentials

    Raises:
        CredentialError: If the key is missing, not base64, or not a valid
            service account key
    """
    if not encoded_key:
        raise CredentialError("Google Play service account key not configured")

    try:
        key_material = base64.b64decode(strip_base64_whitespace(encoded_key), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialError("Service account key is not valid base64") from exc

    try:
        key_info = json.loads(key_material.decode("utf-8"))
    except ValueError as exc:
        raise CredentialError(f"Service account key is malformed: {exc}") from exc
    if not isinstance(key_info, dict):
        raise CredentialError("Service account key is malformed: expected a JSON object")

    with service_account_key_file(key_material) as key_path:
        try:
            credentials = service_account.Credentials.from_service_account_file(  # type: ignore[no-untyped-call]
                key_path,
                scopes=scopes or ANDROID_PUBLISHER_SCOPES,
            )
        except (GoogleAuthError, ValueError, KeyError, TypeError) as exc:
            logger.error("google_play_credentials_invalid", error=type(exc).__name__)
            raise CredentialError(f"Service account key is malformed: {exc}") from exc

    logger.info(
        "google_play_credentials_loaded",
        service_account_email=credentials.service_account_email,
    )
    return credentials


def load_credentials_from_settings(
    settings: Settings | None = None,
) -> service_account.Credentials:
    """Build credentials from the configured service account key."""
    settings = settings or get_settings()
    return load_credentials(settings.google_play_service_account_key)
