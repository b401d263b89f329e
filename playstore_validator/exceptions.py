"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""


class ReceiptValidatorError(Exception):
    """Base exception for all receipt validator errors."""

    pass


class ValidationError(ReceiptValidatorError):
    """Raised when a receipt cannot be validated against Google Play."""

    def __init__(self, message: str = "Purchase could not be verified") -> None:
        self.message = message
        super().__init__(f"Validation failed: {message}")


class InvalidReceiptError(ValidationError):
    """Raised when the submitted receipt payload is malformed."""

    def __init__(self, message: str) -> None:
        self.message = message
        ReceiptValidatorError.__init__(self, f"Invalid receipt: {message}")


class CredentialError(ReceiptValidatorError):
    """Raised when service account key material is missing or malformed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Credential error: {message}")
