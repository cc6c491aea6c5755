"""Exceptions raised by the verification pipeline."""

from typing import Optional


class VerificationError(Exception):
    """Base class for verification pipeline errors."""
    pass


class SourceExtractionError(VerificationError):
    """Raised when one verification site could not be navigated or scraped."""

    def __init__(self, source: str, product_code: str, message: str):
        super().__init__(message)
        self.source = source
        self.product_code = product_code


class VerificationFailedError(VerificationError):
    """Raised when both verification sites failed for the same product code."""

    def __init__(
        self,
        product_code: str,
        primary_error: Optional[BaseException],
        secondary_error: Optional[BaseException],
    ):
        super().__init__(
            f"Both sources failed for {product_code}. "
            f"Primary: {primary_error}, Secondary: {secondary_error}"
        )
        self.product_code = product_code
        self.primary_error = primary_error
        self.secondary_error = secondary_error
