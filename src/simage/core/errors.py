"""Error taxonomy for the generation pipeline.

Every failure the pipeline can report is a :class:`SimageError` subclass
carrying an HTTP status code, a short ``error`` headline and a ``details``
value suitable for direct display.  The API layer renders them as
``{"error": ..., "details": ...}`` without further interpretation.

========================  ======  =============================================
Error                     Status  Raised when
========================  ======  =============================================
ValidationError           400     Bad input; no network call was made
AuthError                 401     No credential supplied
InsufficientCreditsError  402     Provider reports an exhausted balance
UpstreamError             varies  Provider returned any other non-success status
TransportError            502     The provider could not be reached
NotFoundError             500     Provider succeeded but returned no image
========================  ======  =============================================
"""

from __future__ import annotations

from typing import Any

CREDITS_URL = "https://openrouter.ai/settings/credits"


class SimageError(Exception):
    """Base class for all errors reported to API and CLI callers.

    Args:
        error: Short user-facing headline.
        details: Longer explanation, or a structured value passed through from
            the provider.  Defaults to ``error``.
        status_code: Overrides the class default status code.
    """

    status_code: int = 500

    def __init__(self, error: str, details: Any = None, status_code: int | None = None):
        super().__init__(error)
        self.error = error
        self.details = details if details is not None else error
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{error, details}`` body for this failure."""
        return {"error": self.error, "details": self.details}


class ValidationError(SimageError):
    """User input failed validation before any network call."""

    status_code = 400


class AuthError(SimageError):
    """The request carried no usable credential."""

    status_code = 401


class InsufficientCreditsError(SimageError):
    """The provider reported that the account has run out of credits."""

    status_code = 402

    def __init__(self, error: str = "Insufficient credits.", details: Any = None):
        if details is None:
            details = (
                "Your OpenRouter account has run out of credits. "
                f"Please visit {CREDITS_URL} to add more credits."
            )
        super().__init__(error, details)


class UpstreamError(SimageError):
    """The provider answered with a non-success status."""

    status_code = 502


class TransportError(SimageError):
    """The provider could not be reached (timeout, DNS, connection reset)."""

    status_code = 502


class NotFoundError(SimageError):
    """The provider answered successfully but no image could be extracted."""

    status_code = 500

    def __init__(self, error: str = "No valid response from the API.", details: Any = None):
        if details is None:
            details = "The model didn't return any image content. Try a different prompt."
        super().__init__(error, details)
