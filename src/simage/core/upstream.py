"""HTTP client for the model aggregation API.

Processing flow:
    1. Build the chat-completions body from an encoded message.
    2. POST it once with the bearer credential and identification headers.
    3. Parse the JSON response into a :data:`~simage.core.json_value.JsonValue`.

Error handling strategy:
    - Network-level failures raise :class:`TransportError`.
    - Non-success statuses are classified by :func:`classify_upstream_error`.
    - Nothing is retried: a generation request is billed, so repeating a send
      is the caller's decision.

Security considerations:
    - The credential is only ever placed in the ``Authorization`` header.
    - Provider error bodies are passed back to the caller verbatim.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from simage.core.config import SimageConfig
from simage.core.errors import (
    AuthError,
    InsufficientCreditsError,
    SimageError,
    TransportError,
    UpstreamError,
)
from simage.core.json_value import JsonValue, from_python
from simage.core.payload import MultimodalMessage, build_chat_payload

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"

# Heuristic: the provider has no structured balance error code, so the
# message text is scanned instead.
CREDIT_ERROR_MARKERS = ("credits", "402")


def is_insufficient_credits(message: str) -> bool:
    """Whether a provider error message reports an exhausted balance."""
    lowered = message.lower()
    return any(marker in lowered for marker in CREDIT_ERROR_MARKERS)


def classify_upstream_error(status_code: int, message: str, details: Any = None) -> SimageError:
    """Map a provider failure onto the error taxonomy.

    Args:
        status_code: HTTP status returned by the provider.
        message: The provider's error message.
        details: Structured error metadata from the provider, if any.

    Returns:
        :class:`InsufficientCreditsError` when the message mentions credits,
        otherwise :class:`UpstreamError` carrying the provider's status.
    """
    if is_insufficient_credits(message):
        return InsufficientCreditsError()
    return UpstreamError(message, details, status_code=status_code)


def read_error_body(response: httpx.Response) -> tuple[str, Any]:
    """Pull ``(message, details)`` out of a provider error response.

    OpenRouter reports ``{"error": {"message": ..., "metadata": ...}}``.
    Bodies that are not JSON fall back to the raw text.
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text or response.reason_phrase or "Unknown error", None

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or "Unknown error"
        return str(message), error.get("metadata")
    if isinstance(error, str) and error:
        return error, None
    return "Unknown error", None


class UpstreamClient:
    """Async client for generation and key-info requests.

    One instance is shared by all requests of an application; it holds only
    the connection pool.

    Args:
        config: Supplies base URL, timeout, token cap and identification
            headers.
        transport: Optional httpx transport, used by tests to stand in for the
            provider.
    """

    def __init__(self, config: SimageConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.upstream_base_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "HTTP-Referer": self.config.app_url,
            "X-Title": self.config.app_title,
        }

    async def _request(self, method: str, path: str, credential: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(
                method, path, headers=self._headers(credential), **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error(f"Upstream {method} {path} timed out")
            raise TransportError(
                "The image provider did not respond in time.",
                f"No response within {self.config.request_timeout:g} seconds. Please try again.",
            ) from e
        except httpx.TransportError as e:
            logger.error(f"Upstream {method} {path} failed: {type(e).__name__}")
            raise TransportError(
                "Could not reach the image provider.",
                str(e) or type(e).__name__,
            ) from e

    async def send(self, message: MultimodalMessage, credential: str, model: str) -> JsonValue:
        """Send one generation request.

        Args:
            message: Encoded user message.
            credential: Provider API key.
            model: Catalogue model id.

        Returns:
            The parsed response body.

        Raises:
            TransportError: The provider could not be reached.
            InsufficientCreditsError: The account balance is exhausted.
            UpstreamError: Any other non-success status, or a non-JSON body.
        """
        payload = build_chat_payload(message, model, self.config.max_tokens)
        response = await self._request("POST", CHAT_COMPLETIONS_PATH, credential, json=payload)

        if response.is_error:
            message_text, details = read_error_body(response)
            logger.warning(f"Upstream error {response.status_code}: {message_text}")
            raise classify_upstream_error(response.status_code, message_text, details)

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(
                "The image provider returned an unreadable response.",
                "The response body was not valid JSON.",
                status_code=502,
            ) from e

        logger.info(f"Upstream response received ({response.status_code})")
        return from_python(body)

    async def fetch_credits(self, credential: str | None) -> dict[str, Any]:
        """Fetch key information (usage, limit, free-tier flag).

        Returns:
            The provider's JSON, unmodified.

        Raises:
            AuthError: No credential was supplied.
            TransportError: The provider could not be reached.
            UpstreamError: The provider returned a non-success status; its
                body is kept as ``details``.
        """
        if not credential:
            raise AuthError("API Key missing", "Provide an API key to check credits.")

        response = await self._request("GET", self.config.credits_url_path, credential)
        if response.is_error:
            try:
                details = response.json()
            except ValueError:
                details = {}
            logger.warning(f"Key info request failed with status {response.status_code}")
            raise UpstreamError(
                "Failed to fetch key info", details, status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "Failed to fetch key info",
                "The response body was not valid JSON.",
                status_code=502,
            ) from e
