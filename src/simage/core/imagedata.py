"""Reference image parsing, base64 validation and MIME sniffing.

Clients send reference images either as a full data URI
(``data:image/jpeg;base64,/9j/...``) or as bare base64.  Both forms are
normalised into an :class:`ImageBlob` here, before the pipeline talks to the
provider, so a malformed upload never costs a billed request.
"""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass

from simage.core.errors import ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = ("image/png", "image/jpeg", "image/gif", "image/webp")
DEFAULT_MIME_TYPE = "image/png"

# Leading base64 characters of each supported format's magic bytes.
MAGIC_PREFIXES: tuple[tuple[str, str], ...] = (
    ("/9j/", "image/jpeg"),
    ("iVBORw0KGgo", "image/png"),
    ("R0lGODlh", "image/gif"),
    ("R0lGODdh", "image/gif"),
    ("UklGR", "image/webp"),
)

_DATA_URI_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_WHITESPACE_RE = re.compile(r"\s")


def strip_whitespace(value: str) -> str:
    """Remove every whitespace character from ``value``."""
    return _WHITESPACE_RE.sub("", value)


def is_valid_base64(value: str) -> bool:
    """Check that ``value`` is well-formed standard base64.

    Whitespace is ignored.  The remaining characters must come from the
    standard alphabet with at most two trailing ``=`` and the total length
    must be a multiple of four.
    """
    cleaned = strip_whitespace(value)
    return bool(_BASE64_RE.match(cleaned)) and len(cleaned) % 4 == 0


def sniff_mime_type(data: str) -> str:
    """Infer the image MIME type from the leading characters of a base64 payload.

    Returns:
        The matching MIME type, or ``image/png`` when no prefix matches.
    """
    for prefix, mime_type in MAGIC_PREFIXES:
        if data.startswith(prefix):
            return mime_type
    return DEFAULT_MIME_TYPE


@dataclass(frozen=True)
class ImageBlob:
    """A validated base64 image with its MIME type.

    Construction validates both fields, so every instance is safe to embed
    in an outbound request.

    Attributes:
        mime_type: One of :data:`SUPPORTED_MIME_TYPES`.
        data: Base64 payload without whitespace.
    """

    mime_type: str
    data: str

    def __post_init__(self) -> None:
        if self.mime_type not in SUPPORTED_MIME_TYPES:
            raise ValidationError(
                "Unsupported image type.",
                f"Reference images must be one of: {', '.join(SUPPORTED_MIME_TYPES)}; "
                f"got {self.mime_type}.",
            )
        if not self.data or not is_valid_base64(self.data):
            raise ValidationError(
                "Invalid image data provided.",
                "The base64 image data appears to be corrupted or invalid.",
            )

    @property
    def data_uri(self) -> str:
        """The blob as a ``data:<mime>;base64,<data>`` URI."""
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def size_bytes(self) -> int:
        """Decoded size of the payload, computed from the base64 length."""
        padding = len(self.data) - len(self.data.rstrip("="))
        return len(self.data) * 3 // 4 - padding

    def to_bytes(self) -> bytes:
        """Decode the payload."""
        return base64.b64decode(self.data)

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str | None = None) -> ImageBlob:
        """Build a blob from raw file bytes, sniffing the type when not given."""
        data = base64.b64encode(raw).decode("ascii")
        return cls(mime_type=mime_type or sniff_mime_type(data), data=data)


def split_data_uri(value: str) -> tuple[str, str] | None:
    """Return ``(mime_type, payload)`` for a base64 data URI, else ``None``."""
    match = _DATA_URI_RE.match(value)
    if match is None:
        return None
    return match.group(1).strip().lower(), match.group(2)


def parse_image_data(image_data: str) -> ImageBlob:
    """Parse a client-supplied reference image.

    A ``data:<mime>;base64,<payload>`` string keeps its declared MIME type.
    Anything else is treated as bare base64 and its type is sniffed from the
    leading characters.

    Args:
        image_data: Data URI or bare base64 string.

    Returns:
        The validated :class:`ImageBlob`.

    Raises:
        ValidationError: If the payload is not valid base64 or the declared
            type is not a supported image type.
    """
    match = _DATA_URI_RE.match(image_data)
    if match:
        mime_type = match.group(1).strip().lower()
        data = strip_whitespace(match.group(2))
    else:
        data = strip_whitespace(image_data)
        mime_type = sniff_mime_type(data)

    blob = ImageBlob(mime_type=mime_type, data=data)
    logger.debug(f"Parsed reference image: {blob.mime_type}, {blob.size_bytes} bytes")
    return blob
