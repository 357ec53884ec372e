"""Locate the generated image in an upstream response.

Different models behind the aggregation API report generated images in
different places.  :func:`extract_image_url` runs a prioritised search from
the most standard shape to the most speculative one and stops at the first
hit:

1. **images** - a top-level ``images`` array (OpenAI / OpenRouter style).
2. **message content** - ``choices[0].message.content`` as a list of typed
   parts (Gemini style), or as free text containing an image link.
3. **deep search** - a depth-first walk over the whole tree looking for
   ``url``, ``b64_json`` or ``image`` fields.

Whatever is found is normalised by :func:`normalize_image_reference` into an
absolute URL or a data URI.  ``None`` means the provider returned no usable
image, which is a legitimate outcome (e.g. the model replied in prose).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from simage.core.imagedata import is_valid_base64, strip_whitespace
from simage.core.json_value import (
    JsonArray,
    JsonObject,
    JsonString,
    JsonValue,
    is_truthy,
    string_value,
)

logger = logging.getLogger(__name__)

PNG_DATA_URI_PREFIX = "data:image/png;base64,"

# First http(s) URL in free text; stops at whitespace, ")" "]" or '"'.
_TEXT_URL_RE = re.compile(r'https?://[^\s)\]"]+')


def _wrap_b64(data: str) -> str:
    return data if data.startswith("data:") else PNG_DATA_URI_PREFIX + data


def _first_choice_content(response: JsonValue) -> JsonValue | None:
    match response:
        case JsonObject() as root:
            match root.get("choices"):
                case JsonArray((JsonObject() as choice, *_)):
                    match choice.get("message"):
                        case JsonObject() as message:
                            return message.get("content")
    return None


def find_in_images(response: JsonValue) -> str | None:
    """Stage 1: first entry of a top-level ``images`` array."""
    match response:
        case JsonObject() as root:
            match root.get("images"):
                case JsonArray((JsonString(text), *_)):
                    return text or None
                case JsonArray((JsonObject() as image, *_)):
                    return string_value(image.get("url")) or string_value(image.get("b64_json"))
    return None


def find_in_message_content(response: JsonValue) -> str | None:
    """Stage 2: image part of the first choice's message content.

    A list of parts yields the first part typed ``image_url`` or carrying an
    ``image`` field.  Plain text yields the first http(s) URL in it, which
    covers models that answer with a markdown image link.
    """
    match _first_choice_content(response):
        case JsonArray(parts):
            for part in parts:
                if not isinstance(part, JsonObject):
                    continue
                is_image_part = string_value(part.get("type")) == "image_url"
                if is_image_part or is_truthy(part.get("image")):
                    url = None
                    match part.get("image_url"):
                        case JsonObject() as image_url:
                            url = string_value(image_url.get("url"))
                    return url or string_value(part.get("image"))
        case JsonString(text):
            found = _TEXT_URL_RE.search(text)
            if found:
                return found.group(0)
    return None


def find_deep(value: JsonValue) -> str | None:
    """Stage 3: depth-first search over the entire response tree.

    Each object is checked for an image-bearing field before its children are
    visited, in the order ``url`` (``http``/``data:`` only), ``b64_json``,
    ``image``.  JSON trees are acyclic, so no visited set is kept.
    """
    match value:
        case JsonObject() as obj:
            url = string_value(obj.get("url"))
            if url and url.startswith(("http", "data:")):
                return url
            b64 = string_value(obj.get("b64_json"))
            if b64:
                return _wrap_b64(b64)
            image = string_value(obj.get("image"))
            if image:
                return image
            children = obj.members.values()
        case JsonArray(items):
            children = items
        case _:
            return None

    for child in children:
        found = find_deep(child)
        if found:
            return found
    return None


STAGES: tuple[tuple[str, Callable[[JsonValue], str | None]], ...] = (
    ("images", find_in_images),
    ("message_content", find_in_message_content),
    ("deep_search", find_deep),
)


def normalize_image_reference(reference: str) -> str | None:
    """Turn a raw image reference into a canonical URL or data URI.

    Absolute URLs and data URIs pass through unchanged.  Bare base64 is
    wrapped as a PNG data URI.  Anything else is not a usable image.
    """
    if reference.startswith(("http", "data:")):
        return reference
    if is_valid_base64(reference):
        return PNG_DATA_URI_PREFIX + strip_whitespace(reference)
    return None


def find_image_reference(response: JsonValue) -> tuple[str, str] | None:
    """Run the search stages in order.

    Returns:
        ``(stage_name, raw_reference)`` for the first stage that matched, or
        ``None``.
    """
    for stage_name, stage in STAGES:
        reference = stage(response)
        if reference:
            return stage_name, reference
    return None


def extract_image_url(response: JsonValue) -> str | None:
    """Extract the canonical image URL from an upstream response.

    Args:
        response: Parsed provider response.

    Returns:
        An ``http(s)`` URL or ``data:`` URI, or ``None`` when the response
        holds no usable image.
    """
    found = find_image_reference(response)
    if found is None:
        logger.info("No image reference found in upstream response")
        return None

    stage_name, reference = found
    image_url = normalize_image_reference(reference)
    if image_url is None:
        logger.warning(f"Discarded unusable image reference from stage '{stage_name}'")
        return None

    logger.debug(f"Image reference found by stage '{stage_name}'")
    return image_url
