"""Multimodal chat payload construction.

The provider speaks the OpenAI chat-completions dialect.  A plain prompt is
sent as a single text message; a prompt with a reference image becomes a
two-part message whose image part comes first, followed by the prompt
wrapped in an instruction asking the model to build on the image.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from simage.core.imagedata import ImageBlob

INSTRUCTION_PREFIX = "Based on the provided image, "
INSTRUCTION_SUFFIX = (
    ". Generate a new image that incorporates the reference image "
    "and follows these instructions."
)

_INSTRUCTION_RE = re.compile(
    "^" + re.escape(INSTRUCTION_PREFIX) + "(.*)" + re.escape(INSTRUCTION_SUFFIX) + "$",
    re.DOTALL,
)


def wrap_instruction(prompt: str) -> str:
    """Wrap ``prompt`` in the reference-image instruction template."""
    return f"{INSTRUCTION_PREFIX}{prompt}{INSTRUCTION_SUFFIX}"


def unwrap_instruction(text: str) -> str | None:
    """Recover the original prompt from an instruction, or ``None``."""
    match = _INSTRUCTION_RE.match(text)
    return match.group(1) if match else None


@dataclass(frozen=True)
class ImagePart:
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


ContentPart = Union[ImagePart, TextPart]


@dataclass(frozen=True)
class MultimodalMessage:
    """A single chat message.

    Attributes:
        content: Either the prompt text, or an ordered tuple of parts.
        role: Chat role; generation requests are always ``user`` messages.
    """

    content: str | tuple[ContentPart, ...]
    role: str = "user"

    @property
    def has_image(self) -> bool:
        return not isinstance(self.content, str) and any(
            isinstance(part, ImagePart) for part in self.content
        )

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [part.to_dict() for part in self.content]
        return {"role": self.role, "content": content}


def encode(prompt: str, reference_image: ImageBlob | None = None) -> MultimodalMessage:
    """Build the user message for a generation request.

    Args:
        prompt: The user's prompt, used verbatim.
        reference_image: Optional validated reference image.

    Returns:
        A text-only message, or an image part followed by the wrapped prompt.
    """
    if reference_image is None:
        return MultimodalMessage(content=prompt)

    return MultimodalMessage(
        content=(
            ImagePart(url=reference_image.data_uri),
            TextPart(text=wrap_instruction(prompt)),
        )
    )


def decode_message(data: dict[str, Any]) -> MultimodalMessage:
    """Parse a chat message dictionary back into a :class:`MultimodalMessage`.

    Raises:
        ValueError: If a content part has an unknown type.
    """
    content = data.get("content", "")
    role = data.get("role", "user")
    if isinstance(content, str):
        return MultimodalMessage(content=content, role=role)

    parts: list[ContentPart] = []
    for part in content:
        part_type = part.get("type")
        if part_type == "image_url":
            parts.append(ImagePart(url=part["image_url"]["url"]))
        elif part_type == "text":
            parts.append(TextPart(text=part["text"]))
        else:
            raise ValueError(f"Unknown content part type: {part_type!r}")
    return MultimodalMessage(content=tuple(parts), role=role)


def build_chat_payload(message: MultimodalMessage, model: str, max_tokens: int) -> dict[str, Any]:
    """Build the chat-completions request body."""
    return {
        "model": model,
        "messages": [message.to_dict()],
        "max_tokens": max_tokens,
    }
