"""Pydantic request and response models for the S-Image API.

Field names follow the wire format used by the browser client (camelCase),
exposed through aliases so Python code keeps snake_case attributes.

Models
------
GenerateImageRequest
    Payload for ``POST /api/generate-image``.
GenerateImageResponse
    Success body for ``POST /api/generate-image``.
ErrorResponse
    Body of every failed request.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerateImageRequest(BaseModel):
    """Request body for the ``POST /api/generate-image`` endpoint.

    Every field is optional at the schema level so that missing values are
    reported by the pipeline with the same ``{error, details}`` body as any
    other validation failure.

    Attributes:
        prompt: Text description of the image to generate. Passed through
            unchecked; the pipeline rejects non-string values after the
            credential check.
        image_data: Optional reference image, as a data URI or bare base64.
        api_key: Provider API key, forwarded as a bearer credential.
        model: Catalogue model id; the configured default when omitted.
    """

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    prompt: Any = Field(
        default=None,
        description="Text description of the image to generate.",
    )
    image_data: str | None = Field(
        default=None,
        alias="imageData",
        description="Optional reference image (data URI or bare base64).",
    )
    api_key: str | None = Field(
        default=None,
        alias="apiKey",
        description="Provider API key.",
        repr=False,
    )
    model: str | None = Field(
        default=None,
        description="Model identifier; the server default when omitted.",
    )


class GenerateImageResponse(BaseModel):
    """Success body for ``POST /api/generate-image``."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", description="URL or data URI of the image.")
    success: bool = True


class ErrorResponse(BaseModel):
    """Body returned for every failed request."""

    error: str
    details: Any = None
