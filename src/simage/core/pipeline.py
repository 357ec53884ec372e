"""Request orchestration: validate, encode, send, extract.

Each call to :meth:`GenerationPipeline.run` walks one request through

    Idle -> Validating -> Encoding -> Sending -> Extracting -> Succeeded | Failed

and returns a :class:`GenerationOutcome`.  Nothing is shared between runs
except the upstream client's connection pool, so concurrent requests are
fully independent.  Validation failures never reach the network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from simage.core.catalog import resolve_model
from simage.core.config import SimageConfig
from simage.core.errors import AuthError, NotFoundError, SimageError, ValidationError
from simage.core.extractor import extract_image_url
from simage.core.imagedata import ImageBlob, parse_image_data
from simage.core.payload import encode
from simage.core.upstream import UpstreamClient

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    ENCODING = "encoding"
    SENDING = "sending"
    EXTRACTING = "extracting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationInput:
    """Unvalidated request fields, exactly as a client supplied them."""

    prompt: Any = None
    image_data: str | None = None
    api_key: str | None = field(default=None, repr=False)
    model: str | None = None


@dataclass(frozen=True)
class GenerationRequest:
    """A request that passed validation.

    Attributes:
        prompt: Prompt text, verbatim.
        model: Catalogue model id.
        credential: Provider API key; excluded from ``repr``.
        reference_image: Optional reference image.
    """

    prompt: str
    model: str
    credential: str = field(repr=False)
    reference_image: ImageBlob | None = None


@dataclass(frozen=True)
class CanonicalImageResult:
    image_url: str


@dataclass
class GenerationOutcome:
    """Result of one pipeline run.

    Exactly one of ``result`` and ``error`` is set once the run finishes.
    """

    stage: PipelineStage = PipelineStage.IDLE
    result: CanonicalImageResult | None = None
    error: SimageError | None = None
    trace: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.stage is PipelineStage.SUCCEEDED

    def advance(self, stage: PipelineStage) -> None:
        logger.debug(f"Pipeline stage: {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.trace.append(stage)


def validate_input(data: GenerationInput, default_model: str) -> GenerationRequest:
    """Turn raw client input into a :class:`GenerationRequest`.

    Checks run in order: credential, prompt, model, reference image.

    Raises:
        AuthError: No credential.
        ValidationError: Blank or non-string prompt, unknown model, or a
            malformed reference image.
    """
    if not data.api_key:
        raise AuthError(
            "API Key is missing.",
            "Please provide your OpenRouter API Key in the settings.",
        )

    if not isinstance(data.prompt, str) or not data.prompt.strip():
        raise ValidationError(
            "A prompt is required.",
            "Please provide a text description of the image you want to generate.",
        )

    model = resolve_model(data.model, default_model)
    reference_image = parse_image_data(data.image_data) if data.image_data else None

    return GenerationRequest(
        prompt=data.prompt,
        model=model,
        credential=data.api_key,
        reference_image=reference_image,
    )


class GenerationPipeline:
    """Runs generation requests against the upstream provider.

    Args:
        config: Supplies the default model.
        client: Shared upstream client.
    """

    def __init__(self, config: SimageConfig, client: UpstreamClient):
        self.config = config
        self.client = client

    async def run(self, data: GenerationInput) -> GenerationOutcome:
        """Process one request end to end.

        Taxonomy errors end the run in ``FAILED`` with the error attached.
        Any other exception is logged and reported as a 500.
        """
        outcome = GenerationOutcome()
        try:
            outcome.advance(PipelineStage.VALIDATING)
            request = validate_input(data, self.config.default_model)
            logger.info(
                f"Generating with {request.model} "
                f"(prompt: {len(request.prompt)} chars, "
                f"reference image: {'yes' if request.reference_image else 'no'})"
            )

            outcome.advance(PipelineStage.ENCODING)
            message = encode(request.prompt, request.reference_image)

            outcome.advance(PipelineStage.SENDING)
            response = await self.client.send(message, request.credential, request.model)

            outcome.advance(PipelineStage.EXTRACTING)
            image_url = extract_image_url(response)
            if image_url is None:
                raise NotFoundError()

            outcome.result = CanonicalImageResult(image_url=image_url)
            outcome.advance(PipelineStage.SUCCEEDED)
        except SimageError as e:
            logger.info(f"Generation failed at {outcome.stage.value}: {e.error}")
            outcome.error = e
            outcome.advance(PipelineStage.FAILED)
        except Exception as e:
            logger.exception(f"Unexpected error during {outcome.stage.value}")
            outcome.error = SimageError("Internal Server Error", str(e), status_code=500)
            outcome.advance(PipelineStage.FAILED)

        return outcome
