"""S-Image - FastAPI Application.

This module defines the FastAPI application, its REST routes and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The server is a stateless proxy in front of the model aggregation API:

- **Configuration** comes from :class:`~simage.core.config.SimageConfig`
  (``SIMAGE_*`` environment variables).
- **Image generation** is delegated to
  :class:`~simage.core.pipeline.GenerationPipeline`, which validates the
  request, encodes it, sends it upstream once and extracts the image.
- **Credentials** arrive with every request and are forwarded as a bearer
  token; the server stores none of them.
- **Failures** of every kind are rendered as ``{"error", "details"}`` with a
  status code from the error taxonomy in :mod:`simage.core.errors`.

Endpoints
---------
========  ===========================  =====================================
Method    Path                         Purpose
========  ===========================  =====================================
GET       ``/api/config``              Version, models and enhance presets
POST      ``/api/generate-image``      Generate an image from a prompt
GET       ``/api/credits``             Key usage/limit for a bearer key
========  ===========================  =====================================

Usage
-----
CLI (installed entry point)::

    simage-server

Direct invocation::

    python -m simage.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from simage import __version__
from simage.api.models import ErrorResponse, GenerateImageRequest, GenerateImageResponse
from simage.core.catalog import catalogue_as_dict
from simage.core.config import SimageConfig, config
from simage.core.errors import AuthError, SimageError
from simage.core.pipeline import GenerationInput, GenerationPipeline
from simage.core.upstream import UpstreamClient

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 402, 500, 502)
}


def error_response(error: SimageError) -> JSONResponse:
    """Render a taxonomy error as a JSON response."""
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


def parse_bearer(authorization: str | None) -> str:
    """Extract the credential from an ``Authorization: Bearer <key>`` header.

    Raises:
        AuthError: If the header is absent, uses another scheme, or is empty.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError(
            "Missing or invalid Authorization header",
            "Send your API key as 'Authorization: Bearer <key>'.",
        )
    credential = authorization[len("Bearer ") :].strip()
    if not credential:
        raise AuthError(
            "Missing or invalid Authorization header",
            "The bearer token is empty.",
        )
    return credential


def create_app(
    settings: SimageConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use; the global ``config`` by default.
        transport: Optional httpx transport for the upstream client, used by
            tests to stand in for the provider.

    Returns:
        The configured application.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the shared upstream client on startup and close it on shutdown."""
        client = UpstreamClient(settings, transport=transport)
        app.state.upstream = client
        app.state.pipeline = GenerationPipeline(settings, client)
        logger.info(f"Upstream client ready ({settings.upstream_base_url})")

        yield  # Application runs here.

        await client.aclose()
        logger.info("Upstream client closed on shutdown.")

    app = FastAPI(
        title="S-Image",
        description="Prompt-to-image generation through a model aggregation API.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # The browser client may be served from another origin during development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SimageError)
    async def handle_simage_error(request: Request, exc: SimageError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Report malformed request bodies in the common error shape."""
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body.", "details": problems or str(exc)},
        )

    @app.get("/api/config")
    async def get_config() -> dict:
        """Return the version, default model, model catalogue and enhance presets."""
        return {
            "version": __version__,
            "default_model": settings.default_model,
            **catalogue_as_dict(),
        }

    @app.post(
        "/api/generate-image",
        response_model=GenerateImageResponse,
        responses=ERROR_RESPONSES,
    )
    async def generate_image(req: GenerateImageRequest, request: Request):
        """Generate one image from a prompt and optional reference image.

        Returns:
            ``{"imageUrl": ..., "success": true}`` on success, otherwise the
            ``{error, details}`` body with the status of the failure.
        """
        pipeline: GenerationPipeline = request.app.state.pipeline
        outcome = await pipeline.run(
            GenerationInput(
                prompt=req.prompt,
                image_data=req.image_data,
                api_key=req.api_key,
                model=req.model,
            )
        )
        if outcome.error is not None:
            return error_response(outcome.error)
        return GenerateImageResponse(image_url=outcome.result.image_url)

    @app.get("/api/credits", responses=ERROR_RESPONSES)
    async def get_credits(request: Request, authorization: str | None = Header(default=None)):
        """Return key information (usage, limit, free tier) for the bearer key."""
        credential = parse_bearer(authorization)
        client: UpstreamClient = request.app.state.upstream
        return await client.fetch_credits(credential)

    return app


app = create_app()


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~simage.core.config.config` (which loads
    from ``SIMAGE_SERVER_HOST`` and ``SIMAGE_SERVER_PORT``).  Defaults to
    ``0.0.0.0:7860``.

    This function is registered as the ``simage-server`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.numeric_log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "simage.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
