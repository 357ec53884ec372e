"""Command-line client for S-Image.

Subcommands
-----------
serve
    Run the API server (same as ``simage-server``).
settings
    Update and show the stored API key, model and theme.
generate
    Generate an image in-process with the stored credential.
credits
    Show key usage and limit for the stored credential.

The client keeps its preferences in a local JSON file (see
:class:`~simage.core.preferences.PreferenceStore`), loaded once at startup.
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from simage import __version__
from simage.core.catalog import ENHANCE_PRESETS, get_preset, model_ids
from simage.core.config import SimageConfig, config
from simage.core.errors import SimageError, ValidationError
from simage.core.imagedata import ImageBlob, is_valid_base64, split_data_uri, strip_whitespace
from simage.core.pipeline import GenerationInput, GenerationOutcome, GenerationPipeline
from simage.core.preferences import THEMES, PreferenceStore, mask_api_key
from simage.core.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simage", description="Prompt-to-image client.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the API server")

    settings = subparsers.add_parser("settings", help="Update and show stored preferences")
    settings.add_argument("--api-key", help="Provider API key")
    settings.add_argument("--model", choices=model_ids(), help="Default model")
    settings.add_argument("--theme", choices=THEMES, help="UI theme")

    generate = subparsers.add_parser("generate", help="Generate an image")
    generate.add_argument("prompt", nargs="?", default="", help="Image description")
    generate.add_argument("--image", type=Path, help="Reference image file (enhance mode)")
    generate.add_argument(
        "--preset",
        choices=[preset.id for preset in ENHANCE_PRESETS],
        help="Enhance preset; requires --image",
    )
    generate.add_argument("--model", help="Model id (overrides the stored model)")
    generate.add_argument("--output", type=Path, help="Write a data-URI result to this file")

    subparsers.add_parser("credits", help="Show key usage and limit")
    return parser


def _load_reference_image(path: Path) -> str:
    """Read an image file into a data URI."""
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ValidationError("Could not read reference image.", str(e)) from e
    return ImageBlob.from_bytes(raw).data_uri


def resolve_generation_input(args: argparse.Namespace, store: PreferenceStore) -> GenerationInput:
    """Combine command-line arguments with stored preferences.

    Raises:
        ValidationError: ``--preset`` without ``--image``.
    """
    prompt = args.prompt
    if args.preset:
        if args.image is None:
            raise ValidationError("Please upload an image to enhance.", "--preset requires --image.")
        if not prompt.strip():
            prompt = get_preset(args.preset).prompt

    image_data = _load_reference_image(args.image) if args.image else None
    prefs = store.preferences
    return GenerationInput(
        prompt=prompt,
        image_data=image_data,
        api_key=prefs.api_key,
        model=args.model or prefs.model or None,
    )


def write_output(image_url: str, output: Path) -> bool:
    """Write a data-URI result to ``output``.

    Returns:
        ``True`` when a file was written; URL results are only printed.

    Raises:
        ValidationError: A data URI that does not carry base64 image data.
    """
    if not image_url.startswith("data:"):
        return False
    parts = split_data_uri(image_url)
    if parts is None or not is_valid_base64(parts[1]):
        raise ValidationError(
            "The result is not a base64 image.",
            "Only base64 data URIs can be written with --output.",
        )
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(base64.b64decode(strip_whitespace(parts[1])))
    return True


async def _generate(settings: SimageConfig, data: GenerationInput) -> GenerationOutcome:
    async with UpstreamClient(settings) as client:
        return await GenerationPipeline(settings, client).run(data)


async def _credits(settings: SimageConfig, api_key: str) -> dict:
    async with UpstreamClient(settings) as client:
        return await client.fetch_credits(api_key)


def _report(error: SimageError) -> int:
    print(f"Error ({error.status_code}): {error.error}", file=sys.stderr)
    if error.details and error.details != error.error:
        details = error.details
        if not isinstance(details, str):
            details = json.dumps(details, indent=2)
        print(details, file=sys.stderr)
    return 1


def run_settings(args: argparse.Namespace, store: PreferenceStore) -> int:
    if args.api_key is not None:
        store.set_api_key(args.api_key)
    if args.model is not None:
        store.set_model(args.model)
    if args.theme is not None:
        store.set_theme(args.theme)

    prefs = store.preferences
    print(f"api_key: {mask_api_key(prefs.api_key) or '(not set)'}")
    print(f"model:   {prefs.model or '(default)'}")
    print(f"theme:   {prefs.theme}")
    return 0


def run_generate(args: argparse.Namespace, store: PreferenceStore, settings: SimageConfig) -> int:
    try:
        data = resolve_generation_input(args, store)
    except SimageError as e:
        return _report(e)

    outcome = asyncio.run(_generate(settings, data))
    if outcome.error is not None:
        return _report(outcome.error)

    image_url = outcome.result.image_url
    try:
        saved = args.output is not None and write_output(image_url, args.output)
    except SimageError as e:
        print(image_url)
        return _report(e)
    if saved:
        print(f"Saved image to {args.output}")
    else:
        print(image_url)
    return 0


def run_credits(store: PreferenceStore, settings: SimageConfig) -> int:
    try:
        info = asyncio.run(_credits(settings, store.preferences.api_key))
    except SimageError as e:
        return _report(e)
    print(json.dumps(info, indent=2))
    return 0


def main(argv: Sequence[str] | None = None, settings: SimageConfig | None = None) -> int:
    """Entry point of the ``simage`` console script."""
    settings = settings or config
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.numeric_log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        from simage.api.main import main as serve

        serve()
        return 0

    store = PreferenceStore(settings.preferences_file)
    store.load()

    if args.command == "settings":
        return run_settings(args, store)
    if args.command == "generate":
        return run_generate(args, store, settings)
    return run_credits(store, settings)


if __name__ == "__main__":
    sys.exit(main())
