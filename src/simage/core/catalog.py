"""Model catalogue and enhance presets.

The catalogue is the fixed set of image models the application offers.
Presets are canned instructions for enhance mode, where the user supplies a
reference image and picks a style instead of writing a prompt.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from simage.core.errors import ValidationError


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str


@dataclass(frozen=True)
class EnhancePreset:
    id: str
    label: str
    description: str
    prompt: str


AVAILABLE_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("google/gemini-2.5-flash-image-preview", "Gemini 2.5 Flash"),
    ModelInfo("black-forest-labs/flux-1-schnell", "FLUX Schnell (Fast)"),
    ModelInfo("black-forest-labs/flux-pro", "FLUX Pro (Premium)"),
    ModelInfo("black-forest-labs/flux-1.1-pro", "FLUX 1.1 Pro"),
)

ENHANCE_PRESETS: tuple[EnhancePreset, ...] = (
    EnhancePreset(
        id="cinematic",
        label="Cinematic",
        description="Dramatic lighting & contrast",
        prompt=(
            "Enhance this image to look cinematic, with dramatic lighting, high contrast, "
            "and a professional color grade. Make it look like a blockbuster movie shot."
        ),
    ),
    EnhancePreset(
        id="minimalist",
        label="Minimalist",
        description="Clean lines & simplicity",
        prompt=(
            "Transform this image into a minimalist clean style. Simplify details, use a "
            "limited color palette, and focus on clean lines and negative space."
        ),
    ),
    EnhancePreset(
        id="vintage",
        label="Vintage",
        description="Retro film grain & colors",
        prompt=(
            "Apply a vintage film look to this image. Add grain, faded colors, and a retro "
            "aesthetic reminiscent of 1980s analog photography."
        ),
    ),
)


def model_ids() -> list[str]:
    return [model.id for model in AVAILABLE_MODELS]


def resolve_model(model_id: str | None, default: str) -> str:
    """Return ``model_id``, or ``default`` when it is empty.

    Raises:
        ValidationError: If the resolved id is not in the catalogue.
    """
    resolved = (model_id or "").strip() or default
    if resolved not in model_ids():
        raise ValidationError(
            f"Unknown model: {resolved}",
            f"Choose one of: {', '.join(model_ids())}.",
        )
    return resolved


def get_preset(preset_id: str) -> EnhancePreset:
    """Look up an enhance preset by id.

    Raises:
        KeyError: If no preset has that id.
    """
    for preset in ENHANCE_PRESETS:
        if preset.id == preset_id:
            return preset
    available = ", ".join(p.id for p in ENHANCE_PRESETS)
    raise KeyError(f"Enhance preset '{preset_id}' not found. Available presets: {available}")


def catalogue_as_dict() -> dict[str, list[dict]]:
    """Serialisable view of models and presets for the config endpoint."""
    return {
        "models": [asdict(model) for model in AVAILABLE_MODELS],
        "presets": [asdict(preset) for preset in ENHANCE_PRESETS],
    }
