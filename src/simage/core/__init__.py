"""Core functionality for S-Image.

- **config**: Pydantic Settings configuration (``SIMAGE_`` environment prefix)
- **imagedata**: reference image parsing, base64 validation, MIME sniffing
- **payload**: multimodal chat message encoding
- **upstream**: HTTP client for the model aggregation API
- **extractor**: locating the generated image in arbitrary responses
- **pipeline**: per-request orchestration and outcome reporting
- **catalog**: model catalogue and enhance presets
- **preferences**: the CLI client's local preference store
"""

from simage.core.config import SimageConfig, config
from simage.core.errors import SimageError
from simage.core.extractor import extract_image_url
from simage.core.pipeline import GenerationInput, GenerationOutcome, GenerationPipeline
from simage.core.upstream import UpstreamClient

__all__ = [
    "GenerationInput",
    "GenerationOutcome",
    "GenerationPipeline",
    "SimageConfig",
    "SimageError",
    "UpstreamClient",
    "config",
    "extract_image_url",
]
