"""S-Image - prompt-to-image web service backed by a model aggregation API."""

__version__ = "0.1.0"

from simage.core.config import SimageConfig, config

__all__ = [
    "SimageConfig",
    "config",
]
