"""Configuration management for S-Image.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SIMAGE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SIMAGE_* prefix)
2. .env file in the project root
3. Default values defined in SimageConfig

Example .env file:
    SIMAGE_DEFAULT_MODEL=black-forest-labs/flux-1-schnell
    SIMAGE_REQUEST_TIMEOUT=60
    SIMAGE_APP_URL=https://s-image.example.com

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time and
serves as the default for the entry points (``simage serve``, ``simage-server``
and the CLI client).  Components never read it implicitly: the server and the
CLI pass their configuration into the pipeline and upstream client
explicitly, which keeps tests free to build their own instances.

Upstream Request Policy
-----------------------
- ``max_tokens`` bounds the output size of every generation request.
- ``request_timeout`` bounds a single round trip to the provider.
- There is no retry setting: generation requests are billed, so a failed send
  is reported to the caller rather than repeated.
"""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from simage.core.catalog import model_ids


class SimageConfig(BaseSettings):
    """Main configuration for S-Image.

    Attributes
    ----------
    Upstream Settings:
        upstream_base_url : str
            Base URL of the model aggregation API (OpenRouter-compatible)
        credits_url_path : str
            Path of the key-info endpoint, relative to ``upstream_base_url``
        default_model : str
            Model used when a request does not name one
        max_tokens : int
            Output-size cap sent with every generation request
        request_timeout : float
            Seconds allowed for one upstream round trip

    Identification Headers:
        app_url : str
            Sent as ``HTTP-Referer`` on outbound requests
        app_title : str
            Sent as ``X-Title`` on outbound requests

    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        log_level : str
            Root log level for the entry points

    Client Settings:
        preferences_file : Path
            JSON file holding the CLI client's stored credential, model and theme
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SIMAGE_",
        case_sensitive=False,
    )

    # Upstream provider
    upstream_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of the model aggregation API",
    )
    credits_url_path: str = Field(
        default="/auth/key",
        description="Key-info endpoint path relative to upstream_base_url",
    )
    default_model: str = Field(
        default="google/gemini-2.5-flash-image-preview",
        description="Model used when a request does not specify one",
    )
    max_tokens: int = Field(
        default=1000,
        description="Output-size cap sent with each generation request",
        ge=1,
        le=32768,
    )
    request_timeout: float = Field(
        default=120.0,
        description="Seconds allowed for a single upstream round trip",
        gt=0,
    )

    # Identification headers
    app_url: str = Field(
        default="http://localhost:3000",
        description="Referring application URL (HTTP-Referer header)",
    )
    app_title: str = Field(
        default="S-Image",
        description="Display title (X-Title header)",
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: str = Field(
        default="INFO",
        description="Log level used by the entry points",
    )

    # Local client
    preferences_file: Path = Field(
        default=Path.home() / ".simage" / "preferences.json",
        description="Where the CLI client stores its credential, model and theme",
    )

    @field_validator("default_model")
    @classmethod
    def _default_model_in_catalogue(cls, value: str) -> str:
        if value not in model_ids():
            raise ValueError(f"Unknown model: {value}. Choose one of: {', '.join(model_ids())}")
        return value

    @property
    def numeric_log_level(self) -> int:
        """Resolve ``log_level`` to a :mod:`logging` level, defaulting to INFO."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


# Global configuration instance
# Loads values from environment variables (SIMAGE_* prefix) and .env file.
config = SimageConfig()
