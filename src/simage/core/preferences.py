"""Local preference storage for the command-line client.

Holds the user's API key, selected model and theme in a small JSON file on
the user's machine.  The store is deliberately forgiving and simple:

- a missing, empty or unreadable file yields default preferences
- unknown keys in the file are ignored
- every setter persists immediately, so the last write wins

The API server never uses this module; it receives the credential with each
request and keeps nothing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, replace
from pathlib import Path

logger = logging.getLogger(__name__)

THEMES = ("light", "dark")


@dataclass(frozen=True)
class Preferences:
    """Stored client preferences.

    Attributes:
        api_key: Provider credential; empty when not configured.
        model: Selected model id; empty means the configured default.
        theme: ``light`` or ``dark``.
    """

    api_key: str = ""
    model: str = ""
    theme: str = "light"

    def __repr__(self) -> str:
        return (
            f"Preferences(api_key={mask_api_key(self.api_key)!r}, "
            f"model={self.model!r}, theme={self.theme!r})"
        )


def mask_api_key(api_key: str) -> str:
    """Render a credential for display without revealing it."""
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


class PreferenceStore:
    """JSON-file-backed store for :class:`Preferences`.

    Call :meth:`load` once at startup; afterwards :attr:`preferences` holds
    the current values and the setters keep the file in sync.

    Args:
        path: Location of the preferences file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.preferences = Preferences()

    def load(self) -> Preferences:
        """Read preferences from disk, falling back to defaults."""
        raw: object = {}
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as handle:
                    raw = json.load(handle)
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
                raw = {}

        if not isinstance(raw, dict):
            raw = {}

        theme = raw.get("theme")
        self.preferences = Preferences(
            api_key=str(raw.get("api_key") or ""),
            model=str(raw.get("model") or ""),
            theme=theme if theme in THEMES else "light",
        )
        return self.preferences

    def save(self, preferences: Preferences) -> None:
        """Persist ``preferences`` and make them current."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(asdict(preferences), handle, indent=2)
        self.preferences = preferences

    def set_api_key(self, api_key: str) -> Preferences:
        self.save(replace(self.preferences, api_key=api_key.strip()))
        return self.preferences

    def set_model(self, model: str) -> Preferences:
        self.save(replace(self.preferences, model=model.strip()))
        return self.preferences

    def set_theme(self, theme: str) -> Preferences:
        """Store the theme.

        Raises:
            ValueError: If ``theme`` is not ``light`` or ``dark``.
        """
        if theme not in THEMES:
            raise ValueError(f"Theme must be one of {', '.join(THEMES)}, got {theme!r}")
        self.save(replace(self.preferences, theme=theme))
        return self.preferences
