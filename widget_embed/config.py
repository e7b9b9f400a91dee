"""
Widget Embed configuration — all environment variables in one place.

Read from environment at import time. Nothing here is required; every
setting has a default suited to rendering a page once.
"""

from __future__ import annotations

import os


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Embedder settings from environment variables."""

    # Logging
    LOG_LEVEL: str = os.environ.get("WIDGET_EMBED_LOG_LEVEL", "WARNING").upper()

    # Validate state and view markers against the published schemas
    VALIDATE_SCHEMAS: bool = _flag("WIDGET_EMBED_VALIDATE", "true")

    # Drop the static <img class="jupyter-widget"> fallback once a view mounts
    REMOVE_PLACEHOLDERS: bool = _flag("WIDGET_EMBED_REMOVE_PLACEHOLDERS", "true")

    # Seconds to wait when the CLI fetches a page over HTTP
    FETCH_TIMEOUT: float = float(os.environ.get("WIDGET_EMBED_FETCH_TIMEOUT", "10"))


# Singleton instance
settings = Settings()
