"""
Constructor registry — maps (module, name) pairs to factories.

One registry holds model constructors, another holds view constructors.
Both are injected into the pipeline rather than looked up globally.

A registry may carry an async loader, consulted on a miss. That is where a
host plugs in lazily fetched third-party widget modules. A loader hit is
cached, so each pair is loaded at most once per registry.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from widget_embed.types import UnknownConstructor

logger = logging.getLogger(__name__)

Factory = Callable[..., Any]
Loader = Callable[[str, str, str], Awaitable[Optional[Factory]]]


class ConstructorRegistry:
    """Registry of factories keyed by (module, name)."""

    def __init__(self, loader: Loader | None = None):
        self._factories: dict[tuple[str, str], Factory] = {}
        self._loader = loader

    def register(self, module: str, name: str, factory: Factory) -> None:
        """Register a factory. Re-registering a pair replaces it."""
        key = (module, name)
        if key in self._factories and self._factories[key] is not factory:
            logger.debug("registry: replacing %s.%s", module, name)
        self._factories[key] = factory

    def get(self, module: str, name: str) -> Factory | None:
        """Synchronous lookup of registered factories only."""
        return self._factories.get((module, name))

    async def resolve(self, module: str, name: str, version: str = "*") -> Factory:
        """
        Look up a factory, falling back to the loader.
        Raises UnknownConstructor when neither knows the pair.
        """
        factory = self.get(module, name)
        if factory is not None:
            return factory

        if self._loader is not None:
            loaded = self._loader(module, name, version)
            if inspect.isawaitable(loaded):
                loaded = await loaded
            if loaded is not None:
                self.register(module, name, loaded)
                return loaded

        raise UnknownConstructor(module, name, version)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return self.get(*key) is not None

    def __len__(self) -> int:
        return len(self._factories)

    def keys(self) -> list[tuple[str, str]]:
        return sorted(self._factories)
