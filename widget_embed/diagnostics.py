"""
Diagnostics sink for the embed pipeline.

Nothing in the pipeline raises for a single bad model or view. Problems are
reported here instead, and the host decides where they go. The default
sink writes them to the standard logger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from widget_embed.types import SchemaError

logger = logging.getLogger(__name__)

# Diagnostic kinds and the log level each one is reported at
LEVELS: dict[str, int] = {
    "schema_violation": logging.WARNING,
    "state_parse_error": logging.ERROR,
    "view_parse_error": logging.ERROR,
    "duplicate_model_id": logging.WARNING,
    "unknown_constructor": logging.WARNING,
    "construction_failed": logging.ERROR,
    "unresolved_reference": logging.WARNING,
    "mount_target_missing": logging.DEBUG,
    "view_failed": logging.ERROR,
}


@dataclass
class Diagnostic:
    """One reported problem."""

    kind: str
    message: str
    model_id: str | None = None
    details: list[SchemaError] = field(default_factory=list)

    @property
    def level(self) -> int:
        return LEVELS.get(self.kind, logging.WARNING)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "model_id": self.model_id,
            "details": [d.to_dict() for d in self.details],
        }


class DiagnosticsSink(Protocol):
    def report(self, diagnostic: Diagnostic) -> None: ...


class LoggingDiagnostics:
    """Routes diagnostics to a logger, one line per error detail."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def report(self, diagnostic: Diagnostic) -> None:
        if diagnostic.model_id is not None:
            self._log.log(
                diagnostic.level,
                "%s: %s (model_id=%s)",
                diagnostic.kind,
                diagnostic.message,
                diagnostic.model_id,
            )
        else:
            self._log.log(diagnostic.level, "%s: %s", diagnostic.kind, diagnostic.message)
        for detail in diagnostic.details:
            self._log.log(diagnostic.level, "  %s: %s", detail.path or "/", detail.message)


class CollectingDiagnostics(LoggingDiagnostics):
    """Keeps every diagnostic in memory, and logs it too."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        super().__init__(log)
        self.diagnostics: list[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
        super().report(diagnostic)

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    def clear(self) -> None:
        self.diagnostics.clear()
