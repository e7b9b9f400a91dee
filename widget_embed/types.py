"""
Widget Embed — Shared Types

Constants, records, and exceptions used across validation, graph building,
mounting, and bootstrap. These are the contracts that bind the pipeline
together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

STATE_MIME_TYPE = "application/vnd.jupyter.widget-state+json"
VIEW_MIME_TYPE = "application/vnd.jupyter.widget-view+json"

STATE_SELECTOR = f'script[type="{STATE_MIME_TYPE}"]'
VIEW_SELECTOR = f'script[type="{VIEW_MIME_TYPE}"]'

# Static-render fallback image emitted next to each view marker
PLACEHOLDER_SELECTOR = "img.jupyter-widget"

# Mount anchor inserted before each view marker
ANCHOR_TAG = "div"
ANCHOR_CLASS = "widget-subarea"
ANCHOR_OWNER_ATTR = "data-widget-embed-model"

# Wire prefix for inter-model references
MODEL_REF_PREFIX = "IPY_MODEL_"

SCHEMA_KINDS: set[str] = {"state", "view"}


# ---------------------------------------------------------------------------
# Sentinels
# ---------------------------------------------------------------------------


class _Absent:
    """Result of resolving a reference to a model that is not in the registry."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EmbedError(Exception):
    """Base class for pipeline errors."""
    pass


class UnknownConstructor(EmbedError):
    """No constructor is registered for a (module, name) pair."""

    def __init__(self, module: str, name: str, version: str = "*"):
        self.module = module
        self.name = name
        self.version = version
        super().__init__(f"No constructor registered for {module}.{name}@{version}")


class MountTargetMissing(EmbedError):
    """A view descriptor names a model id that is not in the registry."""
    pass


class StateParseError(EmbedError):
    """A state marker holds text that is not a JSON object."""
    pass


# ---------------------------------------------------------------------------
# Wire records
# ---------------------------------------------------------------------------


class ModelRecord(BaseModel):
    """One entry of a state document: which constructor, and its raw state."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    model_name: str
    model_module: str
    model_module_version: str | None = "*"
    state: dict[str, Any]


class ViewDescriptor(BaseModel):
    """Parsed payload of a view marker: 'render model X here'."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    model_id: str
    version_major: float | None = None
    version_minor: float | None = None
    view_name: str | None = None
    view_module: str | None = None
    view_module_version: str | None = "*"


@dataclass(frozen=True)
class ModelRef:
    """Non-owning key into the model registry."""

    model_id: str

    def to_wire(self) -> str:
        return f"{MODEL_REF_PREFIX}{self.model_id}"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class SchemaError:
    """A single schema violation: where, and what."""

    path: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "message": self.message}


@dataclass
class ValidationResult:
    """Outcome of validating one document. Never raised, always returned."""

    kind: str
    valid: bool
    errors: list[SchemaError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_state_document(document: Any) -> dict[str, Any]:
    """
    Return the {model_id: record} mapping of a state document.

    Accepts the v2 envelope ({"version_major", "version_minor", "state"})
    and the bare mapping form. Anything else yields an empty mapping.
    """
    if not isinstance(document, dict):
        return {}
    if "version_major" in document and isinstance(document.get("state"), dict):
        return document["state"]
    return document
