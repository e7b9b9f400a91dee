"""
Widget Embed — Schema Validation

Validates widget-state and widget-view documents against the published
v2 JSON schemas before the pipeline trusts them.

Validation never rejects a document. It returns a ValidationResult and the
caller reports violations to diagnostics, then carries on best-effort:
embedded pages routinely carry minor schema drift between versions.

Compiled validators are cached per kind for the life of the process. They
are never mutated after compilation, so sharing them across documents is
safe.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from widget_embed.types import SCHEMA_KINDS, SchemaError, ValidationResult

# ---------------------------------------------------------------------------
# Published schemas (v2)
# ---------------------------------------------------------------------------

_MODEL_RECORD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "model_name": {"type": "string", "description": "Name of the JavaScript class holding the model implementation"},
        "model_module": {"type": "string", "description": "Name of the JavaScript module holding the model implementation"},
        "model_module_version": {"type": "string", "description": "Semver range for the JavaScript module"},
        "state": {"type": "object", "description": "Serialized state of the model"},
        "buffers": {"type": "array"},
    },
    "required": ["model_name", "model_module", "state"],
    "additionalProperties": False,
}

WIDGET_STATE_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "description": "Jupyter Interactive Widget State JSON schema.",
    "type": "object",
    "if": {"required": ["version_major"]},
    "then": {
        "properties": {
            "version_major": {"type": "number", "minimum": 2, "maximum": 2},
            "version_minor": {"type": "number", "minimum": 0},
            "state": {
                "type": "object",
                "description": "Model state for all widget models, keyed by model id",
                "additionalProperties": _MODEL_RECORD_SCHEMA,
            },
        },
        "required": ["version_major", "version_minor", "state"],
        "additionalProperties": False,
    },
    "else": {
        "additionalProperties": _MODEL_RECORD_SCHEMA,
    },
}

WIDGET_VIEW_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "description": "Jupyter Interactive Widget View JSON schema.",
    "type": "object",
    "properties": {
        "version_major": {"type": "number", "minimum": 2, "maximum": 2},
        "version_minor": {"type": "number", "minimum": 0},
        "model_id": {"type": "string", "description": "Unique identifier of the widget model to be displayed"},
        "view_name": {"type": "string"},
        "view_module": {"type": "string"},
        "view_module_version": {"type": "string"},
    },
    "required": ["model_id"],
}

SCHEMAS: dict[str, dict[str, Any]] = {
    "state": WIDGET_STATE_SCHEMA,
    "view": WIDGET_VIEW_SCHEMA,
}

# Compiled once per kind, shared process-wide
_VALIDATORS: dict[str, Draft7Validator] = {}


def get_validator(kind: str) -> Draft7Validator:
    """Return the compiled validator for a schema kind, compiling on first use."""
    if kind not in SCHEMA_KINDS:
        raise ValueError(f"Unknown schema kind: {kind}")

    validator = _VALIDATORS.get(kind)
    if validator is None:
        schema = SCHEMAS[kind]
        Draft7Validator.check_schema(schema)
        validator = Draft7Validator(schema)
        _VALIDATORS[kind] = validator
    return validator


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class SchemaValidator:
    """
    Validates documents by kind. Instances are cheap; the compiled
    validators behind them are shared.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def validate(self, document: Any, kind: str) -> ValidationResult:
        """
        Validate a parsed JSON document against the schema for `kind`.
        Returns a result with structured errors; never raises on bad input.
        """
        validator = get_validator(kind)
        if not self.enabled:
            return ValidationResult(kind=kind, valid=True)

        errors = [
            SchemaError(path=_format_path(error.absolute_path), message=error.message)
            for error in sorted(validator.iter_errors(document), key=lambda e: list(map(str, e.absolute_path)))
        ]
        return ValidationResult(kind=kind, valid=not errors, errors=errors)


def validate(document: Any, kind: str) -> ValidationResult:
    """Module-level shortcut using an always-enabled validator."""
    return SchemaValidator().validate(document, kind)


def _format_path(path: Any) -> str:
    """Render a jsonschema error path as a JSON-pointer-like string."""
    return "".join(f"/{segment}" for segment in path)
