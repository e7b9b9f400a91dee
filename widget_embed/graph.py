"""
Widget Embed — Model Graph Builder

(state document) → ModelRegistry

Every record is constructed in its own asyncio task. References between
models are stored as keys and resolved on access, so construction order
does not matter and cycles are fine. The registry is sealed, and only
then returned, after every task has either finished or failed on its own.
A failure in one record never stops the others.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Iterator

from pydantic import ValidationError

from widget_embed.diagnostics import Diagnostic, DiagnosticsSink, LoggingDiagnostics
from widget_embed.registry import ConstructorRegistry
from widget_embed.types import ModelRecord, UnknownConstructor, normalize_state_document
from widget_embed.widgets import WidgetModel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ModelRegistry:
    """
    Live models keyed by id. Append-only while the graph is being built,
    read-only once sealed.
    """

    def __init__(self) -> None:
        self._models: dict[str, WidgetModel] = {}
        self.failures: dict[str, str] = {}
        self._sealed = False

    def add(self, model: WidgetModel) -> None:
        if self._sealed:
            raise RuntimeError("Model registry is sealed")
        self._models[model.model_id] = model

    def fail(self, model_id: str, reason: str) -> None:
        if self._sealed:
            raise RuntimeError("Model registry is sealed")
        self.failures[model_id] = reason

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, model_id: str) -> WidgetModel | None:
        return self._models.get(model_id)

    def models(self) -> list[WidgetModel]:
        return list(self._models.values())

    def ids(self) -> list[str]:
        return list(self._models)

    def __getitem__(self, model_id: str) -> WidgetModel:
        return self._models[model_id]

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def __repr__(self) -> str:
        return f"<ModelRegistry models={len(self._models)} failures={len(self.failures)}>"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class ModelGraphBuilder:
    """Builds a ModelRegistry from a state document."""

    def __init__(
        self,
        constructors: ConstructorRegistry,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self._constructors = constructors
        self._diagnostics = diagnostics or LoggingDiagnostics()

    async def build_graph(self, document: Any) -> ModelRegistry:
        """
        Construct every model in the document concurrently.
        Returns once all of them have settled; holds only the successes.
        """
        records = normalize_state_document(document)
        registry = ModelRegistry()

        model_ids = list(records)
        results = await asyncio.gather(
            *(self._build_one(registry, model_id, records[model_id]) for model_id in model_ids),
            return_exceptions=True,
        )

        for model_id, result in zip(model_ids, results):
            if isinstance(result, BaseException):
                self._record_failure(registry, model_id, result)
            else:
                registry.add(result)

        registry.seal()
        self._check_references(registry)

        logger.debug(
            "graph: built %d of %d models (%d failed)",
            len(registry),
            len(model_ids),
            len(registry.failures),
        )
        return registry

    async def _build_one(self, registry: ModelRegistry, model_id: str, raw: Any) -> WidgetModel:
        if not isinstance(raw, dict):
            raise ValueError(f"Model record must be an object, got {type(raw).__name__}")
        record = ModelRecord.model_validate(raw)
        version = record.model_module_version or "*"

        factory = await self._constructors.resolve(
            record.model_module,
            record.model_name,
            version,
        )
        model = factory(
            model_id,
            registry,
            model_name=record.model_name,
            model_module=record.model_module,
            model_module_version=version,
        )
        if inspect.isawaitable(model):
            model = await model

        await model.set_state(record.state)
        return model

    def _record_failure(self, registry: ModelRegistry, model_id: str, error: BaseException) -> None:
        if isinstance(error, UnknownConstructor):
            kind = "unknown_constructor"
        else:
            kind = "construction_failed"

        if isinstance(error, ValidationError):
            message = f"Invalid model record: {error.error_count()} error(s)"
        else:
            message = str(error) or type(error).__name__

        registry.fail(model_id, message)
        self._diagnostics.report(Diagnostic(kind=kind, message=message, model_id=model_id))

    def _check_references(self, registry: ModelRegistry) -> None:
        """Report references to ids that did not make it into the registry."""
        for model in registry.models():
            for ref in model.refs():
                if ref.model_id not in registry:
                    self._diagnostics.report(
                        Diagnostic(
                            kind="unresolved_reference",
                            message=f"Reference to missing model {ref.model_id}",
                            model_id=model.model_id,
                        )
                    )


async def build_graph(
    document: Any,
    constructors: ConstructorRegistry,
    diagnostics: DiagnosticsSink | None = None,
) -> ModelRegistry:
    """Convenience wrapper around ModelGraphBuilder."""
    return await ModelGraphBuilder(constructors, diagnostics).build_graph(document)
