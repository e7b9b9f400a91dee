"""
Widget Embed — Bootstrap

Entry point that ties the pipeline together for one page.

EmbedContext is the page-scoped object that replaces a global
"already bootstrapped" flag: it owns the constructor registries, the
validator, the diagnostics sink, and an `initialized` bit set by attach().

on_region_ready(region) runs the whole pipeline for a region:
  for each widget-state marker in the region:
    parse → validate → build the model registry → mount the region's views
It may be called again for regions inserted later, or for overlapping
regions; mounting is idempotent.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from widget_embed.config import settings
from widget_embed.diagnostics import Diagnostic, DiagnosticsSink, LoggingDiagnostics
from widget_embed.dom import Element, parse_html
from widget_embed.graph import ModelGraphBuilder, ModelRegistry
from widget_embed.mount import ViewMountCoordinator
from widget_embed.registry import ConstructorRegistry
from widget_embed.types import STATE_SELECTOR, StateParseError, normalize_state_document
from widget_embed.validation import SchemaValidator
from widget_embed.widgets import WidgetView, register_builtins

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State marker parsing
# ---------------------------------------------------------------------------


def parse_state_text(text: str, diagnostics: DiagnosticsSink | None = None) -> dict[str, Any]:
    """
    Parse the text of a widget-state marker.

    Duplicate model ids are resolved last-write-wins and reported as
    `duplicate_model_id`. Raises StateParseError if the text is not a JSON
    object.
    """
    duplicates: list[tuple[dict[str, Any], str]] = []

    def _pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
        obj: dict[str, Any] = {}
        for key, value in pairs:
            if key in obj:
                duplicates.append((obj, key))
            obj[key] = value
        return obj

    try:
        document = json.loads(text, object_pairs_hook=_pairs)
    except json.JSONDecodeError as e:
        raise StateParseError(f"Failed to parse widget state: {e}") from e

    if not isinstance(document, dict):
        raise StateParseError(f"Widget state must be a JSON object, got {type(document).__name__}")

    if diagnostics is not None and duplicates:
        records = normalize_state_document(document)
        for obj, key in duplicates:
            if obj is records:
                diagnostics.report(
                    Diagnostic(
                        kind="duplicate_model_id",
                        message="Model id appears more than once; keeping the last record",
                        model_id=key,
                    )
                )
    return document


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class EmbedContext:
    """Page-scoped pipeline state. Create one per page."""

    def __init__(
        self,
        *,
        models: ConstructorRegistry | None = None,
        views: ConstructorRegistry | None = None,
        diagnostics: DiagnosticsSink | None = None,
        validate: bool | None = None,
        remove_placeholders: bool | None = None,
    ):
        self.models = models if models is not None else ConstructorRegistry()
        self.views = views if views is not None else ConstructorRegistry()
        self.diagnostics = diagnostics if diagnostics is not None else LoggingDiagnostics()
        self.validator = SchemaValidator(
            enabled=settings.VALIDATE_SCHEMAS if validate is None else validate,
        )
        self.builder = ModelGraphBuilder(self.models, self.diagnostics)
        self.coordinator = ViewMountCoordinator(
            self.views,
            self.validator,
            self.diagnostics,
            remove_placeholders=settings.REMOVE_PLACEHOLDERS if remove_placeholders is None else remove_placeholders,
        )
        self.initialized = False

    def attach(self) -> bool:
        """
        One-time initialization. Returns True the first time, False on
        every later call (which does nothing).
        """
        if self.initialized:
            return False
        register_builtins(self.models, self.views)
        self.initialized = True
        logger.debug("bootstrap: attached (%d model constructors)", len(self.models))
        return True

    async def load_state(self, marker: Element) -> ModelRegistry | None:
        """Parse, validate and build the registry for one state marker."""
        try:
            document = parse_state_text(marker.text_content, self.diagnostics)
        except StateParseError as e:
            self.diagnostics.report(Diagnostic(kind="state_parse_error", message=str(e)))
            return None

        result = self.validator.validate(document, "state")
        if not result.valid:
            self.diagnostics.report(
                Diagnostic(
                    kind="schema_violation",
                    message="Widget state does not match the widget-state schema",
                    details=result.errors,
                )
            )

        return await self.builder.build_graph(document)

    async def on_region_ready(self, region: Element) -> list[WidgetView]:
        """
        Run the pipeline for every state marker in `region` and mount the
        region's views. Returns the views mounted by this call.
        """
        self.attach()

        mounted: list[WidgetView] = []
        for marker in region.query_selector_all(STATE_SELECTOR):
            registry = await self.load_state(marker)
            if registry is None:
                continue
            mounted.extend(self.coordinator.mount(region, registry))

        logger.info("bootstrap: mounted %d view(s)", len(mounted))
        return mounted


# ---------------------------------------------------------------------------
# Whole-page helper
# ---------------------------------------------------------------------------


async def render_page(html: str, context: EmbedContext | None = None) -> str:
    """
    Parse a page, mount every embedded widget, and return the new HTML.
    Async view renders are awaited before the page is serialized.
    """
    context = context or EmbedContext()
    document = parse_html(html)
    await context.on_region_ready(document)
    await context.coordinator.settle()
    return document.to_html()
