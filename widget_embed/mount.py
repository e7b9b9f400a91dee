"""
Widget Embed — View Mount Coordinator

Scans a region for view markers and mounts a view for each one whose model
is in the registry.

For each marker, in document order:
  1. parse its JSON and validate it against the view schema
     (violations are reported, not fatal)
  2. resolve model_id; a missing model means the marker is skipped and
     the DOM is left alone
  3. skip the marker if an anchor we own for that model already precedes it
  4. build the view into a detached anchor
  5. only once the view exists: drop the static placeholder image and
     insert the anchor before the marker, which stays in place
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any

from pydantic import ValidationError

from widget_embed.diagnostics import Diagnostic, DiagnosticsSink, LoggingDiagnostics
from widget_embed.dom import Element, create_element
from widget_embed.graph import ModelRegistry
from widget_embed.registry import ConstructorRegistry
from widget_embed.types import (
    ANCHOR_CLASS,
    ANCHOR_OWNER_ATTR,
    ANCHOR_TAG,
    PLACEHOLDER_SELECTOR,
    VIEW_SELECTOR,
    MountTargetMissing,
    UnknownConstructor,
    ViewDescriptor,
)
from widget_embed.validation import SchemaValidator
from widget_embed.widgets import WidgetModel, WidgetView

logger = logging.getLogger(__name__)


class ViewMountCoordinator:
    """Mounts views for view markers found under a root element."""

    def __init__(
        self,
        views: ConstructorRegistry,
        validator: SchemaValidator | None = None,
        diagnostics: DiagnosticsSink | None = None,
        *,
        remove_placeholders: bool = True,
    ):
        self._views = views
        self._validator = validator or SchemaValidator()
        self._diagnostics = diagnostics or LoggingDiagnostics()
        self._remove_placeholders = remove_placeholders
        # Strong references to in-flight async renders
        self._pending: set[asyncio.Future[Any]] = set()

    # -- public --

    def mount(self, root: Element, registry: ModelRegistry) -> list[WidgetView]:
        """
        Mount a view for every resolvable marker under root.
        Per-marker failures are reported and skipped. Returns the new views.
        """
        mounted: list[WidgetView] = []
        for marker in root.query_selector_all(VIEW_SELECTOR):
            try:
                view = self._mount_marker(marker, registry)
            except MountTargetMissing as e:
                model_id = e.args[0]
                self._diagnostics.report(
                    Diagnostic(kind="mount_target_missing", message=f"No model {model_id} in registry", model_id=model_id)
                )
                continue
            if view is not None:
                mounted.append(view)
        return mounted

    def create_view(
        self,
        model: WidgetModel,
        el: Element,
        *,
        view_module: str | None = None,
        view_name: str | None = None,
        parent: WidgetView | None = None,
    ) -> WidgetView | None:
        """
        Instantiate and render the view for a model into `el`.
        Returns None (after reporting) if the view cannot be built.
        """
        module = view_module or model.view_module
        name = view_name or model.view_name
        try:
            if not module or not name:
                raise UnknownConstructor(module or "?", name or "?")
            factory = self._views.get(module, name)
            if factory is None:
                raise UnknownConstructor(module, name)
            view = factory(model, el, self, parent)
            self._schedule(view.render(), model.model_id)
        except Exception as e:
            logger.debug("mount: view for %s failed", model.model_id, exc_info=True)
            self._diagnostics.report(
                Diagnostic(kind="view_failed", message=str(e) or type(e).__name__, model_id=model.model_id)
            )
            return None
        return view

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def settle(self) -> None:
        """Wait for every in-flight async render, including ones they start."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- internals --

    def _mount_marker(self, marker: Element, registry: ModelRegistry) -> WidgetView | None:
        descriptor = self._parse_descriptor(marker)
        if descriptor is None:
            return None

        model = registry.get(descriptor.model_id)
        if model is None:
            raise MountTargetMissing(descriptor.model_id)

        if self._already_mounted(marker, descriptor.model_id):
            logger.debug("mount: %s already mounted, skipping", descriptor.model_id)
            return None

        anchor = create_element(ANCHOR_TAG, {"class": ANCHOR_CLASS, ANCHOR_OWNER_ATTR: descriptor.model_id})
        view = self.create_view(
            model,
            anchor,
            view_module=descriptor.view_module,
            view_name=descriptor.view_name,
        )
        if view is None:
            return None

        parent = marker.parent
        if parent is None:
            return None

        placeholder = marker.previous_element_sibling
        if (
            self._remove_placeholders
            and placeholder is not None
            and placeholder.matches(PLACEHOLDER_SELECTOR)
        ):
            parent.remove_child(placeholder)
        parent.insert_before(anchor, marker)
        return view

    def _parse_descriptor(self, marker: Element) -> ViewDescriptor | None:
        try:
            payload = json.loads(marker.text_content)
        except json.JSONDecodeError as e:
            self._diagnostics.report(Diagnostic(kind="view_parse_error", message=f"Failed to parse view marker: {e}"))
            return None

        result = self._validator.validate(payload, "view")
        if not result.valid:
            self._diagnostics.report(
                Diagnostic(
                    kind="schema_violation",
                    message="View marker does not match the widget-view schema",
                    model_id=payload.get("model_id") if isinstance(payload, dict) else None,
                    details=result.errors,
                )
            )

        if not isinstance(payload, dict):
            return None
        try:
            return ViewDescriptor.model_validate(payload)
        except ValidationError as e:
            self._diagnostics.report(
                Diagnostic(kind="view_parse_error", message=f"Unusable view marker: {e.error_count()} error(s)")
            )
            return None

    @staticmethod
    def _already_mounted(marker: Element, model_id: str) -> bool:
        sibling = marker.previous_element_sibling
        return (
            sibling is not None
            and sibling.tag == ANCHOR_TAG
            and ANCHOR_CLASS in sibling.class_list
            and sibling.get(ANCHOR_OWNER_ATTR) == model_id
        )

    def _schedule(self, result: Any, model_id: str) -> None:
        """Keep an async render alive until it finishes; report if it fails."""
        if not inspect.isawaitable(result):
            return
        future = asyncio.ensure_future(result)
        self._pending.add(future)

        def _done(fut: asyncio.Future[Any]) -> None:
            self._pending.discard(fut)
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                self._diagnostics.report(
                    Diagnostic(kind="view_failed", message=str(error) or type(error).__name__, model_id=model_id)
                )

        future.add_done_callback(_done)
