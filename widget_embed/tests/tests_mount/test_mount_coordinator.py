"""
Widget Embed -- View Mount Coordinator Tests

Covers:
  - one marker + one model: exactly one placeholder removed, one anchor
    inserted, one view constructed with the resolved model
  - unknown model_id: DOM untouched (validation still attempted)
  - mounting twice, or over overlapping roots, never double-mounts
  - markers processed in document order
  - a failing view leaves the DOM (and placeholder) as it was
  - async renders are kept alive until they finish
"""

import asyncio
import json

import pytest

from widget_embed.dom import parse_html
from widget_embed.graph import build_graph
from widget_embed.mount import ViewMountCoordinator
from widget_embed.types import ANCHOR_OWNER_ATTR, VIEW_MIME_TYPE
from widget_embed.widgets import WidgetView

CONTROLS = "@jupyter-widgets/controls"

# ============================================================================
# Helpers
# ============================================================================


def recorded_model(value="x"):
    return {
        "model_name": "LabelModel",
        "model_module": CONTROLS,
        "state": {"value": value, "_view_module": "test", "_view_name": "RecordingView"},
    }


def view_marker(payload):
    if not isinstance(payload, str):
        payload = json.dumps(payload)
    return f'<script type="{VIEW_MIME_TYPE}">{payload}</script>'


def make_page(*model_ids, placeholder=True):
    parts = ['<div id="root">']
    for model_id in model_ids:
        parts.append(f'<div class="cell" id="cell-{model_id}">\n')
        if placeholder:
            parts.append('<img class="jupyter-widget" src="data:,">\n')
        parts.append(view_marker({"model_id": model_id, "version_major": 2, "version_minor": 0}))
        parts.append("</div>")
    parts.append("</div>")
    return parse_html("".join(parts))


def anchors(root):
    return root.query_selector_all("div.widget-subarea")


def placeholders(root):
    return root.query_selector_all("img.jupyter-widget")


@pytest.fixture
def created(view_constructors):
    """Views built through the RecordingView factory, in construction order."""
    views = []

    def factory(model, el, manager=None, parent=None):
        view = WidgetView(model, el, manager, parent)
        views.append(view)
        return view

    view_constructors.register("test", "RecordingView", factory)
    return views


@pytest.fixture
def coordinator(view_constructors, diagnostics):
    return ViewMountCoordinator(view_constructors, diagnostics=diagnostics)


# ============================================================================
# Mounting
# ============================================================================


class TestMount:
    @pytest.mark.asyncio
    async def test_single_view_mounted(self, model_constructors, coordinator, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = make_page("w1")
        marker = page.query_selector(f'script[type="{VIEW_MIME_TYPE}"]')

        mounted = coordinator.mount(page, registry)

        assert placeholders(page) == []
        assert len(anchors(page)) == 1
        assert len(created) == 1
        assert created[0].model is registry["w1"]
        assert mounted == created

        anchor = anchors(page)[0]
        assert marker.parent is not None
        assert marker.previous_element_sibling is anchor
        assert created[0].el is anchor
        assert anchor.get(ANCHOR_OWNER_ATTR) == "w1"

    @pytest.mark.asyncio
    async def test_without_placeholder(self, model_constructors, coordinator, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = make_page("w1", placeholder=False)
        before = len(page.query_selector("div.cell").element_children)

        coordinator.mount(page, registry)

        assert len(anchors(page)) == 1
        assert len(page.query_selector("div.cell").element_children) == before + 1

    @pytest.mark.asyncio
    async def test_unrelated_image_kept(self, model_constructors, coordinator, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = parse_html(
            '<div><img class="figure" src="x.png">'
            + view_marker({"model_id": "w1", "version_major": 2, "version_minor": 0})
            + "</div>"
        )

        coordinator.mount(page, registry)

        assert len(page.query_selector_all("img.figure")) == 1
        assert len(anchors(page)) == 1

    @pytest.mark.asyncio
    async def test_only_immediately_preceding_placeholder_removed(self, model_constructors, coordinator, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = parse_html(
            '<div><img class="jupyter-widget" id="far"><p>text</p>'
            '<img class="jupyter-widget" id="near">'
            + view_marker({"model_id": "w1", "version_major": 2, "version_minor": 0})
            + "</div>"
        )

        coordinator.mount(page, registry)

        assert [img.get("id") for img in placeholders(page)] == ["far"]

    @pytest.mark.asyncio
    async def test_placeholders_kept_when_disabled(self, model_constructors, view_constructors, diagnostics, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = make_page("w1")
        coordinator = ViewMountCoordinator(view_constructors, diagnostics=diagnostics, remove_placeholders=False)

        coordinator.mount(page, registry)

        assert len(placeholders(page)) == 1
        assert len(anchors(page)) == 1

    @pytest.mark.asyncio
    async def test_document_order(self, model_constructors, coordinator, created):
        document = {mid: recorded_model(mid) for mid in ("w3", "w1", "w2")}
        registry = await build_graph(document, model_constructors)
        page = make_page("w1", "w2", "w3")

        coordinator.mount(page, registry)

        assert [view.model.model_id for view in created] == ["w1", "w2", "w3"]
        assert len(anchors(page)) == 3
        assert placeholders(page) == []

    @pytest.mark.asyncio
    async def test_descriptor_view_overrides_model_view(self, model_constructors, coordinator, created):
        record = {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"value": "x"}}
        registry = await build_graph({"w1": record}, model_constructors)
        page = parse_html(
            "<div>"
            + view_marker({"model_id": "w1", "view_module": "test", "view_name": "RecordingView"})
            + "</div>"
        )

        coordinator.mount(page, registry)

        assert len(created) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"model_id": "w1", "version_major": 2, "version_minor": 0.5},
            {"model_id": "w1", "version_major": 2, "version_minor": 0, "view_module_version": None},
            {"model_id": "w1", "version_major": 2.0, "version_minor": None},
        ],
    )
    async def test_drifted_descriptor_still_mounts(self, model_constructors, coordinator, created, diagnostics, payload):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = parse_html('<div><img class="jupyter-widget">' + view_marker(payload) + "</div>")

        mounted = coordinator.mount(page, registry)

        assert len(mounted) == 1
        assert len(anchors(page)) == 1
        assert placeholders(page) == []
        assert diagnostics.of_kind("view_parse_error") == []


# ============================================================================
# Missing models
# ============================================================================


class TestMountTargetMissing:
    @pytest.mark.asyncio
    async def test_dom_unchanged(self, model_constructors, coordinator, diagnostics, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = make_page("ghost")
        before = page.to_html()

        mounted = coordinator.mount(page, registry)

        assert mounted == []
        assert created == []
        assert page.to_html() == before
        assert [d.model_id for d in diagnostics.of_kind("mount_target_missing")] == ["ghost"]

    @pytest.mark.asyncio
    async def test_validation_still_attempted(self, model_constructors, coordinator, diagnostics, created):
        registry = await build_graph({}, model_constructors)
        page = parse_html("<div>" + view_marker({"model_id": "ghost", "version_major": 9}) + "</div>")
        before = page.to_html()

        coordinator.mount(page, registry)

        assert page.to_html() == before
        assert len(diagnostics.of_kind("schema_violation")) == 1
        assert len(diagnostics.of_kind("mount_target_missing")) == 1

    @pytest.mark.asyncio
    async def test_failed_model_skipped(self, model_constructors, coordinator, created):
        document = {"bad": {"model_name": "Nope", "model_module": "x", "state": {}}, "w1": recorded_model()}
        registry = await build_graph(document, model_constructors)
        page = make_page("bad", "w1")

        coordinator.mount(page, registry)

        assert [view.model.model_id for view in created] == ["w1"]
        assert page.query_selector("div#cell-bad").query_selector("img.jupyter-widget") is not None


# ============================================================================
# Idempotence
# ============================================================================


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_mount_twice(self, model_constructors, coordinator, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = make_page("w1")

        first = coordinator.mount(page, registry)
        second = coordinator.mount(page, registry)

        assert len(first) == 1
        assert second == []
        assert len(anchors(page)) == 1
        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_overlapping_roots(self, model_constructors, coordinator, created):
        registry = await build_graph({"w1": recorded_model(), "w2": recorded_model()}, model_constructors)
        page = make_page("w1", "w2")

        coordinator.mount(page.query_selector("div#cell-w1"), registry)
        coordinator.mount(page, registry)

        assert [view.model.model_id for view in created] == ["w1", "w2"]
        assert len(anchors(page)) == 2


# ============================================================================
# Failures
# ============================================================================


class TestViewFailures:
    @pytest.mark.asyncio
    async def test_failing_view_leaves_dom(self, model_constructors, view_constructors, coordinator, diagnostics, created):
        def broken(model, el, manager=None, parent=None):
            raise RuntimeError("cannot draw")

        view_constructors.register("test", "BrokenView", broken)
        bad = {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"_view_module": "test", "_view_name": "BrokenView"}}
        registry = await build_graph({"bad": bad, "w1": recorded_model()}, model_constructors)
        page = make_page("bad", "w1")
        bad_cell_before = page.query_selector("div#cell-bad").to_html()

        mounted = coordinator.mount(page, registry)

        assert [view.model.model_id for view in mounted] == ["w1"]
        assert page.query_selector("div#cell-bad").to_html() == bad_cell_before
        reported = diagnostics.of_kind("view_failed")
        assert [d.model_id for d in reported] == ["bad"]
        assert "cannot draw" in reported[0].message

    @pytest.mark.asyncio
    async def test_unknown_view_class(self, model_constructors, coordinator, diagnostics):
        record = {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"_view_module": "x", "_view_name": "NoSuchView"}}
        registry = await build_graph({"w1": record}, model_constructors)
        page = make_page("w1")
        before = page.to_html()

        assert coordinator.mount(page, registry) == []
        assert page.to_html() == before
        assert len(diagnostics.of_kind("view_failed")) == 1

    @pytest.mark.asyncio
    async def test_unparseable_marker_skipped(self, model_constructors, coordinator, diagnostics, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = parse_html(
            "<div>"
            + view_marker("{this is not json")
            + view_marker({"model_id": "w1", "version_major": 2, "version_minor": 0})
            + "</div>"
        )

        coordinator.mount(page, registry)

        assert len(diagnostics.of_kind("view_parse_error")) == 1
        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_schema_violation_still_mounts(self, model_constructors, coordinator, diagnostics, created):
        registry = await build_graph({"w1": recorded_model()}, model_constructors)
        page = parse_html("<div>" + view_marker({"model_id": "w1", "version_major": 7}) + "</div>")

        coordinator.mount(page, registry)

        assert len(created) == 1
        violations = diagnostics.of_kind("schema_violation")
        assert len(violations) == 1
        assert violations[0].details[0].path == "/version_major"


# ============================================================================
# Async renders
# ============================================================================


class AsyncView(WidgetView):
    async def render(self):
        await asyncio.sleep(0)
        self.el.text_content = str(self.model.get("value"))


class FailingAsyncView(WidgetView):
    async def render(self):
        await asyncio.sleep(0)
        raise ValueError("late failure")


class TestAsyncRender:
    @pytest.mark.asyncio
    async def test_async_render_completes(self, model_constructors, view_constructors, coordinator):
        view_constructors.register("test", "AsyncView", AsyncView)
        record = {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"value": "later", "_view_module": "test", "_view_name": "AsyncView"}}
        registry = await build_graph({"w1": record}, model_constructors)
        page = make_page("w1")

        views = coordinator.mount(page, registry)
        assert coordinator.pending == 1

        for _ in range(5):
            await asyncio.sleep(0)

        assert coordinator.pending == 0
        assert views[0].el.text_content == "later"

    @pytest.mark.asyncio
    async def test_settle_waits_for_renders(self, model_constructors, view_constructors, coordinator, diagnostics):
        view_constructors.register("test", "AsyncView", AsyncView)
        view_constructors.register("test", "FailingAsyncView", FailingAsyncView)
        document = {
            "ok": {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"value": "done", "_view_module": "test", "_view_name": "AsyncView"}},
            "bad": {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"_view_module": "test", "_view_name": "FailingAsyncView"}},
        }
        registry = await build_graph(document, model_constructors)
        page = make_page("ok", "bad")

        views = coordinator.mount(page, registry)
        assert coordinator.pending == 2

        await coordinator.settle()

        assert coordinator.pending == 0
        assert views[0].el.text_content == "done"
        assert len(diagnostics.of_kind("view_failed")) == 1

    @pytest.mark.asyncio
    async def test_settle_with_nothing_pending(self, coordinator):
        await coordinator.settle()
        assert coordinator.pending == 0

    @pytest.mark.asyncio
    async def test_async_render_failure_reported(self, model_constructors, view_constructors, coordinator, diagnostics):
        view_constructors.register("test", "FailingAsyncView", FailingAsyncView)
        record = {"model_name": "LabelModel", "model_module": CONTROLS, "state": {"_view_module": "test", "_view_name": "FailingAsyncView"}}
        registry = await build_graph({"w1": record}, model_constructors)

        coordinator.mount(make_page("w1"), registry)
        for _ in range(5):
            await asyncio.sleep(0)

        reported = diagnostics.of_kind("view_failed")
        assert len(reported) == 1
        assert "late failure" in reported[0].message
