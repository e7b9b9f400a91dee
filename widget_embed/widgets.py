"""
Widget Embed — Models and Views

Model: the data half of a widget, a named bag of attributes rebuilt from
serialized state. Attributes listed in a class's `serializers` table are
decoded through that codec. Reference attributes hold ModelRef keys and are
resolved through the registry on every access, so models never hold each
other directly and cycles between them are harmless.

View: the rendering half, bound to one model and one mount anchor. The
built-in views render a chevron (mustache) template of the model state.
They are deliberately plain: styling and interaction belong to the page.
"""

from __future__ import annotations

import inspect
from datetime import datetime
from typing import TYPE_CHECKING, Any

import chevron

from widget_embed.codecs import DATE_CODEC, REFERENCE_CODEC, AttributeCodec, iter_refs
from widget_embed.dom import Element, create_element
from widget_embed.types import ABSENT, ModelRef

if TYPE_CHECKING:
    from widget_embed.graph import ModelRegistry
    from widget_embed.registry import ConstructorRegistry

BASE_MODULE = "@jupyter-widgets/base"
CONTROLS_MODULE = "@jupyter-widgets/controls"
LEGACY_MODULE = "jupyter-js-widgets"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class WidgetModel:
    """Base model. Holds decoded attributes and resolves references lazily."""

    serializers: dict[str, AttributeCodec] = {}
    defaults: dict[str, Any] = {
        "_model_name": "WidgetModel",
        "_model_module": BASE_MODULE,
        "_view_name": None,
        "_view_module": None,
    }

    def __init__(
        self,
        model_id: str,
        registry: ModelRegistry | None = None,
        *,
        model_name: str | None = None,
        model_module: str | None = None,
        model_module_version: str = "*",
    ) -> None:
        self.model_id = model_id
        self.model_name = model_name or self.defaults.get("_model_name")
        self.model_module = model_module or self.defaults.get("_model_module")
        self.model_module_version = model_module_version
        self._registry = registry
        self._attributes: dict[str, Any] = dict(self.defaults)

    async def set_state(self, state: dict[str, Any]) -> None:
        """Decode wire state into attributes. Deserializers may be async."""
        for name, raw in state.items():
            codec = self.serializers.get(name)
            value = raw if codec is None else codec.deserialize(raw)
            if inspect.isawaitable(value):
                value = await value
            self._attributes[name] = value

    def get_state(self) -> dict[str, Any]:
        """Encode attributes back to wire form through the same codecs."""
        state: dict[str, Any] = {}
        for name, value in self._attributes.items():
            codec = self.serializers.get(name)
            state[name] = value if codec is None else codec.serialize(value)
        return state

    def get(self, name: str, default: Any = None) -> Any:
        """Attribute value with references resolved to live models (or ABSENT)."""
        if name not in self._attributes:
            return default
        return self._resolve(self._attributes[name])

    def get_raw(self, name: str, default: Any = None) -> Any:
        """Attribute value as stored, with references left as ModelRef keys."""
        return self._attributes.get(name, default)

    def keys(self) -> list[str]:
        return list(self._attributes)

    def refs(self) -> list[ModelRef]:
        """Every reference key held by this model."""
        return [ref for value in self._attributes.values() for ref in iter_refs(value)]

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, ModelRef):
            if self._registry is None:
                return ABSENT
            model = self._registry.get(value.model_id)
            return ABSENT if model is None else model
        if isinstance(value, list):
            return [self._resolve(v) for v in value]
        if isinstance(value, dict):
            return {k: self._resolve(v) for k, v in value.items()}
        return value

    @property
    def view_name(self) -> str | None:
        return self._attributes.get("_view_name")

    @property
    def view_module(self) -> str | None:
        return self._attributes.get("_view_module")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.model_id}>"


class DOMWidgetModel(WidgetModel):
    serializers = {
        **WidgetModel.serializers,
        "layout": REFERENCE_CODEC,
        "style": REFERENCE_CODEC,
    }
    defaults = {
        **WidgetModel.defaults,
        "_model_name": "DOMWidgetModel",
        "_view_name": "DOMWidgetView",
        "_view_module": BASE_MODULE,
        "_dom_classes": [],
    }


class LayoutModel(WidgetModel):
    defaults = {
        **WidgetModel.defaults,
        "_model_name": "LayoutModel",
        "_view_name": "LayoutView",
        "_view_module": BASE_MODULE,
    }


class StyleModel(WidgetModel):
    defaults = {
        **WidgetModel.defaults,
        "_model_name": "StyleModel",
        "_view_name": "StyleView",
        "_view_module": BASE_MODULE,
    }


class DescriptionStyleModel(StyleModel):
    defaults = {**StyleModel.defaults, "_model_name": "DescriptionStyleModel", "_model_module": CONTROLS_MODULE}


class BoxModel(DOMWidgetModel):
    serializers = {**DOMWidgetModel.serializers, "children": REFERENCE_CODEC}
    defaults = {
        **DOMWidgetModel.defaults,
        "_model_name": "BoxModel",
        "_model_module": CONTROLS_MODULE,
        "_view_name": "BoxView",
        "_view_module": CONTROLS_MODULE,
        "children": [],
        "box_style": "",
    }


class HBoxModel(BoxModel):
    defaults = {**BoxModel.defaults, "_model_name": "HBoxModel", "_view_name": "HBoxView"}


class VBoxModel(BoxModel):
    defaults = {**BoxModel.defaults, "_model_name": "VBoxModel", "_view_name": "VBoxView"}


class LabelModel(DOMWidgetModel):
    defaults = {
        **DOMWidgetModel.defaults,
        "_model_name": "LabelModel",
        "_model_module": CONTROLS_MODULE,
        "_view_name": "LabelView",
        "_view_module": CONTROLS_MODULE,
        "value": "",
        "description": "",
    }


class HTMLModel(LabelModel):
    defaults = {**LabelModel.defaults, "_model_name": "HTMLModel", "_view_name": "HTMLView"}


class IntSliderModel(DOMWidgetModel):
    defaults = {
        **DOMWidgetModel.defaults,
        "_model_name": "IntSliderModel",
        "_model_module": CONTROLS_MODULE,
        "_view_name": "IntSliderView",
        "_view_module": CONTROLS_MODULE,
        "value": 0,
        "min": 0,
        "max": 100,
        "step": 1,
        "description": "",
    }


class DatePickerModel(DOMWidgetModel):
    serializers = {**DOMWidgetModel.serializers, "value": DATE_CODEC}
    defaults = {
        **DOMWidgetModel.defaults,
        "_model_name": "DatePickerModel",
        "_model_module": CONTROLS_MODULE,
        "_view_name": "DatePickerView",
        "_view_module": CONTROLS_MODULE,
        "value": None,
        "description": "",
        "disabled": False,
    }


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class WidgetView:
    """Base view: bound to a model and the element it renders into."""

    def __init__(
        self,
        model: WidgetModel,
        el: Element,
        manager: Any = None,
        parent: WidgetView | None = None,
    ) -> None:
        self.model = model
        self.el = el
        self.manager = manager
        self.parent = parent

    @property
    def ancestry(self) -> set[str]:
        """Model ids of this view and every view above it."""
        ids = {self.model.model_id}
        view = self.parent
        while view is not None:
            ids.add(view.model.model_id)
            view = view.parent
        return ids

    def render(self) -> Any:
        """Draw into self.el. The base view draws nothing."""
        return None


class DOMWidgetView(WidgetView):
    template = '<div class="widget-inline">{{description}}</div>'
    css_class = "widget-dom"

    def context(self) -> dict[str, Any]:
        """Plain (non-reference) attributes, for the template."""
        return {
            name: self.model.get(name)
            for name in self.model.keys()
            if not name.startswith("_") and isinstance(self.model.get_raw(name), (str, int, float, bool, type(None)))
        }

    def render(self) -> Any:
        self.el.add_class("jupyter-widgets")
        self.el.add_class(self.css_class)
        for name in self.model.get("_dom_classes") or []:
            self.el.add_class(name)
        self.el.inner_html = chevron.render(self.template, self.context())
        return None


class LabelView(DOMWidgetView):
    template = '<div class="widget-label">{{value}}</div>'
    css_class = "widget-label-basic"


class HTMLView(DOMWidgetView):
    # value is trusted HTML authored in the kernel session
    template = '<div class="widget-html-content">{{{value}}}</div>'
    css_class = "widget-html"


class IntSliderView(DOMWidgetView):
    template = (
        '<label class="widget-label">{{description}}</label>'
        '<input type="range" min="{{min}}" max="{{max}}" step="{{step}}" value="{{value}}">'
        '<div class="widget-readout">{{value}}</div>'
    )
    css_class = "widget-slider"


class DatePickerView(DOMWidgetView):
    template = (
        '<label class="widget-label">{{description}}</label>'
        '<input type="date" class="widget-input"{{#has_value}} value="{{iso}}"{{/has_value}}'
        '{{#disabled}} disabled{{/disabled}}>'
    )
    css_class = "widget-datepicker"

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        value = self.model.get("value")
        ctx["has_value"] = isinstance(value, datetime)
        ctx["iso"] = value.date().isoformat() if isinstance(value, datetime) else ""
        return ctx


class BoxView(DOMWidgetView):
    css_class = "widget-box"

    def render(self) -> Any:
        self.el.add_class("jupyter-widgets")
        self.el.add_class(self.css_class)
        self.el.clear()
        if self.manager is None:
            return None

        ancestry = self.ancestry
        for child in self.model.get("children") or []:
            if not isinstance(child, WidgetModel) or child.model_id in ancestry:
                continue
            child_el = create_element("div", {"class": "widget-child"})
            view = self.manager.create_view(child, child_el, parent=self)
            if view is not None:
                self.el.append_child(child_el)
        return None


class HBoxView(BoxView):
    css_class = "widget-hbox"


class VBoxView(BoxView):
    css_class = "widget-vbox"


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

BUILTIN_MODELS: dict[str, list[type[WidgetModel]]] = {
    BASE_MODULE: [WidgetModel, DOMWidgetModel, LayoutModel, StyleModel],
    CONTROLS_MODULE: [
        DescriptionStyleModel,
        BoxModel,
        HBoxModel,
        VBoxModel,
        LabelModel,
        HTMLModel,
        IntSliderModel,
        DatePickerModel,
    ],
}

BUILTIN_VIEWS: dict[str, list[type[WidgetView]]] = {
    BASE_MODULE: [WidgetView, DOMWidgetView],
    CONTROLS_MODULE: [BoxView, HBoxView, VBoxView, LabelView, HTMLView, IntSliderView, DatePickerView],
}

# Layout and style models have no visible view
_NULL_VIEWS = ("LayoutView", "StyleView")


def register_builtins(models: ConstructorRegistry, views: ConstructorRegistry) -> None:
    """Register the built-in widgets under their module and the legacy module name."""
    for module, classes in BUILTIN_MODELS.items():
        for cls in classes:
            models.register(module, cls.__name__, cls)
            models.register(LEGACY_MODULE, cls.__name__, cls)

    for module, view_classes in BUILTIN_VIEWS.items():
        for view_cls in view_classes:
            views.register(module, view_cls.__name__, view_cls)
            views.register(LEGACY_MODULE, view_cls.__name__, view_cls)

    for name in _NULL_VIEWS:
        views.register(BASE_MODULE, name, WidgetView)
        views.register(LEGACY_MODULE, name, WidgetView)
