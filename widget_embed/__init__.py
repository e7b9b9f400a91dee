"""
Widget Embed — rebuild and mount embedded Jupyter widgets without a kernel.

Components:
  validation  — schema checks for widget-state / widget-view documents
  codecs      — per-attribute wire codecs (dates, model references)
  graph       — state document → ModelRegistry (async, per-id isolation)
  mount       — view markers → mounted views in the document tree
  bootstrap   — page-scoped EmbedContext tying it all together
"""

__version__ = "0.1.0"

from widget_embed.bootstrap import EmbedContext, parse_state_text, render_page
from widget_embed.codecs import DATE_CODEC, REFERENCE_CODEC, AttributeCodec, deserialize_date, serialize_date
from widget_embed.diagnostics import CollectingDiagnostics, Diagnostic, LoggingDiagnostics
from widget_embed.graph import ModelGraphBuilder, ModelRegistry, build_graph
from widget_embed.mount import ViewMountCoordinator
from widget_embed.registry import ConstructorRegistry
from widget_embed.types import ABSENT, ModelRef, UnknownConstructor
from widget_embed.validation import SchemaValidator, validate

__all__ = [
    "__version__",
    "ABSENT",
    "AttributeCodec",
    "CollectingDiagnostics",
    "ConstructorRegistry",
    "DATE_CODEC",
    "Diagnostic",
    "EmbedContext",
    "LoggingDiagnostics",
    "ModelGraphBuilder",
    "ModelRef",
    "ModelRegistry",
    "REFERENCE_CODEC",
    "SchemaValidator",
    "UnknownConstructor",
    "ViewMountCoordinator",
    "build_graph",
    "deserialize_date",
    "parse_state_text",
    "render_page",
    "serialize_date",
    "validate",
]
