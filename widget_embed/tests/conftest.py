"""
Widget Embed test configuration.

Shared fixtures: a collecting diagnostics sink and constructor registries
pre-loaded with the built-in widgets.
"""

import pytest

from widget_embed.diagnostics import CollectingDiagnostics
from widget_embed.registry import ConstructorRegistry
from widget_embed.widgets import register_builtins


@pytest.fixture
def diagnostics():
    return CollectingDiagnostics()


@pytest.fixture
def model_constructors():
    models = ConstructorRegistry()
    register_builtins(models, ConstructorRegistry())
    return models


@pytest.fixture
def view_constructors():
    views = ConstructorRegistry()
    register_builtins(ConstructorRegistry(), views)
    return views
