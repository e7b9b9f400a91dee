"""Schema validation tests for widget-state and widget-view documents."""
