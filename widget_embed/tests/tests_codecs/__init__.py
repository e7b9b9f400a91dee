"""Attribute codec tests: dates and model references."""
