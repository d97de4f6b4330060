"""Coding assistant agent loop with schema-validated tool dispatch."""

__version__ = "0.1.0"
