"""Nested: persistence core for the university project-matching app."""

__version__ = "0.1.0"
