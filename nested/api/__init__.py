"""HTTP API."""

from nested.api.main import create_app

__all__ = ["create_app"]
