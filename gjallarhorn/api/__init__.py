"""HTTP routing layer over the service registry."""

from .app import create_app

__all__ = ["create_app"]
