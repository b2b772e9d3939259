"""Persistence for service records and notification config."""

from .json_store import JsonStore

__all__ = ["JsonStore"]
