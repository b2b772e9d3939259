"""Outbound alerting."""

from .base import AlertSink, NotificationSettings
from .pushover import PushoverNotifier

__all__ = ["AlertSink", "NotificationSettings", "PushoverNotifier"]
