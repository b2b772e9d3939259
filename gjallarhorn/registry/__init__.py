"""Service registry and the status state machine."""

from .registry import ServiceRegistry
from .rwlock import ReadWriteLock
from .state_machine import Transition, apply_check_outcome, apply_reminder, format_downtime, reminder_due

__all__ = [
    "ReadWriteLock",
    "ServiceRegistry",
    "Transition",
    "apply_check_outcome",
    "apply_reminder",
    "format_downtime",
    "reminder_due",
]
