"""Exception types raised by the monitoring core."""

from __future__ import annotations

from typing import Iterable


class GjallarhornError(Exception):
    """Base class for all monitoring errors."""


class NotFoundError(GjallarhornError):
    """One or more referenced service ids do not exist."""

    def __init__(self, missing_ids: Iterable[str]):
        self.missing_ids = list(missing_ids)
        if len(self.missing_ids) == 1:
            message = f"service not found: {self.missing_ids[0]}"
        else:
            message = f"services not found: {', '.join(self.missing_ids)}"
        super().__init__(message)


class PersistenceError(GjallarhornError):
    """The backing store could not be read or written."""


class ProbeError(GjallarhornError):
    """A health check failed; folded into the failed classification."""


class AlertDeliveryError(GjallarhornError):
    """An outbound notification could not be delivered."""
