"""Scheduling of health checks and outage reminders."""

from .job_scheduler import MonitorScheduler
from .probe import HttpProber, build_probe_headers, is_healthy_status

__all__ = ["HttpProber", "MonitorScheduler", "build_probe_headers", "is_healthy_status"]
