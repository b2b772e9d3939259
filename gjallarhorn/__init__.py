"""Gjallarhorn: HTTP uptime monitoring with failure hysteresis and Pushover alerts."""

__version__ = "1.0.0"
