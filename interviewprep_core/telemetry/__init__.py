"""Telemetry helpers."""

from interviewprep_core.telemetry.logging import configure_logging

__all__ = ["configure_logging"]
