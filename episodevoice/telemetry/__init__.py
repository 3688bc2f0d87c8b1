"""Telemetry and observability helpers.

This package emits deterministic run events for auditing generation jobs.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]
