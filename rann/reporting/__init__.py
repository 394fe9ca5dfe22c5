"""Reporting utilities for RANN."""

from .metrics import JsonlSink

__all__ = ["JsonlSink"]
