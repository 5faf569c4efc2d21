"""Interval scheduling of router ticks."""

from .poller import IntervalPoller

__all__ = ["IntervalPoller"]
