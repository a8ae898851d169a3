"""Synchronization of a video and its dub audio."""

from dubsync.sync.drift import DriftCorrector
from dubsync.sync.probe import DurationProbe
from dubsync.sync.rates import compute_rates

__all__ = ["DriftCorrector", "DurationProbe", "compute_rates"]
