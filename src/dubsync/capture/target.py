"""Exclusive ownership of an export output target."""

from __future__ import annotations

import logging
from collections.abc import Callable

from dubsync.errors import CaptureInProgressError

logger = logging.getLogger(__name__)

CaptureListener = Callable[[bool], None]


class CaptureTarget:
    """Output target that at most one capture session may hold at a time.

    A second claim while the target is held is rejected, not queued. The
    playback controller consults ``is_capturing`` to stay out of the way of
    an export running on the same tracks, and listens for hold changes
    because the export takes over its transport.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._owner: object | None = None
        self._listeners: list[CaptureListener] = []

    @property
    def is_capturing(self) -> bool:
        return self._owner is not None

    def held_by(self, owner: object) -> bool:
        return self._owner is owner

    def add_listener(self, listener: CaptureListener) -> None:
        """Call *listener* with ``is_capturing`` whenever the hold changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: CaptureListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def acquire(self, owner: object) -> None:
        if self._owner is owner:
            return
        if self._owner is not None:
            raise CaptureInProgressError(f"capture already running for {self.name}")
        self._owner = owner
        logger.debug("Capture target %s acquired", self.name)
        self._notify()

    def release(self, owner: object) -> None:
        if self._owner is owner:
            self._owner = None
            logger.debug("Capture target %s released", self.name)
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.is_capturing)


class CaptureTargetRegistry:
    """Process-local lookup of capture targets by name."""

    def __init__(self) -> None:
        self._targets: dict[str, CaptureTarget] = {}

    def get(self, name: str) -> CaptureTarget:
        target = self._targets.get(name)
        if target is None:
            target = CaptureTarget(name)
            self._targets[name] = target
        return target

    def active(self) -> list[str]:
        return [name for name, t in self._targets.items() if t.is_capturing]
