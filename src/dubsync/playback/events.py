"""Track notification channel."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from dubsync.models.track import TrackType

logger = logging.getLogger(__name__)


class TrackEventType(str, Enum):
    """Notifications a media track emits."""

    SOURCE_CHANGED = "source_changed"
    LOADED_METADATA = "loaded_metadata"
    TIME_UPDATE = "time_update"
    ENDED = "ended"
    ERROR = "error"


@dataclass(frozen=True)
class TrackEvent:
    """A single notification from a media track."""

    type: TrackEventType
    track: TrackType
    position: float = 0.0
    duration: float | None = None
    message: str = ""


Listener = Callable[[TrackEvent], None]


class Subscription:
    """Handle for a registered listener. Closing it unsubscribes."""

    def __init__(self, channel: EventChannel, listener: Listener) -> None:
        self._channel = channel
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if self._active:
            self._channel._remove(self._listener)
            self._active = False

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventChannel:
    """Synchronous fan-out of track events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def emit(self, event: TrackEvent) -> None:
        # Listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event", event.type.value)

    def clear(self) -> None:
        self._listeners.clear()

    def _remove(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass
