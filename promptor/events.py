"""Notifications emitted by the aggregator for the presentation layer."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .logging_setup import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessError:
    path: Path
    message: str


@dataclass(frozen=True)
class ReadError:
    """A selected file could not be read while assembling."""

    path: Path
    relative_path: str
    message: str


@dataclass(frozen=True)
class ScanWarningEvent:
    path: Path
    message: str


@dataclass(frozen=True)
class RescanStarted:
    root: Path


@dataclass(frozen=True)
class RescanFinished:
    root: Path
    ok: bool
    file_count: int = 0


AggregatorEvent = AccessError | ReadError | ScanWarningEvent | RescanStarted | RescanFinished
EventListener = Callable[[AggregatorEvent], None]


class EventBus:
    """Synchronous fan-out of aggregator events to subscribed listeners.

    Listener failures are logged and do not interrupt delivery to the
    remaining listeners or the operation that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: AggregatorEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", type(event).__name__)


__all__ = [
    "AccessError",
    "ReadError",
    "ScanWarningEvent",
    "RescanStarted",
    "RescanFinished",
    "AggregatorEvent",
    "EventListener",
    "EventBus",
]
