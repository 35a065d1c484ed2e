"""Change detection for an imported root.

Event sources deliver an opaque "something changed under this root" signal
on their own threads. ``RescanScheduler`` turns bursts of those signals into
single rescan triggers (trailing-edge debounce) and keeps at most one rescan
in flight; ``ChangeWatcher`` ties one source subscription to one scheduler.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Protocol

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .file_tree_model import ImportSettings, build_tree_watch_signature
from .logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_POLL_SECONDS = 1.0

_STRUCTURAL_EVENT_TYPES = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}
)


class WatchHandle(Protocol):
    def stop(self) -> None: ...


class ChangeEventSource(Protocol):
    """Delivers change signals for a root until the returned handle stops."""

    def watch(self, root: Path, callback: Callable[[], None]) -> WatchHandle: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def start_daemon_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Start a daemon ``threading.Timer`` so pending debounces never block exit."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class RescanPhase(Enum):
    IDLE = "idle"
    PENDING = "pending"
    RESCANNING = "rescanning"


class RescanScheduler:
    """Idle -> Pending(timer) -> Rescanning -> Idle.

    ``notify`` (re)arms the debounce timer, so the trigger fires one quiet
    period after the last event of a burst. While a rescan is in flight,
    notifications only set a flag; ``finished`` then starts exactly one
    follow-up rescan. ``cancel`` invalidates any armed timer, including one
    that already fired and is waiting to run.
    """

    def __init__(
        self,
        on_rescan: Callable[[], None],
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: TimerFactory = start_daemon_timer,
    ) -> None:
        self._on_rescan = on_rescan
        self._debounce_seconds = debounce_seconds
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._phase = RescanPhase.IDLE
        self._timer: TimerHandle | None = None
        self._generation = 0
        self._rerun = False
        self.trigger_count = 0

    @property
    def phase(self) -> RescanPhase:
        with self._lock:
            return self._phase

    @property
    def rerun_requested(self) -> bool:
        with self._lock:
            return self._rerun

    def notify(self) -> None:
        """Record one raw change event."""
        with self._lock:
            if self._phase is RescanPhase.RESCANNING:
                self._rerun = True
                return
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._phase = RescanPhase.PENDING
            self._timer = self._timer_factory(self._debounce_seconds, lambda: self._fire(generation))

    def request_now(self) -> None:
        """Trigger a rescan immediately, still honoring single flight."""
        with self._lock:
            if self._phase is RescanPhase.RESCANNING:
                self._rerun = True
                return
            self._disarm()
            self._phase = RescanPhase.RESCANNING
            self.trigger_count += 1
        self._run()

    def finished(self) -> None:
        """Report that the in-flight rescan completed (or failed)."""
        with self._lock:
            if self._phase is not RescanPhase.RESCANNING:
                return
            if not self._rerun:
                self._phase = RescanPhase.IDLE
                return
            self._rerun = False
            self.trigger_count += 1
        self._run()

    def cancel(self) -> None:
        """Drop any pending trigger and forget an in-flight rescan."""
        with self._lock:
            self._disarm()
            self._phase = RescanPhase.IDLE
            self._rerun = False

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._phase is not RescanPhase.PENDING:
                return
            self._timer = None
            self._phase = RescanPhase.RESCANNING
            self.trigger_count += 1
        self._run()

    def _run(self) -> None:
        try:
            self._on_rescan()
        except Exception:
            logger.exception("Rescan trigger failed")
            self.finished()


class _ForwardingHandler(FileSystemEventHandler):
    """Forward structural events under ``root`` that could affect the tree."""

    def __init__(self, root: Path, callback: Callable[[], None]) -> None:
        super().__init__()
        self._root = root
        self._callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        # Reads done while assembling produce opened/closed events; skip them.
        if event.event_type not in _STRUCTURAL_EVENT_TYPES:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if all(not path or self._is_hidden(os.fsdecode(path)) for path in paths):
            return
        self._callback()

    def _is_hidden(self, raw_path: str) -> bool:
        try:
            relative = Path(raw_path).relative_to(self._root)
        except ValueError:
            return False
        return any(part.startswith(".") for part in relative.parts)


class _ObserverHandle:
    def __init__(self, observer: Observer) -> None:
        self._observer = observer

    def stop(self) -> None:
        self._observer.stop()
        if self._observer.is_alive():
            self._observer.join(timeout=2.0)


class WatchdogEventSource:
    """Native change notifications through a ``watchdog`` observer."""

    def watch(self, root: Path, callback: Callable[[], None]) -> WatchHandle:
        root = root.resolve()
        observer = Observer()
        observer.daemon = True
        observer.schedule(_ForwardingHandler(root, callback), str(root), recursive=True)
        observer.start()
        logger.info("Watching %s via watchdog", root)
        return _ObserverHandle(observer)


class _PollingHandle:
    def __init__(self, thread: threading.Thread, stop_event: threading.Event) -> None:
        self._thread = thread
        self._stop_event = stop_event

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)


class PollingEventSource:
    """Signal changes by comparing tree watch signatures on an interval."""

    def __init__(
        self,
        *,
        interval_seconds: float = DEFAULT_POLL_SECONDS,
        settings: ImportSettings | None = None,
        build_signature: Callable[[Path, ImportSettings | None], str] = build_tree_watch_signature,
    ) -> None:
        self._interval_seconds = interval_seconds
        self._settings = settings
        self._build_signature = build_signature

    def watch(self, root: Path, callback: Callable[[], None]) -> WatchHandle:
        root = root.resolve()
        stop_event = threading.Event()
        baseline = self._build_signature(root, self._settings)

        def poll() -> None:
            signature = baseline
            while not stop_event.wait(self._interval_seconds):
                latest = self._build_signature(root, self._settings)
                if latest == signature:
                    continue
                signature = latest
                logger.debug("Polling detected change under %s", root)
                callback()

        thread = threading.Thread(target=poll, name="promptor-poll-watch", daemon=True)
        thread.start()
        logger.info("Watching %s by polling every %.2fs", root, self._interval_seconds)
        return _PollingHandle(thread, stop_event)


class ChangeWatcher:
    """One root subscription plus the scheduler that debounces it.

    ``on_stale`` runs on whichever thread fires the trigger (timer thread,
    event-source thread, or the caller of ``request_now``); it must only hand
    work to the owner, never mutate owner state directly.
    """

    def __init__(
        self,
        source: ChangeEventSource | None,
        on_stale: Callable[[], None],
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: TimerFactory = start_daemon_timer,
    ) -> None:
        self._source = source
        self.scheduler = RescanScheduler(
            on_stale,
            debounce_seconds=debounce_seconds,
            timer_factory=timer_factory,
        )
        self._handle: WatchHandle | None = None
        self.root: Path | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, root: Path) -> None:
        """Watch ``root``, replacing any previous subscription."""
        if root == self.root and (self._handle is not None or self._source is None):
            return
        self.stop()
        self.root = root
        if self._source is None:
            return
        try:
            self._handle = self._source.watch(root, self.scheduler.notify)
        except OSError as exc:
            logger.warning("Cannot watch %s: %s", root, exc)
            self._handle = None

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.stop()
        self._handle = None
        self.root = None
        self.scheduler.cancel()

    def request_now(self) -> None:
        self.scheduler.request_now()

    def rescan_finished(self) -> None:
        self.scheduler.finished()


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_POLL_SECONDS",
    "WatchHandle",
    "ChangeEventSource",
    "TimerHandle",
    "TimerFactory",
    "start_daemon_timer",
    "RescanPhase",
    "RescanScheduler",
    "WatchdogEventSource",
    "PollingEventSource",
    "ChangeWatcher",
]
