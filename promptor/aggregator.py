"""Import, rescan, and assembly orchestration for one import root.

The aggregator is single-owner: every public method must be called from the
same thread. Scans may run on a worker thread, but their results are only
queued there; the owner installs them in ``process_pending``. Each queued
result carries the generation it was started under, and any import of a new
root or ``remove_all`` bumps the generation so late results are dropped.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from queue import Empty, Queue

from .access import BookmarkStore, LocalResourceAccessor, MemoryBookmarkStore, ResourceAccessor, file_access
from .errors import AccessDenied, ReadFailure, StaleBookmark
from .events import AccessError, EventBus, ReadError, RescanFinished, RescanStarted, ScanWarningEvent
from .file_tree_model import ImportSettings, Node, NodeId, TreeBuildResult, build_file_tree
from .logging_setup import get_logger
from .selection import SelectionModel
from .templates import DEFAULT_TEMPLATE, Template, TemplateRegistry
from .watch import DEFAULT_DEBOUNCE_SECONDS, ChangeEventSource, ChangeWatcher, TimerFactory, start_daemon_timer

logger = get_logger(__name__)

READ_ERROR_PLACEHOLDER = "Error reading file. Please check permissions or try selecting the folder again."
ACCESS_ERROR_PLACEHOLDER = "Error: Permission issue. Please re-select the folder."
ACCESS_ERROR_OUTPUT = "Error: Cannot access the selected folder. Please check permissions."


class AggregatorPhase(Enum):
    EMPTY = "empty"
    IMPORTING = "importing"
    READY = "ready"
    RESCANNING = "rescanning"


@dataclass(frozen=True)
class _ScanStarted:
    generation: int
    root: Path


@dataclass(frozen=True)
class _ScanOutcome:
    generation: int
    root: Path
    result: TreeBuildResult | None
    error: Exception | None
    scheduled: bool


def read_file_text(path: Path) -> str:
    """Read ``path`` as UTF-8 without newline translation.

    Raises ``ReadFailure`` for I/O errors and undecodable content.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ReadFailure(path, exc.strerror or str(exc)) from exc
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ReadFailure(path, "not valid UTF-8 text") from exc


def fence_block(relative_path: str, content: str) -> str:
    return f"```{relative_path}\n{content}\n```"


class Aggregator:
    """Owns the tree snapshot, selection state, watcher, and assembled output."""

    def __init__(
        self,
        *,
        settings: ImportSettings | None = None,
        accessor: ResourceAccessor | None = None,
        bookmarks: BookmarkStore | None = None,
        event_source: ChangeEventSource | None = None,
        templates: TemplateRegistry | None = None,
        template_name: str | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: TimerFactory = start_daemon_timer,
        executor: Executor | None = None,
    ) -> None:
        self.settings = settings or ImportSettings()
        self.accessor: ResourceAccessor = accessor or LocalResourceAccessor()
        self.bookmarks: BookmarkStore = bookmarks or MemoryBookmarkStore()
        self.templates = templates or TemplateRegistry()
        self.template: Template = DEFAULT_TEMPLATE
        if template_name is not None and template_name in self.templates:
            self.template = self.templates.get(template_name)
        self.events = EventBus()
        self.model = SelectionModel()
        self.output = ""
        self.root_path: Path | None = None
        self._phase = AggregatorPhase.EMPTY
        self._content_cache: dict[NodeId, str] = {}
        self._lock = threading.Lock()
        self._generation = 0
        self._requested_root: Path | None = None
        self._closed = False
        self._results: Queue[_ScanStarted | _ScanOutcome] = Queue()
        self._executor = executor
        self._owns_executor = executor is None
        self._watcher = ChangeWatcher(
            event_source,
            self._on_stale,
            debounce_seconds=debounce_seconds,
            timer_factory=timer_factory,
        )

    def __enter__(self) -> Aggregator:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    @property
    def phase(self) -> AggregatorPhase:
        return self._phase

    @property
    def snapshot(self) -> Node | None:
        return self.model.root

    @property
    def selection(self) -> frozenset[NodeId]:
        return self.model.selection

    @property
    def expansion(self) -> frozenset[NodeId]:
        return self.model.expansion

    @property
    def watcher(self) -> ChangeWatcher:
        return self._watcher

    # -- import / rescan -------------------------------------------------

    def import_root(self, root: Path) -> TreeBuildResult:
        """Scan ``root`` synchronously and install the result.

        Selection and expansion of a previously installed tree carry over by
        id. Raises ``AccessDenied`` when access cannot be acquired; existing
        state is left untouched in that case.
        """
        root = Path(root)
        generation = self._supersede(root)
        self._begin(root)
        try:
            result = build_file_tree(root, self.settings, accessor=self.accessor, bookmarks=self.bookmarks)
        except AccessDenied as exc:
            self._fail(root, exc)
            raise
        self._install(root, result)
        logger.debug("Installed synchronous scan of %s (generation %d)", root, generation)
        return result

    def rescan(self) -> TreeBuildResult | None:
        """Re-import the current root, preserving selection and expansion."""
        if self.root_path is None:
            return None
        return self.import_root(self.root_path)

    def import_root_async(self, root: Path) -> Future[TreeBuildResult]:
        """Scan ``root`` on a worker; install on the next ``process_pending``."""
        root = Path(root)
        generation = self._supersede(root)
        if not self._watches(root):
            self._watcher.stop()
        self._begin(root)
        return self._submit_scan(root, generation, self.settings, scheduled=False)

    def request_rescan(self) -> None:
        """Ask for a background rescan through the single-flight scheduler."""
        with self._lock:
            root = self._requested_root or self.root_path
        if root is None:
            return
        self._watcher.request_now()

    def process_pending(self, timeout: float | None = None) -> int:
        """Install queued scan results on the owner thread.

        With ``timeout`` the call waits that long for the first result.
        Returns the number of snapshots installed.
        """
        installed = 0
        block = timeout is not None
        while True:
            try:
                item = self._results.get(timeout=timeout) if block else self._results.get_nowait()
            except Empty:
                return installed
            block = False
            installed += self._apply(item)

    def remove_all(self) -> None:
        """Drop the root, tree, selection, expansion, and output."""
        self._supersede()
        self._watcher.stop()
        with self._lock:
            self.root_path = None
            self._requested_root = None
        self.model.install(None)
        self._content_cache.clear()
        self.output = ""
        self._phase = AggregatorPhase.EMPTY

    def restore_last_root(self) -> TreeBuildResult | None:
        """Re-import the folder recorded by the stored bookmark, if any."""
        blob = self.bookmarks.load()
        if blob is None:
            return None
        try:
            path, is_stale = self.accessor.resolve(blob)
        except (ValueError, OSError) as exc:
            logger.warning("Failed to resolve stored bookmark: %s", exc)
            self.bookmarks.clear()
            return None
        if is_stale:
            self.bookmarks.clear()
            error = StaleBookmark(path)
            self.events.emit(AccessError(path, str(error)))
            raise error
        return self.import_root(path)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self.remove_all()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    # -- selection ------------------------------------------------------

    def toggle(self, node_id: NodeId) -> str:
        self.model.toggle(node_id)
        return self.assemble()

    def set_recursive(self, node_id: NodeId, select: bool) -> str:
        self.model.set_recursive(node_id, select)
        return self.assemble()

    def select_paths(self, relative_paths: Iterable[str], select: bool = True) -> list[str]:
        """Select nodes by ``relative_path`` and return the unknown paths.

        Directories are selected recursively. The output is reassembled once.
        """
        by_relative = {node.relative_path: node for node in self.model.index.nodes}
        unknown: list[str] = []
        for raw in relative_paths:
            key = raw.strip().strip("/")
            node = by_relative.get(key)
            if node is None:
                unknown.append(raw)
                continue
            self.model.set_recursive(node.id, select)
        self.assemble()
        return unknown

    def clear_all(self) -> str:
        self.model.clear_all()
        return self.assemble()

    def toggle_expansion(self, node_id: NodeId) -> bool:
        return self.model.toggle_expansion(node_id)

    def toggle_all_expansion(self) -> bool:
        return self.model.toggle_all_expansion()

    def counts(self, node_id: NodeId) -> tuple[int, int]:
        return self.model.counts(node_id)

    # -- configuration --------------------------------------------------

    def set_template(self, name: str) -> str:
        """Switch templates by name; raises ``KeyError`` for unknown names."""
        self.template = self.templates.get(name)
        return self.assemble()

    def set_settings(self, settings: ImportSettings) -> None:
        """Replace import settings. Call ``rescan`` to apply them."""
        with self._lock:
            self.settings = settings

    # -- assembly -------------------------------------------------------

    def assemble(self) -> str:
        """Render every selected file, freshly read, through the template."""
        chunks: list[str] = []
        contents: dict[NodeId, str] = {}
        for node in self.model.selected_files():
            content = self._load_content(node)
            contents[node.id] = content
            chunks.append(fence_block(node.relative_path, content))
        self._content_cache = contents
        self.output = self.template.render("\n\n".join(chunks))
        return self.output

    def reload_content_only(self) -> str:
        """Forget cached content for every file and reassemble."""
        self._content_cache.clear()
        return self.assemble()

    def content_for(self, node_id: NodeId) -> str:
        """Content of a file as last assembled, loading it when not cached."""
        if node_id in self._content_cache:
            return self._content_cache[node_id]
        node = self.model.node(node_id)
        content = self._load_content(node)
        self._content_cache[node_id] = content
        return content

    def token_estimate(self) -> int:
        """Rough token count of ``output`` at four characters per token."""
        return int(len(self.output) / 4 + 0.5)

    # -- internals ------------------------------------------------------

    def _supersede(self, root: Path | None = None) -> int:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._requested_root = root
        self._watcher.scheduler.cancel()
        return generation

    def _watches(self, root: Path) -> bool:
        watched = self._watcher.root
        if watched is None:
            return False
        try:
            return root.resolve() == watched
        except OSError:
            return False

    def _begin(self, root: Path) -> None:
        if self.model.root is not None:
            self._phase = AggregatorPhase.RESCANNING
        else:
            self._phase = AggregatorPhase.IMPORTING
        self.events.emit(RescanStarted(root))

    def _settle_phase(self) -> None:
        self._phase = AggregatorPhase.READY if self.model.root is not None else AggregatorPhase.EMPTY

    def _fail(self, root: Path, error: Exception) -> None:
        if isinstance(error, AccessDenied):
            logger.warning("%s", error)
            self.events.emit(AccessError(error.path, str(error)))
            if self.model.root is None:
                self.output = ACCESS_ERROR_OUTPUT
        else:
            logger.error("Scan of %s failed: %s", root, error)
        self._settle_phase()
        self.events.emit(RescanFinished(root, ok=False))

    def _install(self, root: Path, result: TreeBuildResult) -> bool:
        if result.root is None:
            logger.warning("Import of %s failed: %s", root, result.error)
            self._settle_phase()
            self.events.emit(RescanFinished(root, ok=False))
            return False

        self.model.install(
            result.root,
            selection=self.model.selection,
            expansion=self.model.expansion,
        )
        with self._lock:
            self.root_path = result.root.path
        self._content_cache.clear()
        for warning in result.warnings:
            self.events.emit(ScanWarningEvent(warning.path, warning.message()))
        self._remember_root(result.root.path)
        self._watcher.start(result.root.path)
        self._phase = AggregatorPhase.READY
        self.assemble()
        self.events.emit(
            RescanFinished(result.root.path, ok=True, file_count=len(self.model.file_nodes()))
        )
        return True

    def _remember_root(self, root: Path) -> None:
        try:
            self.bookmarks.save(self.accessor.serialize(root))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to store bookmark for %s: %s", root, exc)

    def _load_content(self, node: Node) -> str:
        root = self.root_path or node.path.parent
        try:
            with file_access(self.accessor, node.path, root, self.bookmarks):
                return read_file_text(node.path)
        except AccessDenied as exc:
            logger.warning("Cannot access %s: %s", node.path, exc)
            self.events.emit(
                AccessError(exc.path, "Failed to access the selected folder. You may need to re-select it.")
            )
            return ACCESS_ERROR_PLACEHOLDER
        except ReadFailure as exc:
            logger.warning("Error reading file %s: %s", node.path, exc.reason)
            self.events.emit(ReadError(node.path, node.relative_path, str(exc)))
            return READ_ERROR_PLACEHOLDER

    def _scan_executor(self) -> Executor:
        if self._closed:
            raise RuntimeError("aggregator is closed")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="promptor-scan")
        return self._executor

    def _submit_scan(
        self,
        root: Path,
        generation: int,
        settings: ImportSettings,
        *,
        scheduled: bool,
    ) -> Future[TreeBuildResult]:
        return self._scan_executor().submit(self._scan, root, generation, settings, scheduled)

    def _scan(self, root: Path, generation: int, settings: ImportSettings, scheduled: bool) -> TreeBuildResult:
        """Worker-side scan; only touches the result queue."""
        try:
            result = build_file_tree(root, settings, accessor=self.accessor, bookmarks=self.bookmarks)
        except Exception as exc:
            self._results.put(_ScanOutcome(generation, root, None, exc, scheduled))
            raise
        self._results.put(_ScanOutcome(generation, root, result, None, scheduled))
        return result

    def _on_stale(self) -> None:
        """Scheduler trigger; may run on a timer or event-source thread."""
        with self._lock:
            if self._closed:
                return
            root = self._requested_root or self.root_path
            generation = self._generation
            settings = self.settings
        if root is None:
            self._watcher.rescan_finished()
            return
        self._results.put(_ScanStarted(generation, root))
        self._submit_scan(root, generation, settings, scheduled=True)

    def _apply(self, item: _ScanStarted | _ScanOutcome) -> int:
        with self._lock:
            same_generation = item.generation == self._generation
            requested = self._requested_root
        if not same_generation or (requested is not None and item.root != requested):
            logger.debug("Discarding stale scan result for %s", item.root)
            if same_generation and isinstance(item, _ScanOutcome) and item.scheduled:
                self._watcher.rescan_finished()
            return 0
        if isinstance(item, _ScanStarted):
            self._begin(item.root)
            return 0
        try:
            if item.result is None:
                self._fail(item.root, item.error or RuntimeError("scan produced no result"))
                return 0
            return 1 if self._install(item.root, item.result) else 0
        finally:
            if item.scheduled:
                self._watcher.rescan_finished()


__all__ = [
    "READ_ERROR_PLACEHOLDER",
    "ACCESS_ERROR_PLACEHOLDER",
    "ACCESS_ERROR_OUTPUT",
    "AggregatorPhase",
    "Aggregator",
    "read_file_text",
    "fence_block",
]
