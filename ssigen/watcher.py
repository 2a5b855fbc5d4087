from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .builder import BuildResult, BuildSession, ChangeKind
from .logging import get_logger
from .paths import is_within_directory, normalize

DEBOUNCE_SECONDS = 0.1

logger = get_logger("watcher")


class ChangeDebouncer:
    """Collapse bursts of events per path and deliver them one at a time."""

    def __init__(
        self,
        callback: Callable[[Path, ChangeKind], None],
        delay: float = DEBOUNCE_SECONDS,
    ) -> None:
        self.callback = callback
        self.delay = delay
        self._pending: Dict[Path, ChangeKind] = {}
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._deliver_lock = threading.Lock()

    def push(self, path: Path, kind: ChangeKind) -> None:
        with self._lock:
            previous = self._pending.get(path)
            if previous is ChangeKind.ADDED and kind is ChangeKind.CHANGED:
                kind = ChangeKind.ADDED
            self._pending[path] = kind
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            pending = self._pending
            self._pending = {}
            self._timer = None
        with self._deliver_lock:
            for path, kind in pending.items():
                self.callback(path, kind)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending.clear()


class SourceEventHandler(FileSystemEventHandler):
    """Translate watchdog events under the source root into debounced changes."""

    def __init__(self, source_root: Path, output_root: Path, debouncer: ChangeDebouncer) -> None:
        super().__init__()
        self.source_root = normalize(source_root)
        self.output_root = normalize(output_root)
        self.debouncer = debouncer

    def _ignored(self, path: Path) -> bool:
        if not is_within_directory(path, self.source_root):
            return True
        if is_within_directory(path, self.output_root):
            return True
        rel = path.relative_to(self.source_root)
        return any(part.startswith(".") for part in rel.parts) or path.name.endswith((".tmp", "~"))

    def _push(self, raw_path: object, kind: ChangeKind) -> None:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode()
        path = normalize(str(raw_path))
        if self._ignored(path):
            return
        logger.debug("File %s: %s", kind.value, path)
        self.debouncer.push(path, kind)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push(event.src_path, ChangeKind.ADDED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push(event.src_path, ChangeKind.CHANGED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push(event.src_path, ChangeKind.REMOVED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._push(event.src_path, ChangeKind.REMOVED)
        self._push(event.dest_path, ChangeKind.ADDED)


class SiteWatcher:
    """Runs incremental builds for a session as source files change."""

    def __init__(
        self,
        session: BuildSession,
        on_build: Optional[Callable[[BuildResult], None]] = None,
        delay: float = DEBOUNCE_SECONDS,
    ) -> None:
        self.session = session
        self.on_build = on_build
        self.debouncer = ChangeDebouncer(self._rebuild, delay)
        self.handler = SourceEventHandler(session.source_root, session.output_root, self.debouncer)
        self._observer: Optional[Observer] = None

    def _rebuild(self, path: Path, kind: ChangeKind) -> None:
        result = self.session.incremental_build(path, kind)
        if result.written or result.removed or result.errors:
            logger.info(
                "Rebuilt after %s %s: %d written, %d removed, %d errors",
                path.name,
                kind.value,
                len(result.written),
                len(result.removed),
                len(result.errors),
            )
        if self.on_build is not None:
            self.on_build(result)

    def start(self) -> "SiteWatcher":
        observer = Observer()
        observer.schedule(self.handler, str(self.session.source_root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes...", self.session.source_root)
        return self

    def stop(self) -> None:
        self.debouncer.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
