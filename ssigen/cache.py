from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import FileSystemError
from .paths import normalize

SKIP_DIRS = {"node_modules", "__pycache__"}


def scan_source(root: Path, exclude: Optional[Path] = None) -> List[Path]:
    """List source files under ``root``, skipping hidden entries and ``exclude``."""
    root = normalize(root)
    excluded = normalize(exclude) if exclude is not None else None
    files: List[Path] = []
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise FileSystemError("scan", directory, exc) from exc
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                if entry.name in SKIP_DIRS or entry == excluded:
                    continue
                stack.append(entry)
            elif entry.is_file():
                files.append(entry)
    return sorted(files, key=lambda p: p.as_posix())


def _mtime(path: Path) -> Optional[int]:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


class ModificationCache:
    """Last-seen modification times for one build session."""

    def __init__(self) -> None:
        self._mtimes: Dict[Path, int] = {}

    def initialize(self, paths: Iterable[Path]) -> None:
        self.clear()
        for path in paths:
            self.record(path)

    def clear(self) -> None:
        self._mtimes.clear()

    def record(self, path: Path) -> None:
        value = _mtime(path)
        if value is None:
            self._mtimes.pop(path, None)
        else:
            self._mtimes[path] = value

    def forget(self, path: Path) -> None:
        self._mtimes.pop(path, None)

    def changed_files(self, paths: Iterable[Path]) -> List[Path]:
        changed = []
        for path in paths:
            value = _mtime(path)
            if value is None:
                continue
            previous = self._mtimes.get(path)
            if previous is None or value > previous:
                changed.append(path)
        return changed

    def removed_files(self, paths: Iterable[Path]) -> List[Path]:
        present = set(paths)
        return sorted(path for path in self._mtimes if path not in present)

    def get(self, path: Path) -> Optional[int]:
        return self._mtimes.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._mtimes

    def __len__(self) -> int:
        return len(self._mtimes)
