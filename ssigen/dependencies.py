from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from .includes import extract_include_dependencies
from .logging import get_logger

logger = get_logger("dependencies")


class DependencyTracker:
    """Bidirectional include graph used to pick pages for selective rebuilds.

    ``includes_in_page`` maps a file to the files it includes directly and
    ``pages_by_include`` is its exact inverse. Both are only mutated through
    ``record_dependencies`` and ``remove_file``.
    """

    def __init__(self) -> None:
        self.includes_in_page: Dict[Path, Set[Path]] = {}
        self.pages_by_include: Dict[Path, Set[Path]] = {}
        self._known: Set[Path] = set()

    def record_dependencies(self, page: Path, include_paths: Iterable[Path]) -> None:
        includes = set(include_paths)
        self._clear_page(page)
        if includes:
            self.includes_in_page[page] = includes
            for include in includes:
                self.pages_by_include.setdefault(include, set()).add(page)
            logger.debug("Recorded %d dependencies for %s", len(includes), page)
        self._known.add(page)
        self._known.update(includes)

    def analyze_page(self, page: Path, text: str, source_root: Path) -> List[Path]:
        dependencies = extract_include_dependencies(text, page, source_root)
        self.record_dependencies(page, dependencies)
        return dependencies

    def _clear_page(self, page: Path) -> None:
        for include in self.includes_in_page.pop(page, set()):
            pages = self.pages_by_include.get(include)
            if pages is None:
                continue
            pages.discard(page)
            if not pages:
                del self.pages_by_include[include]

    def get_affected_pages(
        self, changed: Path, is_page: Optional[Callable[[Path], bool]] = None
    ) -> List[Path]:
        """Return every file that transitively includes ``changed``.

        With ``is_page`` only the dependents it accepts are returned; the walk
        still passes through the rejected ones.
        """
        affected: Set[Path] = set()
        stack = [changed]
        visited = {changed}
        while stack:
            current = stack.pop()
            for dependent in self.pages_by_include.get(current, ()):
                if dependent in visited:
                    continue
                visited.add(dependent)
                affected.add(dependent)
                stack.append(dependent)
        affected.discard(changed)
        if is_page is not None:
            affected = {path for path in affected if is_page(path)}
        result = sorted(affected)
        logger.debug("Include %s affects %d pages", changed, len(result))
        return result

    def get_page_dependencies(self, page: Path) -> List[Path]:
        return sorted(self.includes_in_page.get(page, ()))

    def remove_file(self, path: Path) -> None:
        self._clear_page(path)
        for page in self.pages_by_include.pop(path, set()):
            includes = self.includes_in_page.get(page)
            if includes is None:
                continue
            includes.discard(path)
            if not includes:
                del self.includes_in_page[page]
        self._known.discard(path)
        logger.debug("Removed file from dependency tracking: %s", path)

    def is_include_file(self, path: Path) -> bool:
        return path in self.pages_by_include

    def is_main_page(self, path: Path) -> bool:
        return path in self.includes_in_page and path not in self.pages_by_include

    def get_include_files(self) -> List[Path]:
        return sorted(self.pages_by_include)

    def known_files(self) -> List[Path]:
        return sorted(self._known)

    def stats(self) -> dict:
        return {
            "total_files": len(self._known),
            "pages_with_dependencies": len(self.includes_in_page),
            "include_files": len(self.pages_by_include),
            "total_relationships": sum(len(items) for items in self.includes_in_page.values()),
        }

    def snapshot(self) -> dict:
        return {
            "includes_in_page": {
                str(page): sorted(str(item) for item in items)
                for page, items in sorted(self.includes_in_page.items())
            },
            "pages_by_include": {
                str(include): sorted(str(item) for item in items)
                for include, items in sorted(self.pages_by_include.items())
            },
        }

    def clear(self) -> None:
        self.includes_in_page.clear()
        self.pages_by_include.clear()
        self._known.clear()
