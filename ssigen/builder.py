"""Full and incremental site builds.

A :class:`BuildSession` owns the dependency graph, the asset reference graph
and the modification-time cache for one process. ``build()`` rebuilds all of
them from scratch; ``incremental_build()`` reprocesses only what a change
touches and mutates them in place.

Pages are rendered without touching session state, optionally on a thread
pool, and each finished render is committed (graph edges, asset references,
output file) one at a time on the calling thread.
"""

from __future__ import annotations

import enum
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .assets import AssetTracker
from .cache import ModificationCache, scan_source
from .config import BuildConfig
from .content import extract_excerpt, extract_title, normalize_list_spacing, parse_front_matter
from .dependencies import DependencyTracker
from .errors import BuildAggregateError, FileSystemError, IncludeNotFoundError, SsigenError
from .includes import expand_includes, extract_include_dependencies, read_source
from .logging import get_logger
from .paths import (
    FileKind,
    IncludeKind,
    classify,
    is_markdown_file,
    is_within_directory,
    normalize,
    output_path_for,
    resolve_include_path,
)
from .render import DEFAULT_LAYOUT, copy_file, inject_head, markdown_to_html, remove_file, render_template, write_text
from .sitemap import collect_entries, render_sitemap
from .utils import clean_output_dir, resolve_workers

logger = get_logger("builder")


class BuildState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING_CONTENT = "processing_content"
    COPYING_ASSETS = "copying_assets"
    DONE = "done"
    FAILED = "failed"


class ChangeKind(str, enum.Enum):
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass(frozen=True)
class BuildFailure:
    file: Path
    error: str
    exception: Optional[BaseException] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BuildResult:
    processed: int = 0
    copied: int = 0
    skipped: int = 0
    errors: Tuple[BuildFailure, ...] = ()
    duration: float = 0.0
    written: Tuple[Path, ...] = ()
    removed: Tuple[Path, ...] = ()
    full: bool = True

    @property
    def success(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise BuildAggregateError(self.errors)


@dataclass
class _Tally:
    processed: int = 0
    copied: int = 0
    skipped: int = 0
    errors: List[BuildFailure] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)

    def fail(self, path: Path, error: BaseException) -> None:
        logger.error("Error processing %s: %s", path, error)
        self.errors.append(BuildFailure(file=path, error=str(error), exception=error))

    def result(self, started: float, full: bool) -> BuildResult:
        return BuildResult(
            processed=self.processed,
            copied=self.copied,
            skipped=self.skipped,
            errors=tuple(self.errors),
            duration=time.perf_counter() - started,
            written=tuple(self.written),
            removed=tuple(self.removed),
            full=full,
        )


@dataclass
class PageRender:
    page: Path
    output: Path
    edges: Dict[Path, List[Path]] = field(default_factory=dict)
    content: Optional[str] = None
    error: Optional[Exception] = None
    preview_errors: List[SsigenError] = field(default_factory=list)
    frontmatter: Optional[dict] = None


@dataclass(frozen=True)
class HeadSnippet:
    path: Path
    text: str


class BuildSession:
    def __init__(self, config: BuildConfig) -> None:
        self.config = config
        self.source_root = normalize(config.source)
        self.output_root = normalize(config.output)
        self.project_root = normalize(config.project_root or Path.cwd())
        self.dependencies = DependencyTracker()
        self.assets = AssetTracker()
        self.mtimes = ModificationCache()
        self.state = BuildState.IDLE
        self.pages: set[Path] = set()
        self.frontmatter: Dict[Path, dict] = {}

    def classify(self, path: Path) -> FileKind:
        return classify(path, self.source_root, self.config.includes)

    def is_page(self, path: Path) -> bool:
        return self.classify(path) is FileKind.PAGE and path.exists()

    def output_path(self, path: Path) -> Path:
        return output_path_for(path, self.source_root, self.output_root)

    # Full build

    def build(self) -> BuildResult:
        started = time.perf_counter()
        tally = _Tally()
        self.state = BuildState.SCANNING
        if not self.source_root.is_dir():
            self.state = BuildState.FAILED
            raise FileSystemError("scan", self.source_root, FileNotFoundError("source directory not found"))
        logger.info("Building site from %s to %s", self.source_root, self.output_root)

        if self.config.clean:
            clean_output_dir(self.output_root, self.project_root, self.source_root)
        self.output_root.mkdir(parents=True, exist_ok=True)

        self.dependencies.clear()
        self.assets.clear()
        self.frontmatter.clear()
        files = scan_source(self.source_root, exclude=self.output_root)
        pages: List[Path] = []
        assets: List[Path] = []
        for path in files:
            kind = self.classify(path)
            if kind is FileKind.PAGE:
                pages.append(path)
            elif kind is FileKind.ASSET:
                assets.append(path)
            else:
                logger.debug("Skipping partial file: %s", path)
                tally.skipped += 1
        self.pages = set(pages)
        logger.info("Found %d source files", len(files))

        self.state = BuildState.PROCESSING_CONTENT
        head = self._load_head()
        for render in self._render_all(pages, head):
            self._commit(render, tally)

        self.state = BuildState.COPYING_ASSETS
        for asset in assets:
            if not self.assets.is_asset_referenced(asset):
                logger.debug("Skipping unreferenced asset: %s", asset)
                tally.skipped += 1
                continue
            self._copy_asset(asset, tally)

        self._write_sitemap(tally)
        self.mtimes.initialize(files)
        result = tally.result(started, full=True)
        self._finish(result)
        return result

    # Incremental build

    def incremental_build(
        self, changed_path: Optional[Union[str, Path]] = None, event: Optional[Union[ChangeKind, str]] = None
    ) -> BuildResult:
        """Rebuild what ``changed_path`` affects, or every file changed since the last build."""
        started = time.perf_counter()
        try:
            return self._incremental(changed_path, event, started)
        except Exception as exc:
            logger.warning("Incremental build failed (%s); running a full build", exc)
            return self.build()

    def _incremental(
        self, changed_path: Optional[Union[str, Path]], event: Optional[Union[ChangeKind, str]], started: float
    ) -> BuildResult:
        tally = _Tally()
        if changed_path is None:
            changes = self._detect_changes()
        else:
            changes = self._single_change(normalize(changed_path), event)
        if not changes:
            return tally.result(started, full=False)

        self.state = BuildState.PROCESSING_CONTENT
        head = self._load_head()
        to_render: List[Path] = []
        to_copy: List[Path] = []
        pages_changed = False
        for path, kind in changes:
            if kind is ChangeKind.REMOVED:
                pages_changed = self._remove(path, tally) or pages_changed
                continue
            self.mtimes.record(path)
            file_kind = self.classify(path)
            if file_kind is FileKind.PAGE:
                if path not in self.pages:
                    self.pages.add(path)
                    pages_changed = True
                candidates = [path]
            elif file_kind is FileKind.PARTIAL:
                candidates = self.dependencies.get_affected_pages(path, is_page=self.is_page)
                logger.info("Partial %s %s affects %d page(s)", path.name, kind.value, len(candidates))
            else:
                if path not in to_copy:
                    to_copy.append(path)
                continue
            to_render.extend(page for page in candidates if page not in to_render)

        for render in self._render_all(to_render, head):
            for asset in self._commit(render, tally):
                if asset not in to_copy and self._needs_copy(asset):
                    to_copy.append(asset)

        self.state = BuildState.COPYING_ASSETS
        for asset in to_copy:
            self._copy_asset(asset, tally)

        if pages_changed:
            self._write_sitemap(tally)
        result = tally.result(started, full=False)
        self._finish(result)
        return result

    def _detect_changes(self) -> List[Tuple[Path, ChangeKind]]:
        self.state = BuildState.SCANNING
        files = scan_source(self.source_root, exclude=self.output_root)
        changes = [
            (path, ChangeKind.CHANGED if path in self.mtimes else ChangeKind.ADDED)
            for path in self.mtimes.changed_files(files)
        ]
        changes.extend((path, ChangeKind.REMOVED) for path in self.mtimes.removed_files(files))
        return changes

    def _single_change(self, path: Path, event: Optional[Union[ChangeKind, str]]) -> List[Tuple[Path, ChangeKind]]:
        if not is_within_directory(path, self.source_root) or is_within_directory(path, self.output_root):
            logger.debug("Ignoring change outside the source tree: %s", path)
            return []
        kind = ChangeKind(event) if event is not None else ChangeKind.CHANGED
        if kind is not ChangeKind.REMOVED and not path.exists():
            kind = ChangeKind.REMOVED
        if kind is not ChangeKind.REMOVED and path.is_dir():
            return []
        return [(path, kind)]

    def _remove(self, path: Path, tally: _Tally) -> bool:
        kind = self.classify(path)
        self.dependencies.remove_file(path)
        self.assets.remove_page(path)
        self.mtimes.forget(path)
        self.frontmatter.pop(path, None)
        was_page = path in self.pages
        self.pages.discard(path)
        if kind is FileKind.PARTIAL:
            logger.info("Partial removed: %s", path)
            return False
        output = self.output_path(path)
        try:
            if remove_file(output):
                tally.removed.append(output)
                logger.info("File removed: %s (deleted from output)", path)
        except FileSystemError as exc:
            tally.fail(path, exc)
        return was_page

    # Rendering

    def _load_head(self) -> Optional[HeadSnippet]:
        if self.config.head is not None:
            candidates = [normalize(self.config.head)]
        else:
            includes = self.source_root / self.config.includes
            candidates = [
                includes / "head.html",
                includes / "_head.html",
                self.source_root / "head.html",
                self.source_root / "_head.html",
            ]
        for path in candidates:
            try:
                text = read_source(path)
            except FileNotFoundError:
                continue
            except (OSError, UnicodeDecodeError) as exc:
                raise FileSystemError("read", path, exc) from exc
            logger.debug("Loaded head snippet from %s", path)
            return HeadSnippet(path=path, text=text.strip())
        if self.config.head is not None:
            logger.warning("Head snippet file not found: %s", self.config.head)
        return None

    def _render_all(self, pages: List[Path], head: Optional[HeadSnippet]) -> Iterator[PageRender]:
        workers = min(resolve_workers(self.config.workers), len(pages))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                yield from executor.map(lambda page: self.render_page(page, head), pages)
        else:
            for page in pages:
                yield self.render_page(page, head)

    def render_page(self, page: Path, head: Optional[HeadSnippet] = None) -> PageRender:
        """Expand one page without touching the session graphs."""
        render = PageRender(page=page, output=self.output_path(page))
        preview: Optional[List[SsigenError]] = [] if self.config.preview_errors else None

        def on_include(resolved: Path, content: str) -> None:
            render.edges[resolved] = extract_include_dependencies(content, resolved, self.source_root)

        try:
            try:
                text = read_source(page)
            except (OSError, UnicodeDecodeError) as exc:
                raise FileSystemError("read", page, exc) from exc
            page_edges = extract_include_dependencies(text, page, self.source_root)
            if head is not None:
                page_edges.append(head.path)
            render.edges[page] = page_edges

            expanded = expand_includes(text, page, self.source_root, on_include=on_include, errors=preview)
            if is_markdown_file(page):
                expanded = self._render_markdown(page, expanded, render, on_include, preview)
            render.content = inject_head(expanded, head.text) if head is not None else expanded
        except SsigenError as exc:
            render.error = exc
            return render
        except Exception as exc:
            logger.exception("Unexpected error rendering %s", page)
            render.error = exc
            return render
        render.preview_errors = list(preview or [])
        return render

    def _render_markdown(self, page, expanded, render, on_include, preview) -> str:
        meta, body = parse_front_matter(expanded, page)
        render.frontmatter = meta
        html_body, toc_html = markdown_to_html(normalize_list_spacing(body))
        layout = DEFAULT_LAYOUT
        layout_path = self._layout_path(page, meta)
        if layout_path is not None:
            render.edges[page].append(layout_path)
            try:
                layout = read_source(layout_path)
            except FileNotFoundError as exc:
                raise IncludeNotFoundError(str(meta.get("layout") or layout_path), page) from exc
            except (OSError, UnicodeDecodeError) as exc:
                raise FileSystemError("read", layout_path, exc) from exc
            render.edges[layout_path] = extract_include_dependencies(layout, layout_path, self.source_root)
            layout = expand_includes(
                layout, layout_path, self.source_root, visiting=(page,), depth=1, on_include=on_include, errors=preview
            )
        context = dict(meta)
        context.update(
            title=extract_title(meta, body) or page.stem,
            description=extract_excerpt(meta, body),
            content=html_body,
            toc=toc_html,
        )
        return render_template(layout, context)

    def _layout_path(self, page: Path, meta: dict) -> Optional[Path]:
        name = meta.get("layout") or self.config.layout
        if name:
            return resolve_include_path(IncludeKind.VIRTUAL, str(name), page, self.source_root)
        for candidate in (self.source_root / self.config.includes / "layout.html", self.source_root / "_layout.html"):
            if candidate.is_file():
                return candidate
        return None

    # Commit

    def _commit(self, render: PageRender, tally: _Tally) -> List[Path]:
        """Apply one finished render and return the assets the written page references."""
        page = render.page
        for path, includes in render.edges.items():
            self.dependencies.record_dependencies(path, includes)
        if render.frontmatter is not None:
            self.frontmatter[page] = render.frontmatter
        if render.error is not None:
            self.assets.remove_page(page)
            tally.fail(page, render.error)
            return []
        if render.preview_errors:
            # Preview output is written for inspection but never counts as built.
            self.assets.remove_page(page)
            self._write(render, tally)
            for error in render.preview_errors:
                tally.fail(page, error)
            return []
        assets = self.assets.record_asset_references(page, render.content or "", self.source_root)
        if not self._write(render, tally):
            self.assets.remove_page(page)
            return []
        tally.processed += 1
        return assets

    def _write(self, render: PageRender, tally: _Tally) -> bool:
        try:
            write_text(render.output, render.content or "")
        except FileSystemError as exc:
            tally.fail(render.page, exc)
            return False
        tally.written.append(render.output)
        logger.debug("Processed: %s", render.page)
        return True

    def _needs_copy(self, asset: Path) -> bool:
        # Newly referenced assets are copied when missing or older than the source.
        if not asset.is_file():
            return False
        dest = self.output_path(asset)
        try:
            return dest.stat().st_mtime_ns < asset.stat().st_mtime_ns
        except FileNotFoundError:
            return True

    def _copy_asset(self, asset: Path, tally: _Tally) -> None:
        dest = self.output_path(asset)
        try:
            copy_file(asset, dest)
        except FileSystemError as exc:
            tally.fail(asset, exc)
            return
        tally.copied += 1
        tally.written.append(dest)
        logger.debug("Copied: %s", asset)

    def _write_sitemap(self, tally: _Tally) -> None:
        if not self.config.base_url:
            return
        entries = collect_entries(sorted(self.pages), self.source_root, self.frontmatter)
        path = self.output_root / "sitemap.xml"
        try:
            write_text(path, render_sitemap(entries, self.config.base_url))
        except FileSystemError as exc:
            tally.fail(path, exc)
            return
        tally.written.append(path)
        logger.info("Generated sitemap.xml with %d pages", len(entries))

    def _finish(self, result: BuildResult) -> None:
        self.state = BuildState.DONE if result.success else BuildState.FAILED
        logger.info(
            "Processed: %d pages, Copied: %d assets, Skipped: %d",
            result.processed,
            result.copied,
            result.skipped,
        )
        if not result.success:
            logger.warning("Build completed with %d errors", len(result.errors))


def build_site(config: BuildConfig) -> BuildResult:
    return BuildSession(config).build()


__all__ = [
    "BuildAggregateError",
    "BuildFailure",
    "BuildResult",
    "BuildSession",
    "BuildState",
    "ChangeKind",
    "build_site",
]
