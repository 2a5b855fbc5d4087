"""Expansion of server-side include directives.

Directives are found by pattern matching over the raw text, so they are
recognised anywhere in a document, including inside markdown and text nodes:

    <!--#include file="nav.html" -->        relative to the including file
    <!--#include virtual="/includes/x.html" -->  relative to the source root

Expansion is recursive, depth limited and cycle checked per include chain.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .errors import (
    CircularDependencyError,
    FileSystemError,
    IncludeError,
    IncludeNotFoundError,
    MalformedDirectiveError,
    MaxDepthExceededError,
    PathTraversalError,
    SsigenError,
)
from .logging import get_logger
from .paths import IncludeKind, normalize, resolve_include_path

MAX_INCLUDE_DEPTH = 10
DIRECTIVE_RE = re.compile(r"<!--#include\b(?P<body>.*?)-->", re.IGNORECASE | re.DOTALL)
DIRECTIVE_BODY_RE = re.compile(
    r'^\s+(?P<kind>file|virtual)\s*=\s*"(?P<path>[^"]*)"\s*$', re.IGNORECASE
)

IncludeCallback = Callable[[Path, str], None]

logger = get_logger("includes")


@dataclass(frozen=True)
class IncludeDirective:
    kind: IncludeKind
    raw_path: str
    start: int
    end: int
    line: int


def read_source(path: Path) -> str:
    # newline="" keeps CRLF sources byte-for-byte.
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _parse_match(match: re.Match, text: str, file_path: Optional[Path]) -> IncludeDirective:
    line = _line_of(text, match.start())
    body = DIRECTIVE_BODY_RE.match(match.group("body"))
    if body is None or not body.group("path").strip():
        raise MalformedDirectiveError(match.group(0), file_path, line)
    return IncludeDirective(
        kind=IncludeKind.parse(body.group("kind")),
        raw_path=body.group("path").strip(),
        start=match.start(),
        end=match.end(),
        line=line,
    )


def parse_directives(text: str, file_path: Optional[Path] = None) -> List[IncludeDirective]:
    return [_parse_match(match, text, file_path) for match in DIRECTIVE_RE.finditer(text)]


def has_includes(text: str) -> bool:
    return DIRECTIVE_RE.search(text) is not None


def _iter_resolved(text: str, file_path: Path, source_root: Path) -> Iterator[Path]:
    for match in DIRECTIVE_RE.finditer(text):
        try:
            directive = _parse_match(match, text, file_path)
            yield resolve_include_path(directive.kind, directive.raw_path, file_path, source_root)
        except IncludeError as exc:
            logger.warning("Could not resolve include dependency in %s: %s", file_path, exc)


def extract_include_dependencies(text: str, file_path: Path, source_root: Path) -> List[Path]:
    """Return the resolved direct includes of ``text`` without reading any file."""
    seen: List[Path] = []
    for resolved in _iter_resolved(text, normalize(file_path), normalize(source_root)):
        if resolved not in seen:
            seen.append(resolved)
    return seen


def _read_include(resolved: Path, directive: IncludeDirective, parent: Path) -> str:
    try:
        content = read_source(resolved)
    except FileNotFoundError as exc:
        raise IncludeNotFoundError(directive.raw_path, parent, directive.line) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise FileSystemError("read", resolved, exc) from exc
    logger.debug("Loaded include: %s -> %s", directive.raw_path, resolved)
    return content


def error_marker(error: BaseException) -> str:
    message = html.escape(str(error), quote=False).replace("--", "- -")
    return f"<!-- ssigen include error: {message} -->"


def expand_includes(
    text: str,
    file_path: Path,
    source_root: Path,
    visiting: Sequence[Path] = (),
    depth: int = 0,
    on_include: Optional[IncludeCallback] = None,
    errors: Optional[List[SsigenError]] = None,
) -> str:
    """Return ``text`` with every include directive replaced by the expanded target.

    ``visiting`` is the chain of files currently being expanded above this one.
    ``on_include`` is called with each resolved include and its raw content
    before that content is expanded. Passing an ``errors`` list switches to
    preview rendering: failed directives become visible comments and the error
    is appended to the list. Path traversal is never rendered, always raised.
    """
    file_path = normalize(file_path)
    root = normalize(source_root)
    if depth > MAX_INCLUDE_DEPTH:
        raise MaxDepthExceededError(MAX_INCLUDE_DEPTH, file_path)
    if file_path in visiting:
        raise CircularDependencyError(file_path, visiting)
    if not has_includes(text):
        return text

    chain: Tuple[Path, ...] = (*visiting, file_path)
    parts: List[str] = []
    cursor = 0
    for match in DIRECTIVE_RE.finditer(text):
        parts.append(text[cursor : match.start()])
        cursor = match.end()
        try:
            directive = _parse_match(match, text, file_path)
            resolved = resolve_include_path(directive.kind, directive.raw_path, file_path, root)
            if resolved in chain:
                raise CircularDependencyError(resolved, chain)
            content = _read_include(resolved, directive, file_path)
            if on_include is not None:
                on_include(resolved, content)
            parts.append(expand_includes(content, resolved, root, chain, depth + 1, on_include, errors))
        except PathTraversalError:
            raise
        except (IncludeError, FileSystemError) as exc:
            if errors is None:
                raise
            logger.warning("Include failed in %s: %s", file_path, exc)
            errors.append(exc)
            parts.append(error_marker(exc))
    parts.append(text[cursor:])
    return "".join(parts)


__all__ = [
    "IncludeDirective",
    "MAX_INCLUDE_DEPTH",
    "error_marker",
    "expand_includes",
    "extract_include_dependencies",
    "has_includes",
    "parse_directives",
    "read_source",
]
