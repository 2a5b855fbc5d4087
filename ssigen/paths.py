from __future__ import annotations

import enum
import os
import re
from pathlib import Path
from typing import Union

from .errors import MalformedDirectiveError, PathTraversalError

CONTENT_SUFFIXES = {".html", ".htm", ".md"}
MARKDOWN_SUFFIXES = {".md"}
DEFAULT_INCLUDES_DIR = "includes"
REPEATED_SLASH_RE = re.compile(r"/+")


class IncludeKind(str, enum.Enum):
    FILE = "file"
    VIRTUAL = "virtual"

    @classmethod
    def parse(cls, value: object) -> "IncludeKind":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise MalformedDirectiveError(f"unknown include kind {value!r}")


class FileKind(str, enum.Enum):
    PAGE = "page"
    PARTIAL = "partial"
    ASSET = "asset"


def normalize(path: Union[str, Path]) -> Path:
    return Path(os.path.normpath(os.path.abspath(path)))


def is_within_directory(path: Union[str, Path], directory: Union[str, Path]) -> bool:
    candidate = normalize(path)
    root = normalize(directory)
    return candidate == root or root in candidate.parents


def resolve_include_path(
    kind: Union[IncludeKind, str],
    raw_path: object,
    current_file: Union[str, Path],
    source_root: Union[str, Path],
) -> Path:
    include_kind = IncludeKind.parse(kind)
    if not isinstance(raw_path, str) or not raw_path:
        raise MalformedDirectiveError(f"include path must be a non-empty string, got {raw_path!r}")
    if "\x00" in raw_path:
        raise MalformedDirectiveError(f"include path contains a NUL byte: {raw_path!r}")

    root = normalize(source_root)
    if include_kind is IncludeKind.FILE:
        base = normalize(current_file).parent
        candidate = base / raw_path
    else:
        clean = REPEATED_SLASH_RE.sub("/", raw_path.lstrip("/"))
        candidate = root / clean

    resolved = Path(os.path.normpath(candidate))
    if not is_within_directory(resolved, root):
        raise PathTraversalError(raw_path, root)
    return resolved


def is_content_file(path: Path) -> bool:
    return path.suffix.lower() in CONTENT_SUFFIXES


def is_markdown_file(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_partial_file(path: Path, source_root: Path, includes_dir: str = DEFAULT_INCLUDES_DIR) -> bool:
    if path.name.startswith("_"):
        return True
    try:
        rel = normalize(path).relative_to(normalize(source_root))
    except ValueError:
        rel = path
    return includes_dir in rel.parts[:-1]


def classify(path: Path, source_root: Path, includes_dir: str = DEFAULT_INCLUDES_DIR) -> FileKind:
    if not is_content_file(path):
        return FileKind.ASSET
    if is_partial_file(path, source_root, includes_dir):
        return FileKind.PARTIAL
    return FileKind.PAGE


def output_path_for(source: Path, source_root: Path, output_root: Path) -> Path:
    rel = normalize(source).relative_to(normalize(source_root))
    target = normalize(output_root) / rel
    if is_markdown_file(target):
        target = target.with_suffix(".html")
    return target
