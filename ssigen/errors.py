from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class SsigenError(Exception):
    """Base class for build errors that carry a source location."""

    def __init__(self, message: str, file_path: Optional[Path] = None, line: Optional[int] = None):
        self.file_path = file_path
        self.line = line
        if file_path is not None:
            location = f"{file_path}:{line}" if line else str(file_path)
            message = f"{message} in {location}"
        super().__init__(message)


class IncludeError(SsigenError):
    """Raised while expanding a single include directive."""


class IncludeNotFoundError(IncludeError):
    def __init__(self, include_path: str, parent_file: Path, line: Optional[int] = None):
        self.include_path = include_path
        self.parent_file = parent_file
        super().__init__(f"Include file not found: {include_path}", parent_file, line)


class CircularDependencyError(IncludeError):
    def __init__(self, file_path: Path, chain: Sequence[Path]):
        self.chain = tuple(chain)
        rendered = " -> ".join(str(item) for item in (*self.chain, file_path))
        super().__init__(f"Circular dependency detected: {rendered}", file_path)


class PathTraversalError(IncludeError):
    def __init__(self, attempted_path: str, source_root: Path):
        self.attempted_path = attempted_path
        self.source_root = source_root
        super().__init__(f"Path traversal attempt blocked: {attempted_path} (source root: {source_root})")


class MaxDepthExceededError(IncludeError):
    def __init__(self, max_depth: int, file_path: Path):
        self.max_depth = max_depth
        super().__init__(f"Maximum include depth ({max_depth}) exceeded", file_path)


class MalformedDirectiveError(IncludeError):
    def __init__(self, directive: str, file_path: Optional[Path] = None, line: Optional[int] = None):
        self.directive = directive
        super().__init__(f"Malformed include directive: {directive}", file_path, line)


class FileSystemError(SsigenError):
    def __init__(self, operation: str, file_path: Path, original: BaseException):
        self.operation = operation
        self.original = original
        super().__init__(f"File system error during {operation}: {original}", file_path)


class ConfigError(SsigenError):
    """Raised when the site configuration cannot be loaded."""


class BuildAggregateError(SsigenError):
    """Raised after a build that recorded one or more per-file failures."""

    def __init__(self, failures: Sequence):
        self.failures = tuple(failures)
        lines = [f"Build failed with {len(self.failures)} error(s)"]
        lines.extend(f"  {failure.file}: {failure.error}" for failure in self.failures)
        super().__init__("\n".join(lines))
