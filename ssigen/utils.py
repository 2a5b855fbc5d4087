from __future__ import annotations

import os
import shutil
from pathlib import Path

from .errors import ConfigError
from .paths import is_within_directory, normalize


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def resolve_workers(value: int) -> int:
    if value <= 0:
        value = os.cpu_count() or 1
    return max(1, min(value, 32))


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def clean_output_dir(output_dir: Path, project_root: Path, source_root: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = normalize(output_dir)
    root_resolved = normalize(project_root)
    if output_resolved == root_resolved:
        raise ConfigError("Refusing to clean project root.")
    if not is_within_directory(output_resolved, root_resolved):
        raise ConfigError("Refusing to clean output directory outside project root.")
    if is_within_directory(normalize(source_root), output_resolved):
        raise ConfigError("Refusing to clean an output directory that contains the source.")
    shutil.rmtree(output_dir)
