from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError
from .paths import DEFAULT_INCLUDES_DIR

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

DEFAULT_CONFIG = "site.toml"


@dataclass
class BuildConfig:
    source: Path = Path("src")
    output: Path = Path("dist")
    includes: str = DEFAULT_INCLUDES_DIR
    head: Optional[Path] = None
    layout: Optional[str] = None
    clean: bool = True
    workers: int = 1
    base_url: str = ""
    preview_errors: bool = False
    project_root: Optional[Path] = None


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file: {exc}", path) from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file: {exc}", path) from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file: {exc}", path) from exc
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping", path)
    return data
