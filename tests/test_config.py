"""Tests for ssigen.config and ssigen.utils."""

from __future__ import annotations

import pytest

from ssigen.config import load_config
from ssigen.errors import ConfigError
from ssigen.utils import clean_output_dir, join_url, parse_bool, parse_int, resolve_workers


def test_missing_config_is_empty(tmp_path) -> None:
    assert load_config(tmp_path / "site.toml") == {}


@pytest.mark.parametrize(
    "name, text",
    [
        ("site.toml", 'source = "pages"\nworkers = 2\n'),
        ("site.yaml", "source: pages\nworkers: 2\n"),
        ("site.json", '{"source": "pages", "workers": 2}'),
    ],
)
def test_config_formats(tmp_path, name: str, text: str) -> None:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    assert load_config(path) == {"source": "pages", "workers": 2}


@pytest.mark.parametrize(
    "name, text",
    [("site.toml", "source = "), ("site.yaml", "a: [b"), ("site.json", "{"), ("site.yml", "- a\n- b\n")],
)
def test_invalid_config_raises(tmp_path, name: str, text: str) -> None:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_value_parsers() -> None:
    assert parse_bool("Yes") and parse_bool(1) and not parse_bool("off") and not parse_bool(None)
    assert parse_int("4", 1) == 4
    assert parse_int("four", 1) == 1
    assert resolve_workers(100) == 32
    assert resolve_workers(0) >= 1
    assert join_url("https://example.com/", "/a.html") == "https://example.com/a.html"


def test_clean_output_dir_guards(tmp_path) -> None:
    project = tmp_path / "project"
    source = project / "src"
    output = project / "dist"
    source.mkdir(parents=True)
    output.mkdir()
    (output / "stale.html").write_text("x", encoding="utf-8")

    clean_output_dir(output, project, source)
    assert not output.exists()

    with pytest.raises(ConfigError):
        clean_output_dir(project, project, source)
    with pytest.raises(ConfigError):
        clean_output_dir(tmp_path, project, source)
    with pytest.raises(ConfigError):
        clean_output_dir(source.parent, source.parent.parent, source)
