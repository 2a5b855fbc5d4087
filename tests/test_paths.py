"""Tests for ssigen.paths."""

from __future__ import annotations

from pathlib import Path

import pytest

from ssigen.errors import MalformedDirectiveError, PathTraversalError
from ssigen.paths import (
    FileKind,
    IncludeKind,
    classify,
    is_partial_file,
    is_within_directory,
    output_path_for,
    resolve_include_path,
)

ROOT = Path("/site/src")
PAGE = ROOT / "blog" / "post.html"


def test_file_include_resolves_relative_to_current_file() -> None:
    assert resolve_include_path("file", "nav.html", PAGE, ROOT) == ROOT / "blog" / "nav.html"
    assert resolve_include_path(IncludeKind.FILE, "../includes/a.html", PAGE, ROOT) == ROOT / "includes" / "a.html"


def test_virtual_include_normalises_leading_and_repeated_slashes() -> None:
    expected = ROOT / "includes" / "header.html"
    assert resolve_include_path("virtual", "/includes/header.html", PAGE, ROOT) == expected
    assert resolve_include_path("virtual", "///includes//header.html", PAGE, ROOT) == expected
    assert resolve_include_path("VIRTUAL", "includes/header.html", PAGE, ROOT) == expected


@pytest.mark.parametrize(
    "kind, raw",
    [
        ("file", "../../etc/passwd"),
        ("file", "../../../../../../etc/passwd"),
        ("file", "/etc/passwd"),
        ("virtual", "/../etc/passwd"),
        ("virtual", "includes/../../secret.html"),
        ("file", "../../src-other/page.html"),
    ],
)
def test_paths_escaping_the_root_are_rejected(kind: str, raw: str) -> None:
    with pytest.raises(PathTraversalError):
        resolve_include_path(kind, raw, PAGE, ROOT)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("%2e%2e%2fsecret.html", ROOT / "blog" / "%2e%2e%2fsecret.html"),
        ("..\\..\\secret.html", ROOT / "blog" / "..\\..\\secret.html"),
        ("../index.html", ROOT / "index.html"),
        ("sub/../nav.html", ROOT / "blog" / "nav.html"),
    ],
)
def test_suspicious_paths_that_stay_inside_are_allowed(raw: str, expected: Path) -> None:
    assert resolve_include_path("file", raw, PAGE, ROOT) == expected


def test_sibling_directory_with_shared_prefix_is_outside() -> None:
    assert not is_within_directory("/site/src-other/x.html", ROOT)
    assert is_within_directory("/site/src", ROOT)
    assert is_within_directory("/site/src/a/b.html", ROOT)


@pytest.mark.parametrize("raw", ["", None, 42, "bad\x00path"])
def test_invalid_raw_paths_are_rejected(raw: object) -> None:
    with pytest.raises(MalformedDirectiveError):
        resolve_include_path("file", raw, PAGE, ROOT)


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(MalformedDirectiveError):
        resolve_include_path("exec", "nav.html", PAGE, ROOT)


def test_classification_by_location_and_name() -> None:
    assert classify(ROOT / "index.html", ROOT) is FileKind.PAGE
    assert classify(ROOT / "docs" / "guide.md", ROOT) is FileKind.PAGE
    assert classify(ROOT / "includes" / "header.html", ROOT) is FileKind.PARTIAL
    assert classify(ROOT / "blog" / "includes" / "aside.html", ROOT) is FileKind.PARTIAL
    assert classify(ROOT / "_footer.html", ROOT) is FileKind.PARTIAL
    assert classify(ROOT / "css" / "style.css", ROOT) is FileKind.ASSET
    assert classify(ROOT / "includes" / "logo.png", ROOT) is FileKind.ASSET
    assert is_partial_file(ROOT / "parts" / "nav.html", ROOT, includes_dir="parts")


def test_output_path_mirrors_source_and_renames_markdown() -> None:
    out = Path("/site/dist")
    assert output_path_for(ROOT / "blog" / "post.html", ROOT, out) == out / "blog" / "post.html"
    assert output_path_for(ROOT / "about.md", ROOT, out) == out / "about.html"
