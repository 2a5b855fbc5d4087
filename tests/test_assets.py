"""Tests for ssigen.assets."""

from __future__ import annotations

from pathlib import Path

import pytest

from ssigen.assets import AssetTracker, resolve_asset_path

ROOT = Path("/site/src")
POST = ROOT / "blog" / "post.html"
INDEX = ROOT / "index.html"


@pytest.mark.parametrize(
    "reference, expected",
    [
        ("/css/style.css", ROOT / "css" / "style.css"),
        ("img/logo.png?v=2", ROOT / "blog" / "img" / "logo.png"),
        ("../fonts/a.woff2#icons", ROOT / "fonts" / "a.woff2"),
        ("img/my%20logo.png", ROOT / "blog" / "img" / "my logo.png"),
    ],
)
def test_local_references_resolve_to_source_paths(reference: str, expected: Path) -> None:
    assert resolve_asset_path(reference, POST, ROOT) == expected


@pytest.mark.parametrize(
    "reference",
    [
        "https://cdn.example.com/a.js",
        "//cdn.example.com/a.js",
        "mailto:me@example.com",
        "data:image/png;base64,AAAA",
        "#top",
        "",
        "../../../x.png",
    ],
)
def test_external_and_escaping_references_are_ignored(reference: str) -> None:
    assert resolve_asset_path(reference, POST, ROOT) is None


def test_extract_covers_tags_styles_and_generic_links() -> None:
    content = """
    <link rel="stylesheet" href="/css/style.css">
    <script src='/js/app.js'></script>
    <img src="img/logo.png?v=2" alt="">
    <video poster="media/poster.jpg"><source src="media/clip.mp4"></video>
    <div style="background-image: url('bg.jpg')"></div>
    <style>@font-face { src: url(/fonts/a.woff2) format("woff2"); }</style>
    <a href="docs/file.pdf#page=2">Manual</a>
    <a href="about.html">About</a>
    <a href="https://example.com/remote.png">Remote</a>
    """

    found = AssetTracker().extract_asset_references(content, POST, ROOT)

    assert set(found) == {
        ROOT / "css" / "style.css",
        ROOT / "js" / "app.js",
        ROOT / "blog" / "img" / "logo.png",
        ROOT / "blog" / "media" / "poster.jpg",
        ROOT / "blog" / "media" / "clip.mp4",
        ROOT / "blog" / "bg.jpg",
        ROOT / "fonts" / "a.woff2",
        ROOT / "blog" / "docs" / "file.pdf",
    }
    assert len(found) == len(set(found))


def test_record_replaces_and_remove_page_prunes() -> None:
    tracker = AssetTracker()
    css = ROOT / "css" / "style.css"
    logo = ROOT / "logo.png"
    tracker.record_asset_references(INDEX, '<link href="/css/style.css"><img src="logo.png">', ROOT)
    tracker.record_asset_references(POST, '<link href="/css/style.css">', ROOT)

    assert tracker.get_pages_that_reference(css) == sorted([INDEX, POST])
    assert tracker.get_all_referenced_assets() == sorted([css, logo])

    tracker.record_asset_references(INDEX, "<p>no assets</p>", ROOT)
    assert not tracker.is_asset_referenced(logo)
    assert tracker.get_page_assets(INDEX) == []

    tracker.remove_page(POST)
    assert tracker.asset_references == {}
    assert tracker.page_assets == {}


def test_stats_and_snapshot() -> None:
    tracker = AssetTracker()
    tracker.record_asset_references(INDEX, '<img src="a.png"><img src="b.png">', ROOT)

    assert tracker.stats() == {"referenced_assets": 2, "total_references": 2, "pages_with_assets": 1}
    assert tracker.snapshot() == {str(INDEX): [str(ROOT / "a.png"), str(ROOT / "b.png")]}
    tracker.clear()
    assert tracker.stats()["referenced_assets"] == 0
