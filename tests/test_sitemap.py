"""Tests for ssigen.sitemap."""

from __future__ import annotations

import datetime as dt
from pathlib import Path

from ssigen.sitemap import collect_entries, page_changefreq, page_priority, page_url, render_sitemap

ROOT = Path("/site/src")


def test_page_urls() -> None:
    assert page_url(ROOT / "index.html", ROOT) == "/"
    assert page_url(ROOT / "docs" / "index.html", ROOT) == "/docs/"
    assert page_url(ROOT / "about.md", ROOT) == "/about.html"


def test_priority_and_changefreq_defaults() -> None:
    assert (page_priority("/"), page_changefreq("/")) == ("1.0", "daily")
    assert (page_priority("/about.html"), page_changefreq("/about.html")) == ("0.8", "monthly")
    assert (page_priority("/blog/post.html"), page_changefreq("/blog/post.html")) == ("0.6", "weekly")
    assert page_priority("/docs/") == "0.8"


def test_frontmatter_overrides_and_sorting() -> None:
    about = ROOT / "about.md"
    meta = {about: {"sitemap_priority": 0.9, "sitemap_changefreq": "yearly", "date": dt.date(2024, 1, 2)}}

    entries = collect_entries([about, ROOT / "index.html"], ROOT, meta, today=dt.date(2025, 6, 1))

    assert [entry.url for entry in entries] == ["/", "/about.html"]
    assert entries[0].lastmod == "2025-06-01"
    assert (entries[1].lastmod, entries[1].changefreq, entries[1].priority) == ("2024-01-02", "yearly", "0.9")


def test_render_sitemap_document() -> None:
    entries = collect_entries([ROOT / "index.html", ROOT / "a&b.html"], ROOT, today=dt.date(2025, 6, 1))

    xml = render_sitemap(entries, "https://example.com/")

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<urlset')
    assert "<loc>https://example.com/</loc>" in xml
    assert "<loc>https://example.com/a&amp;b.html</loc>" in xml
    assert xml.count("<url>") == 2
