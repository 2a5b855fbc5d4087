from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional
from xml.sax.saxutils import escape

from .paths import is_markdown_file, normalize
from .utils import join_url


@dataclass(frozen=True)
class SitemapEntry:
    url: str
    lastmod: str
    changefreq: str
    priority: str


def page_url(page: Path, source_root: Path) -> str:
    rel = normalize(page).relative_to(normalize(source_root)).as_posix()
    if is_markdown_file(page):
        rel = rel[: -len(page.suffix)] + ".html"
    url = "/" + rel
    if url.endswith("/index.html"):
        url = url[: -len("index.html")]
    return url


def page_priority(url: str) -> str:
    if url == "/":
        return "1.0"
    if url.rstrip("/").count("/") <= 1:
        return "0.8"
    return "0.6"


def page_changefreq(url: str) -> str:
    if url == "/":
        return "daily"
    if "/blog/" in url or "/news/" in url:
        return "weekly"
    return "monthly"


def _lastmod(value: object, default: str) -> str:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()[:10]
    if value:
        return str(value)
    return default


def collect_entries(
    pages: Iterable[Path],
    source_root: Path,
    frontmatter: Optional[Mapping[Path, dict]] = None,
    today: Optional[dt.date] = None,
) -> list[SitemapEntry]:
    default_lastmod = (today or dt.date.today()).isoformat()
    frontmatter = frontmatter or {}
    entries = []
    for page in pages:
        url = page_url(page, source_root)
        meta = frontmatter.get(page, {})
        entries.append(
            SitemapEntry(
                url=url,
                lastmod=_lastmod(meta.get("sitemap_lastmod") or meta.get("date"), default_lastmod),
                changefreq=str(meta.get("sitemap_changefreq") or page_changefreq(url)),
                priority=str(meta.get("sitemap_priority") or page_priority(url)),
            )
        )
    entries.sort(key=lambda entry: entry.url)
    return entries


def render_sitemap(entries: Iterable[SitemapEntry], base_url: str) -> str:
    items = []
    for entry in entries:
        loc = join_url(base_url, entry.url)
        if entry.url.endswith("/"):
            loc += "/"
        items.append(
            "\n".join(
                [
                    "  <url>",
                    f"    <loc>{escape(loc)}</loc>",
                    f"    <lastmod>{escape(entry.lastmod)}</lastmod>",
                    f"    <changefreq>{escape(entry.changefreq)}</changefreq>",
                    f"    <priority>{escape(entry.priority)}</priority>",
                    "  </url>",
                ]
            )
        )
    body = "\n".join(items)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{body}\n"
        "</urlset>\n"
    )
