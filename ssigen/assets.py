from __future__ import annotations

import html
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Set
from urllib.parse import unquote

from .logging import get_logger
from .paths import is_within_directory, normalize

BINARY_EXTENSIONS = {
    ".css", ".js", ".mjs", ".json", ".xml", ".txt", ".pdf", ".zip", ".doc", ".docx",
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".avif", ".ico",
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
    ".mp4", ".webm", ".ogg", ".mp3", ".wav",
}

ATTR = r"""\s*=\s*["']([^"']+)["']"""
TAG_PATTERNS = [
    re.compile(r"<link\b[^>]*?\bhref" + ATTR, re.IGNORECASE),
    re.compile(r"<script\b[^>]*?\bsrc" + ATTR, re.IGNORECASE),
    re.compile(r"<img\b[^>]*?\bsrc" + ATTR, re.IGNORECASE),
    re.compile(r"<(?:video|audio|source|track)\b[^>]*?\bsrc" + ATTR, re.IGNORECASE),
    re.compile(r"<video\b[^>]*?\bposter" + ATTR, re.IGNORECASE),
]
GENERIC_PATTERN = re.compile(r"\b(?:href|src)" + ATTR, re.IGNORECASE)
STYLE_ATTR_RE = re.compile(r"""\bstyle\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)
STYLE_BLOCK_RE = re.compile(r"<style\b[^>]*>(.*?)</style\s*>", re.IGNORECASE | re.DOTALL)
CSS_URL_RE = re.compile(r"""url\(\s*["']?([^"')]+?)["']?\s*\)""", re.IGNORECASE)
SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

logger = get_logger("assets")


def _css_urls(content: str) -> List[str]:
    urls: List[str] = []
    for match in STYLE_ATTR_RE.finditer(content):
        urls.extend(CSS_URL_RE.findall(match.group(1) or match.group(2) or ""))
    for match in STYLE_BLOCK_RE.finditer(content):
        urls.extend(CSS_URL_RE.findall(match.group(1)))
    return urls


def _candidate_urls(content: str) -> List[str]:
    urls: List[str] = []
    for pattern in TAG_PATTERNS:
        urls.extend(pattern.findall(content))
    urls.extend(_css_urls(content))
    for value in GENERIC_PATTERN.findall(content):
        if _strip_url(value) and os.path.splitext(_strip_url(value))[1].lower() in BINARY_EXTENSIONS:
            urls.append(value)
    return urls


def _strip_url(value: str) -> str:
    value = html.unescape(value.strip())
    for marker in ("#", "?"):
        value = value.split(marker, 1)[0]
    return value


def resolve_asset_path(reference: str, page: Path, source_root: Path) -> Optional[Path]:
    """Map an href/src value found in ``page`` to a source path, or None if it is external."""
    value = reference.strip()
    if not value or value.startswith(("#", "//")) or SCHEME_RE.match(value):
        return None
    value = unquote(_strip_url(value))
    if not value:
        return None
    root = normalize(source_root)
    if value.startswith("/"):
        candidate = root / value.lstrip("/")
    else:
        candidate = normalize(page).parent / value
    resolved = Path(os.path.normpath(candidate))
    if not is_within_directory(resolved, root):
        logger.debug("Asset path outside source root: %s in %s", reference, page)
        return None
    return resolved


class AssetTracker:
    """Records which asset files each rendered page references."""

    def __init__(self) -> None:
        self.asset_references: Dict[Path, Set[Path]] = {}
        self.page_assets: Dict[Path, Set[Path]] = {}

    def extract_asset_references(self, content: str, page: Path, source_root: Path) -> List[Path]:
        found: List[Path] = []
        for url in _candidate_urls(content):
            resolved = resolve_asset_path(url, page, source_root)
            if resolved is not None and resolved not in found:
                found.append(resolved)
        return found

    def record_asset_references(self, page: Path, content: str, source_root: Path) -> List[Path]:
        self.remove_page(page)
        assets = self.extract_asset_references(content, page, source_root)
        if assets:
            self.page_assets[page] = set(assets)
            for asset in assets:
                self.asset_references.setdefault(asset, set()).add(page)
            logger.debug("Found %d asset references in %s", len(assets), page)
        return assets

    def remove_page(self, page: Path) -> None:
        for asset in self.page_assets.pop(page, set()):
            pages = self.asset_references.get(asset)
            if pages is None:
                continue
            pages.discard(page)
            if not pages:
                del self.asset_references[asset]

    def is_asset_referenced(self, asset: Path) -> bool:
        return asset in self.asset_references

    def get_pages_that_reference(self, asset: Path) -> List[Path]:
        return sorted(self.asset_references.get(asset, ()))

    def get_page_assets(self, page: Path) -> List[Path]:
        return sorted(self.page_assets.get(page, ()))

    def get_all_referenced_assets(self) -> List[Path]:
        return sorted(self.asset_references)

    def stats(self) -> dict:
        return {
            "referenced_assets": len(self.asset_references),
            "total_references": sum(len(pages) for pages in self.asset_references.values()),
            "pages_with_assets": len(self.page_assets),
        }

    def snapshot(self) -> dict:
        return {
            str(page): sorted(str(asset) for asset in assets)
            for page, assets in sorted(self.page_assets.items())
        }

    def clear(self) -> None:
        self.asset_references.clear()
        self.page_assets.clear()
