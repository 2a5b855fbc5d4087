from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import yaml

from .errors import SsigenError

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
HEADING_RE = re.compile(r"^#\s+(?P<title>.+?)\s*#*\s*$", re.MULTILINE)
MD_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")


def parse_front_matter(text: str, file_path: Optional[Path] = None) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines(keepends=True)
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            end = i
            break
    if end is None:
        return {}, clean_text

    try:
        meta = yaml.safe_load("".join(lines[1:end]))
    except yaml.YAMLError as exc:
        raise SsigenError(f"Invalid frontmatter: {exc}", file_path) from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise SsigenError("Frontmatter must be a mapping", file_path)
    return {str(key).lower(): value for key, value in meta.items()}, "".join(lines[end + 1 :])


def extract_title(meta: dict, body: str) -> str:
    title = meta.get("title")
    if title:
        return str(title)
    match = HEADING_RE.search(body)
    return match.group("title").strip() if match else ""


def extract_excerpt(meta: dict, body: str) -> str:
    excerpt = meta.get("excerpt") or meta.get("description")
    if excerpt:
        return str(excerpt)
    for block in re.split(r"\n\s*\n", body):
        block = block.strip()
        if block and not block.startswith(("#", "<", "```", "~~~")):
            return MD_LINK_RE.sub(r"\1", " ".join(block.split()))
    return ""


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)
    return "\n".join(out)
