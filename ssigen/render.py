from __future__ import annotations

import datetime as dt
import html
import re
import shutil
from pathlib import Path
from typing import Mapping, Optional

import markdown

from .errors import FileSystemError
from .logging import get_logger

HEAD_OPEN_RE = re.compile(r"<head\b[^>]*>", re.IGNORECASE)
PLACEHOLDER_RE = re.compile(r"\{\{\s*(?P<key>[A-Za-z0-9_.-]+)\s*\}\}")
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "codehilite"]
MARKDOWN_EXTENSION_CONFIGS = {"codehilite": {"guess_lang": False, "css_class": "highlight"}}

DEFAULT_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  <meta name="description" content="{{ description }}">
</head>
<body>
  <main>
    {{ content }}
  </main>
</body>
</html>
"""

logger = get_logger("render")


def markdown_to_html(body: str) -> tuple[str, str]:
    """Convert a markdown body, returning ``(html, toc_html)``."""
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_EXTENSION_CONFIGS)
    html_content = md.convert(body)
    toc_html = getattr(md, "toc", "")
    md.reset()
    return html_content, toc_html


def _template_value(value: object) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return None


def render_template(template: str, context: Mapping[str, object]) -> str:
    # content is substituted last so placeholders inside the body survive.
    late_keys = {"content", "toc"}

    def repl(match: re.Match) -> str:
        key = match.group("key")
        if key in late_keys:
            return match.group(0)
        value = _template_value(context.get(key))
        return html.escape(value) if value is not None else ""

    output = PLACEHOLDER_RE.sub(repl, template)
    for key in late_keys:
        value = _template_value(context.get(key)) or ""
        output = re.sub(r"\{\{\s*" + key + r"\s*\}\}", lambda _m, v=value: v, output)
    return output


def inject_head(html_text: str, snippet: str) -> str:
    if not snippet or not snippet.strip():
        return html_text
    match = HEAD_OPEN_RE.search(html_text)
    if match is None:
        logger.debug("No <head> tag found, skipping head injection")
        return html_text
    return f"{html_text[: match.end()]}\n  {snippet.strip()}\n{html_text[match.end():]}"


def write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as handle:
            handle.write(text)
    except OSError as exc:
        raise FileSystemError("write", path, exc) from exc


def copy_file(source: Path, dest: Path) -> None:
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
    except OSError as exc:
        raise FileSystemError("copy", source, exc) from exc


def remove_file(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FileSystemError("delete", path, exc) from exc
    return True
