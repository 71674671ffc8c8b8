"""YAML frontmatter: locate, parse and rewrite the metadata block of a note."""

from __future__ import annotations

import logging
import re

import yaml

from .exceptions import FrontmatterError

_log = logging.getLogger("frontmatter_sync")

_FRONTMATTER_RE = re.compile(r"^---[ \t]*\r?\n([\s\S]*?)\r?\n---[ \t]*(?:\r?\n|$)")


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Return (yaml_block, body). yaml_block is None when there is no block."""
    match = _FRONTMATTER_RE.match(text or "")
    if not match:
        return None, text or ""
    return match.group(1), text[match.end():]


def parse_frontmatter(text: str) -> dict | None:
    """Parsed frontmatter mapping, or None if missing or unreadable.

    Parse failures are not raised: a note with broken YAML is treated like a
    note without metadata.
    """
    block, _ = split_frontmatter(text)
    if block is None:
        return None
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        _log.debug("Frontmatter-Parsing fehlgeschlagen: %s", str(exc).splitlines()[0] if str(exc) else exc)
        return None
    if not isinstance(data, dict):
        if data is not None:
            _log.debug("Frontmatter ist keine Zuordnung (%s), ignoriert", type(data).__name__)
        return None
    return data


def render_frontmatter(data: dict, newline: str = "\n") -> str:
    if not data:
        return f"---{newline}---{newline}"
    dumped = yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    if newline != "\n":
        dumped = dumped.replace("\n", newline)
    return f"---{newline}{dumped}---{newline}"


def replace_frontmatter(text: str, data: dict) -> str:
    """Swap the frontmatter block for ``data``; the body is kept byte-for-byte.

    The block keeps its line ending (LF or CRLF).
    """
    match = _FRONTMATTER_RE.match(text or "")
    if not match:
        raise FrontmatterError("Dokument hat keinen Frontmatter-Block")
    newline = "\r\n" if "\r\n" in match.group(0) else "\n"
    return render_frontmatter(data, newline) + text[match.end():]
