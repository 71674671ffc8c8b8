"""Utility functions: tag sanitizing, reference extraction, value coercion."""

from __future__ import annotations

import logging
import re

from .constants import REFERENCE_CLOSE, REFERENCE_DOC_EXTENSION, REFERENCE_OPEN

_log = logging.getLogger("frontmatter_sync")

_UNSAFE_TAG_CHARS_RE = re.compile(r"[^A-Za-z0-9_]")


# ---------------------------------------------------------------------------
# Scalar handling
# ---------------------------------------------------------------------------

def _scalar_text(value) -> str:
    """String form of a frontmatter scalar, spelled the way YAML writes it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_empty_value(value) -> bool:
    """True for values that carry nothing to emit: None, "", [] and friends."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def _as_elements(value) -> list:
    """Flatten a field value into its scalar elements.

    A scalar becomes a one-element list. Nested sequences are flattened
    because YAML reads an unquoted ``[[Note]]`` as ``[["Note"]]``.
    None elements are dropped.
    """
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        return [value]
    elements = []
    for item in value:
        elements.extend(_as_elements(item))
    return elements


def _values_equal(left, right) -> bool:
    """Value equality that does not treat booleans as numbers."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


# ---------------------------------------------------------------------------
# Value sanitizer
# ---------------------------------------------------------------------------

def sanitize_tag_value(value) -> str:
    """Turn a scalar into a tag token, keeping ``/`` hierarchy segments.

    Every character that is not an ASCII letter, digit or underscore becomes
    ``_``. ``"Sci-Fi/Space Opera!"`` -> ``"Sci_Fi/Space_Opera_"``.
    """
    segments = _scalar_text(value).split("/")
    return "/".join(_UNSAFE_TAG_CHARS_RE.sub("_", segment) for segment in segments)


# ---------------------------------------------------------------------------
# Reference extractor
# ---------------------------------------------------------------------------

def extract_display_name(raw) -> str:
    """Display name of a wikilink-style reference.

    ``"[[Projects/My Book.md|Book Alias]]"`` -> ``"My Book"``
    """
    if not raw:
        return ""
    text = _scalar_text(raw)
    if text.startswith(REFERENCE_OPEN):
        text = text[len(REFERENCE_OPEN):]
    if text.endswith(REFERENCE_CLOSE):
        text = text[:-len(REFERENCE_CLOSE)]
    tail = text.split("/")[-1]
    tail = tail.split("|")[0]
    if tail.endswith(REFERENCE_DOC_EXTENSION):
        tail = tail[:-len(REFERENCE_DOC_EXTENSION)]
    return tail.strip()


# ---------------------------------------------------------------------------
# Tag list helpers
# ---------------------------------------------------------------------------

def _coerce_tag_list(value) -> list[str]:
    """Read a stored ``tags`` value as an ordered list of unique tags.

    Accepts a YAML list, a comma-separated string, or nothing at all.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw_items = value.split(",")
    elif isinstance(value, (list, tuple)):
        raw_items = [_scalar_text(item) for item in _as_elements(value)]
    else:
        raw_items = [_scalar_text(value)]

    tags: list[str] = []
    seen: set[str] = set()
    for item in raw_items:
        tag = item.strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
    return tags


def _starts_with_any(tag: str, prefixes) -> bool:
    return any(tag.startswith(prefix) for prefix in prefixes)


def _any_tag_matches(tags, prefixes) -> bool:
    """True if any tag starts with any of the prefixes (no ``/`` boundary check)."""
    return any(_starts_with_any(tag, prefixes) for tag in tags)
