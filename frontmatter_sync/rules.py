"""Mapping rule strategies: retract what a rule may have added, then emit.

Each ``_apply_*`` function works in place on the working tag set and the
document's rule state. Both are copies owned by the engine for the duration
of one reconciliation call.
"""

from __future__ import annotations

from typing import Any, Mapping

from .models import DirectRule, EnumeratedRule, MappingRule, ReferenceRule
from .utils import (
    _as_elements,
    _is_empty_value,
    extract_display_name,
    sanitize_tag_value,
)


def _add_tag(tags: set[str], tag: str):
    # sanitize("") is legal but an empty tag can't be written back
    if tag:
        tags.add(tag)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _apply_direct(rule: DirectRule, tags: set[str], metadata: Mapping[str, Any],
                  rule_state: dict[str, Any]):
    previous = rule_state.get(rule.key)
    if previous is not None:
        for element in _as_elements(previous):
            tags.discard(sanitize_tag_value(element))

    value = metadata.get(rule.field_name)
    if not _is_empty_value(value):
        for element in _as_elements(value):
            _add_tag(tags, sanitize_tag_value(element))

    rule_state[rule.key] = value


def _apply_enumerated(rule: EnumeratedRule, tags: set[str], metadata: Mapping[str, Any]):
    # No memory of which pair matched last, so every possible output goes.
    for _, tag_value in rule.pairs:
        tags.discard(sanitize_tag_value(tag_value))

    value = metadata.get(rule.field_name)
    if _is_empty_value(value):
        return
    for element in _as_elements(value):
        tag_value = rule.lookup(element)
        if tag_value is not None:
            _add_tag(tags, sanitize_tag_value(tag_value))


def _apply_reference(rule: ReferenceRule, tags: set[str], metadata: Mapping[str, Any]):
    for tag in [t for t in tags if t.startswith(rule.tag_prefix)]:
        tags.discard(tag)

    value = metadata.get(rule.field_name)
    if _is_empty_value(value):
        return
    for element in _as_elements(value):
        name = extract_display_name(element)
        if name:
            tags.add(rule.tag_prefix + sanitize_tag_value(name))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def apply_rule(rule: MappingRule, tags: set[str], metadata: Mapping[str, Any],
               rule_state: dict[str, Any]):
    """Apply one rule's retract-then-emit step to ``tags`` (and ``rule_state``)."""
    if isinstance(rule, DirectRule):
        _apply_direct(rule, tags, metadata, rule_state)
    elif isinstance(rule, EnumeratedRule):
        _apply_enumerated(rule, tags, metadata)
    elif isinstance(rule, ReferenceRule):
        _apply_reference(rule, tags, metadata)
    else:
        raise TypeError(f"Unbekannter Regeltyp: {type(rule).__name__}")
