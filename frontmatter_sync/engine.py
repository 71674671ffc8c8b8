"""Tag reconciliation engine: gating, rule application, deterministic output."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from .constants import STATUS_BLOCKED, STATUS_NOT_REQUIRED, TAGS_FIELD
from .models import GatingConfig, MappingRule, ReconcileResult
from .rules import apply_rule
from .utils import _any_tag_matches, _coerce_tag_list


def order_tags(tags) -> list[str] | None:
    """Presentation order: descending lexicographic. None for an empty set."""
    if not tags:
        return None
    return sorted(set(tags), reverse=True)


def is_blocked(tags, gating: GatingConfig) -> bool:
    return _any_tag_matches(tags, gating.block_tags)


def has_required_tag(tags, gating: GatingConfig) -> bool:
    """An empty require list does not restrict anything."""
    if not gating.require_tags:
        return True
    return _any_tag_matches(tags, gating.require_tags)


def reconcile(current_tags: Sequence[str], metadata: Mapping[str, Any],
              rules: Sequence[MappingRule], gating: GatingConfig,
              rule_state: Mapping[str, Any] | None = None) -> ReconcileResult:
    """Compute a document's tags from its metadata.

    ``rule_state`` holds the document's remembered values for direct rules,
    keyed by rule key. Neither it nor ``metadata`` is mutated; the updated
    state comes back on the result.

    When a block tag matches, or require tags are configured and none
    matches, nothing runs and the result is marked skipped with the original
    tags and state.
    """
    original = list(current_tags or [])
    state = dict(rule_state or {})

    if is_blocked(original, gating):
        return ReconcileResult(tags=original or None, rule_state=state, changed=False,
                               skipped_reason=STATUS_BLOCKED)
    if not has_required_tag(original, gating):
        return ReconcileResult(tags=original or None, rule_state=state, changed=False,
                               skipped_reason=STATUS_NOT_REQUIRED)

    working = set(original)
    for rule in rules:
        apply_rule(rule, working, metadata, state)

    tags = order_tags(working)
    return ReconcileResult(tags=tags, rule_state=state, changed=(tags or []) != original)


def synchronize_frontmatter(frontmatter: Mapping[str, Any], rules: Sequence[MappingRule],
                            gating: GatingConfig,
                            rule_state: Mapping[str, Any] | None = None) -> tuple[dict, ReconcileResult]:
    """Apply reconciliation to a parsed frontmatter mapping.

    Returns a new mapping (``tags`` replaced or removed, every other key kept
    in place) and the reconciliation result. Compare the mapping with the
    input to decide whether the document needs to be written.
    """
    updated = dict(frontmatter)
    result = reconcile(_coerce_tag_list(frontmatter.get(TAGS_FIELD)), frontmatter, rules,
                       gating, rule_state)
    if result.skipped_reason:
        return updated, result

    if result.tags:
        updated[TAGS_FIELD] = list(result.tags)
    else:
        updated.pop(TAGS_FIELD, None)
    return updated, result
