"""Data models and dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from .constants import (
    STATUS_BLOCKED,
    STATUS_NOT_REQUIRED,
    STRATEGY_DIRECT,
    STRATEGY_ENUMERATED,
    STRATEGY_REFERENCE,
)
from .utils import _values_equal


# ---------------------------------------------------------------------------
# Mapping rules (closed set: DirectRule | EnumeratedRule | ReferenceRule)
# ---------------------------------------------------------------------------

@dataclass
class DirectRule:
    """Field value becomes the tag itself; last value is remembered per document."""
    field_name: str
    rule_id: str = ""
    strategy: ClassVar[str] = STRATEGY_DIRECT

    @property
    def key(self) -> str:
        return self.rule_id or f"{self.strategy}:{self.field_name}"


@dataclass
class EnumeratedRule:
    """Lookup table of (field value, tag value) pairs; first match wins."""
    field_name: str
    pairs: list[tuple[Any, str]] = field(default_factory=list)
    rule_id: str = ""
    strategy: ClassVar[str] = STRATEGY_ENUMERATED

    @property
    def key(self) -> str:
        return self.rule_id or f"{self.strategy}:{self.field_name}"

    def lookup(self, value) -> str | None:
        for field_value, tag_value in self.pairs:
            if _values_equal(field_value, value):
                return tag_value
        return None


@dataclass
class ReferenceRule:
    """Wikilink references become ``tag_prefix + display name`` tags."""
    field_name: str
    tag_prefix: str
    rule_id: str = ""
    strategy: ClassVar[str] = STRATEGY_REFERENCE

    @property
    def key(self) -> str:
        return self.rule_id or f"{self.strategy}:{self.field_name}"


MappingRule = Union[DirectRule, EnumeratedRule, ReferenceRule]


# ---------------------------------------------------------------------------
# Gating and results
# ---------------------------------------------------------------------------

@dataclass
class GatingConfig:
    """Tag prefixes that enable (require) or suppress (block) synchronization."""
    require_tags: list[str] = field(default_factory=list)
    block_tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation call.

    ``tags`` is None when the tag attribute should be omitted. ``rule_state``
    is the document's per-rule memory after the call; callers persist it only
    when ``skipped_reason`` is empty.
    """
    tags: list[str] | None
    rule_state: dict[str, Any]
    changed: bool
    skipped_reason: str = ""

    @property
    def blocked(self) -> bool:
        return self.skipped_reason == STATUS_BLOCKED

    @property
    def not_required(self) -> bool:
        return self.skipped_reason == STATUS_NOT_REQUIRED

    @property
    def unchanged(self) -> bool:
        return bool(self.skipped_reason) or not self.changed


@dataclass
class BatchSummary:
    """Aggregate counts of a batch run over a vault."""
    considered: int = 0
    changed: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    elapsed_sec: float = 0.0
    statuses: dict[str, int] = field(default_factory=dict)

    def count(self, status: str):
        self.statuses[status] = self.statuses.get(status, 0) + 1

    def as_dict(self) -> dict:
        return {
            "considered": self.considered,
            "changed": self.changed,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "errors": self.errors,
            "elapsed_sec": round(self.elapsed_sec, 3),
            "statuses": dict(self.statuses),
        }
