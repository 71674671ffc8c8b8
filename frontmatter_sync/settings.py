"""Sync settings: gating tag lists + mapping rules from sync_settings.json."""

from __future__ import annotations

import json
import os

from .config import log
from .constants import (
    LEGACY_REFERENCE_FIELD,
    LEGACY_REFERENCE_PREFIX,
    SETTINGS_BLOCK_KEYS,
    SETTINGS_REQUIRE_KEYS,
    SETTINGS_RULES_KEY,
    STRATEGIES,
    STRATEGY_DIRECT,
    STRATEGY_ENUMERATED,
    STRATEGY_REFERENCE,
)
from .exceptions import ConfigError
from .models import DirectRule, EnumeratedRule, GatingConfig, MappingRule, ReferenceRule


# ---------------------------------------------------------------------------
# Rule (de)serialization
# ---------------------------------------------------------------------------

def _legacy_rules() -> list[MappingRule]:
    return [ReferenceRule(field_name=LEGACY_REFERENCE_FIELD, tag_prefix=LEGACY_REFERENCE_PREFIX)]


def _parse_pairs(raw_pairs, index: int, path: str) -> list[tuple]:
    if isinstance(raw_pairs, dict):
        raw_pairs = [{"value": k, "tag": v} for k, v in raw_pairs.items()]
    if not isinstance(raw_pairs, list):
        raise ConfigError(f"Regel #{index}: 'pairs' muss eine Liste sein", path, index)
    pairs = []
    for pair in raw_pairs:
        if isinstance(pair, dict):
            field_value, tag_value = pair.get("value"), pair.get("tag")
        elif isinstance(pair, (list, tuple)) and len(pair) == 2:
            field_value, tag_value = pair
        else:
            raise ConfigError(f"Regel #{index}: ungueltiges Paar {pair!r}", path, index)
        if tag_value is None or str(tag_value).strip() == "":
            raise ConfigError(f"Regel #{index}: Paar fuer {field_value!r} ohne Tag", path, index)
        pairs.append((field_value, str(tag_value)))
    return pairs


def rule_from_dict(data: dict, index: int = 0, path: str = "") -> MappingRule:
    """Build a mapping rule from its settings entry. Raises ConfigError."""
    if not isinstance(data, dict):
        raise ConfigError(f"Regel #{index}: Eintrag muss ein Objekt sein", path, index)
    field_name = str(data.get("field") or data.get("fieldName") or "").strip()
    if not field_name:
        raise ConfigError(f"Regel #{index}: 'field' fehlt", path, index)
    strategy = str(data.get("strategy", "")).strip().lower()
    rule_id = str(data.get("id", "") or "").strip()

    if strategy == STRATEGY_DIRECT:
        return DirectRule(field_name=field_name, rule_id=rule_id)
    if strategy == STRATEGY_ENUMERATED:
        pairs = _parse_pairs(data.get("pairs", []), index, path)
        if not pairs:
            log.warning(f"Regel #{index} ({field_name}): keine Paare konfiguriert, erzeugt nie Tags")
        return EnumeratedRule(field_name=field_name, pairs=pairs, rule_id=rule_id)
    if strategy == STRATEGY_REFERENCE:
        prefix = str(data.get("tagPrefix", "") or "")
        if not prefix:
            # An empty prefix would retract every tag of the document
            raise ConfigError(f"Regel #{index} ({field_name}): 'tagPrefix' darf nicht leer sein", path, index)
        return ReferenceRule(field_name=field_name, tag_prefix=prefix, rule_id=rule_id)
    raise ConfigError(
        f"Regel #{index} ({field_name}): unbekannte Strategie '{strategy}' (erlaubt: {', '.join(STRATEGIES)})",
        path, index,
    )


def rule_to_dict(rule: MappingRule) -> dict:
    entry: dict = {}
    if rule.rule_id:
        entry["id"] = rule.rule_id
    entry["field"] = rule.field_name
    entry["strategy"] = rule.strategy
    if isinstance(rule, EnumeratedRule):
        entry["pairs"] = [{"value": v, "tag": t} for v, t in rule.pairs]
    elif isinstance(rule, ReferenceRule):
        entry["tagPrefix"] = rule.tag_prefix
    return entry


def _read_tag_list(data: dict, keys: tuple, path: str) -> list[str]:
    for key in keys:
        if key not in data:
            continue
        raw = data.get(key) or []
        if not isinstance(raw, list):
            raise ConfigError(f"'{key}' muss eine Liste sein", path)
        return _dedupe([str(t).strip() for t in raw if str(t).strip()])
    return []


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


# ---------------------------------------------------------------------------
# Settings file
# ---------------------------------------------------------------------------

class SyncSettings:
    """Gating lists and mapping rules loaded from sync_settings.json.

    Without a settings file ``found`` is False: the defaults are kept so the
    file can be created from them, but no note is synchronized.
    """

    def __init__(self, path: str):
        self.path = path
        self.sync_tags: list[str] = []
        self.ignore_tags: list[str] = []
        self.rules: list[MappingRule] = []
        self.found = False
        self.load()

    @property
    def gating(self) -> GatingConfig:
        return GatingConfig(require_tags=list(self.sync_tags), block_tags=list(self.ignore_tags))

    def load(self):
        if not os.path.exists(self.path):
            self.sync_tags = []
            self.ignore_tags = []
            self.rules = _legacy_rules()
            self.found = False
            log.warning(f"Settings-Datei nicht gefunden: {self.path} - Sync ist deaktiviert")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Settings-Datei ist kein gueltiges JSON: {exc}", self.path) from exc
        if not isinstance(data, dict):
            raise ConfigError("Settings-Datei muss ein JSON-Objekt enthalten", self.path)

        sync_tags = _read_tag_list(data, SETTINGS_REQUIRE_KEYS, self.path)
        ignore_tags = _read_tag_list(data, SETTINGS_BLOCK_KEYS, self.path)

        if SETTINGS_RULES_KEY in data:
            raw_rules = data.get(SETTINGS_RULES_KEY) or []
            if not isinstance(raw_rules, list):
                raise ConfigError(f"'{SETTINGS_RULES_KEY}' muss eine Liste sein", self.path)
            rules = [rule_from_dict(entry, i, self.path) for i, entry in enumerate(raw_rules)]
        else:
            rules = _legacy_rules()

        keys = [rule.key for rule in rules]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ConfigError(f"Doppelte Regel-IDs: {', '.join(duplicates)} ('id' setzen)", self.path)

        self.sync_tags = sync_tags
        self.ignore_tags = ignore_tags
        self.rules = rules
        self.found = True
        if not self.sync_tags:
            log.info("Settings: 'syncTags' ist leer - alle Dokumente ohne Ignore-Tag werden synchronisiert")
        log.debug(f"Settings geladen: {len(self.rules)} Regeln, {len(self.sync_tags)} Sync-Tags, "
                  f"{len(self.ignore_tags)} Ignore-Tags")

    def to_dict(self) -> dict:
        return {
            "syncTags": list(self.sync_tags),
            "ignoreTags": list(self.ignore_tags),
            SETTINGS_RULES_KEY: [rule_to_dict(rule) for rule in self.rules],
        }

    def save(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            f.write("\n")
        self.found = True

    # --- Tag list editing ---

    def _add(self, target: list[str], tag: str) -> bool:
        tag = (tag or "").strip()
        if not tag or tag in target:
            return False
        target.append(tag)
        self.save()
        return True

    def _remove(self, target: list[str], tag: str) -> bool:
        tag = (tag or "").strip()
        if tag not in target:
            return False
        target.remove(tag)
        self.save()
        return True

    def add_sync_tag(self, tag: str) -> bool:
        return self._add(self.sync_tags, tag)

    def remove_sync_tag(self, tag: str) -> bool:
        return self._remove(self.sync_tags, tag)

    def add_ignore_tag(self, tag: str) -> bool:
        return self._add(self.ignore_tags, tag)

    def remove_ignore_tag(self, tag: str) -> bool:
        return self._remove(self.ignore_tags, tag)
