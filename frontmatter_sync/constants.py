"""Static constants: field names, strategy names, defaults."""

# Frontmatter key holding the document's tag list
TAGS_FIELD = "tags"

# Mapping rule strategies
STRATEGY_DIRECT = "direct"
STRATEGY_ENUMERATED = "enumerated"
STRATEGY_REFERENCE = "reference"
STRATEGIES = (STRATEGY_DIRECT, STRATEGY_ENUMERATED, STRATEGY_REFERENCE)

# Built-in rule used when a settings file has no "rules" key:
# [[Some/Note|Alias]] in "category" becomes category/Note
LEGACY_REFERENCE_FIELD = "category"
LEGACY_REFERENCE_PREFIX = "category/"

# Reference values
REFERENCE_OPEN = "[["
REFERENCE_CLOSE = "]]"
REFERENCE_DOC_EXTENSION = ".md"

# Settings keys (camelCase, compatible with the plugin's data.json)
SETTINGS_REQUIRE_KEYS = ("syncTags", "requireTags")
SETTINGS_BLOCK_KEYS = ("ignoreTags", "blockTags")
SETTINGS_RULES_KEY = "rules"

# Per-document sync outcomes
STATUS_UPDATED = "updated"
STATUS_WOULD_UPDATE = "would_update"
STATUS_UNCHANGED = "unchanged"
STATUS_NO_FRONTMATTER = "no_frontmatter"
STATUS_BLOCKED = "blocked"
STATUS_NOT_REQUIRED = "not_required"
STATUS_ERROR = "error"

CHANGED_STATUSES = (STATUS_UPDATED, STATUS_WOULD_UPDATE)
SKIPPED_STATUSES = (STATUS_NO_FRONTMATTER, STATUS_BLOCKED, STATUS_NOT_REQUIRED)

STATUS_LABELS = {
    STATUS_UPDATED: "Aktualisiert",
    STATUS_WOULD_UPDATE: "Wuerde aktualisiert",
    STATUS_UNCHANGED: "Unveraendert",
    STATUS_NO_FRONTMATTER: "Ohne Frontmatter",
    STATUS_BLOCKED: "Ignoriert (ignoreTags)",
    STATUS_NOT_REQUIRED: "Kein Sync-Tag",
    STATUS_ERROR: "Fehler",
}
