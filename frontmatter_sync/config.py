"""Global configuration, logging setup, and shared state."""

from __future__ import annotations

import json as _json
import os
import logging
import logging.handlers
import re
import traceback
from datetime import datetime, timezone

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

load_dotenv()
console = Console()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


# --- File Paths ---
LOG_DIR = os.getenv("SYNC_LOG_DIR", "").strip() or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_FILE = os.path.join(LOG_DIR, "frontmatter_sync.log")
LOG_FILE_JSON = os.path.join(LOG_DIR, "frontmatter_sync.jsonl")
STATE_DB_FILE = os.getenv("STATE_DB_FILE", "").strip() or os.path.join(LOG_DIR, "sync_state.db")
SETTINGS_FILE = os.getenv("SYNC_SETTINGS_FILE", "").strip() or os.path.join(LOG_DIR, "sync_settings.json")

# --- Structured JSON Logging ---
STRUCTURED_LOG_ENABLED = _env_flag("STRUCTURED_LOG", "0")

_RICH_MARKUP_RE = re.compile(r"\[/?[a-z_]+(?:\s[^\]]+)?\]")


class _JsonLineFormatter(logging.Formatter):
    """Formats log records as single-line JSON (JSONL) for monitoring tools."""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        # Strip Rich markup tags like [bold], [cyan], [/cyan] etc.
        msg = _RICH_MARKUP_RE.sub("", msg)
        entry: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": msg,
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        # Attach extra structured fields if present (e.g. doc_path, action)
        for key in ("doc_path", "action", "run_id", "duration_ms", "status"):
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return _json.dumps(entry, ensure_ascii=False, default=str)


# --- Logging ---
_LOG_LEVEL_MAP = {"DEBUG": logging.DEBUG, "INFO": logging.INFO, "WARNING": logging.WARNING, "ERROR": logging.ERROR}
_LOG_LEVEL = _LOG_LEVEL_MAP.get(os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO)

# Plain-text file handler (always active)
_file_handler = logging.handlers.RotatingFileHandler(
    LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter("%(asctime)s  %(message)s", datefmt="%H:%M:%S"))

_handlers: list[logging.Handler] = [
    RichHandler(console=console, show_path=False, markup=True, rich_tracebacks=True),
    _file_handler,
]

# Structured JSON file handler (opt-in via STRUCTURED_LOG=1)
if STRUCTURED_LOG_ENABLED:
    _json_handler = logging.handlers.RotatingFileHandler(
        LOG_FILE_JSON, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8",
    )
    _json_handler.setFormatter(_JsonLineFormatter())
    _handlers.append(_json_handler)

logging.basicConfig(
    level=_LOG_LEVEL,
    format="%(asctime)s  %(message)s",
    datefmt="%H:%M:%S",
    handlers=_handlers,
)
log = logging.getLogger("frontmatter_sync")

# --- Version ---
__version__ = "1.0.0"

# --- Vault ---
VAULT_DIR = os.getenv("VAULT_DIR", ".").strip() or "."
DOCUMENT_EXTENSIONS = tuple(ext.lower() for ext in _env_list("DOCUMENT_EXTENSIONS", ".md"))
EXCLUDE_DIRS = frozenset(_env_list("EXCLUDE_DIRS", ".obsidian,.trash,.git"))

# --- Run mode ---
DEFAULT_DRY_RUN = _env_flag("DEFAULT_DRY_RUN", "1")

# --- Worker ---
SYNC_WORKERS = int(os.getenv("SYNC_WORKERS", "1"))

# --- Watch / Debounce ---
WATCH_INTERVAL_SEC = float(os.getenv("WATCH_INTERVAL_SEC", "5"))
DEBOUNCE_SEC = float(os.getenv("DEBOUNCE_SEC", "2"))
WATCH_POLLING = _env_flag("WATCH_POLLING", "0")


def _validate_config():
    """Validate configuration at startup and warn about potential issues."""
    warnings = []
    if not os.path.isdir(VAULT_DIR):
        warnings.append(f"VAULT_DIR='{VAULT_DIR}' existiert nicht - Sync findet keine Dokumente")
    if not DOCUMENT_EXTENSIONS:
        warnings.append("DOCUMENT_EXTENSIONS ist leer - es werden keine Dokumente beruecksichtigt")
    if any(not ext.startswith(".") for ext in DOCUMENT_EXTENSIONS):
        warnings.append(f"DOCUMENT_EXTENSIONS={list(DOCUMENT_EXTENSIONS)} ohne fuehrenden Punkt")
    if SYNC_WORKERS < 1 or SYNC_WORKERS > 32:
        warnings.append(f"SYNC_WORKERS={SYNC_WORKERS} ausserhalb sinnvollem Bereich (1-32)")
    if DEBOUNCE_SEC < 0:
        warnings.append(f"DEBOUNCE_SEC={DEBOUNCE_SEC} ist negativ - wird wie 0 behandelt")
    if WATCH_POLLING and WATCH_INTERVAL_SEC < 0.5:
        warnings.append(f"WATCH_INTERVAL_SEC={WATCH_INTERVAL_SEC}s sehr kurz - hohe Plattenlast im Polling-Modus")
    for w in warnings:
        log.warning(f"[yellow]Config:[/yellow] {w}")
    return len(warnings) == 0


_validate_config()
