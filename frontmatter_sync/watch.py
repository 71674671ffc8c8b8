"""Watch mode: react to filesystem events and re-sync notes once their edits have settled.

Events come from a watchdog ``Observer`` (inotify/FSEvents/...) or, with
``WATCH_POLLING=1``, from a ``PollingObserver`` for network mounts. Observer
callbacks run on a background thread; they only mark paths in the debouncer.
Syncing happens on the calling thread.
"""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .config import (
    DEBOUNCE_SEC,
    DOCUMENT_EXTENSIONS,
    EXCLUDE_DIRS,
    WATCH_INTERVAL_SEC,
    WATCH_POLLING,
    log,
)
from .db import LocalStateDB
from .exceptions import SyncError
from .models import BatchSummary
from .processing import iter_documents, sync_paths
from .settings import SyncSettings

_TICK_SEC = 0.5


class ChangeDebouncer:
    """Releases a path once no new event arrived for ``delay`` seconds.

    Every event restarts the wait, like a debounced modify handler. Safe to
    feed from the observer thread.
    """

    def __init__(self, delay: float = DEBOUNCE_SEC):
        self.delay = max(0.0, delay)
        self._lock = threading.Lock()
        self._pending: dict[str, float] = {}

    def touch(self, path: str, now: float):
        with self._lock:
            self._pending[path] = now

    def discard(self, path: str):
        with self._lock:
            self._pending.pop(path, None)

    def due(self, now: float) -> list[str]:
        with self._lock:
            ready = sorted(p for p, changed_at in self._pending.items() if now - changed_at >= self.delay)
            for path in ready:
                self._pending.pop(path, None)
        return ready

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)


class VaultEventHandler(FileSystemEventHandler):
    """Forwards note events of one vault to a ChangeDebouncer."""

    def __init__(self, vault_dir: str, debouncer: ChangeDebouncer, clock=time.monotonic,
                 extensions=DOCUMENT_EXTENSIONS, exclude_dirs=EXCLUDE_DIRS):
        super().__init__()
        self.vault_root = Path(vault_dir).resolve()
        self.debouncer = debouncer
        self.clock = clock
        self.extensions = tuple(extensions)
        self.exclude_dirs = frozenset(exclude_dirs)

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory:
            return
        if event.event_type == EVENT_TYPE_DELETED:
            self.debouncer.discard(os.path.abspath(os.fsdecode(event.src_path)))
            return
        if event.event_type == EVENT_TYPE_MOVED:
            self.debouncer.discard(os.path.abspath(os.fsdecode(event.src_path)))
            path = os.fsdecode(event.dest_path)
        elif event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
            path = os.fsdecode(event.src_path)
        else:
            return
        if self.is_relevant(path):
            log.debug(f"WATCH Ereignis: {event.event_type} - {path}")
            self.debouncer.touch(os.path.abspath(path), self.clock())

    def is_relevant(self, path: str) -> bool:
        """Note inside the vault, right extension, not hidden, not in an excluded folder."""
        candidate = Path(path)
        name = candidate.name
        # hidden files include our own ".<name>.sync-tmp" write buffers
        if name.startswith(".") or name.endswith("~"):
            return False
        if not name.lower().endswith(self.extensions):
            return False
        try:
            relative = candidate.resolve().relative_to(self.vault_root)
        except ValueError:
            return False
        return not any(part in self.exclude_dirs for part in relative.parts[:-1])


def _file_signature(path: str) -> tuple[int, int] | None:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return st.st_mtime_ns, st.st_size


def _is_own_write(path: str, written: dict) -> bool:
    """True if the file still carries exactly the mtime/size our last write produced."""
    expected = written.pop(path, None)
    return expected is not None and _file_signature(path) == expected


def _make_observer(use_polling: bool, interval_sec: float):
    if use_polling:
        return PollingObserver(timeout=interval_sec)
    return Observer()


def watch_vault(vault_dir: str, settings: SyncSettings, run_db: LocalStateDB | None = None,
                dry_run: bool = True, run_id: int | None = None,
                interval_sec: float = WATCH_INTERVAL_SEC, debounce_sec: float = DEBOUNCE_SEC,
                include_existing: bool = False, max_cycles: int = 0,
                use_polling: bool = WATCH_POLLING, observer=None,
                sleep=time.sleep, clock=time.monotonic, tick_sec: float = _TICK_SEC) -> BatchSummary:
    """Watch until interrupted (or ``max_cycles`` ticks) and sync notes whose edits settled."""
    debouncer = ChangeDebouncer(debounce_sec)
    handler = VaultEventHandler(vault_dir, debouncer, clock)
    written: dict[str, tuple[int, int]] = {}

    if include_existing:
        now = clock()
        for path in iter_documents(vault_dir):
            debouncer.touch(os.path.abspath(path), now)

    observer = observer or _make_observer(use_polling, interval_sec)
    observer.schedule(handler, vault_dir, recursive=True)
    observer.start()
    log.info(
        f"WATCH gestartet: {'Polling ' + str(interval_sec) + 's' if use_polling else 'Ereignisse'} | "
        f"Debounce={debounce_sec}s | Vault={vault_dir}"
    )

    total = BatchSummary()
    cycle = 0
    try:
        while not max_cycles or cycle < max_cycles:
            cycle += 1
            due = [p for p in debouncer.due(clock()) if not _is_own_write(p, written)]
            if due:
                log.info(f"WATCH Zyklus {cycle}: {len(due)} geaenderte Dokumente")
                summary = sync_paths(due, settings, run_db, dry_run, vault_dir, run_id,
                                     workers=1, written_mtimes=written)
                _merge(total, summary)

            if max_cycles and cycle >= max_cycles:
                break
            if not observer.is_alive():
                raise SyncError("Dateibeobachter wurde unerwartet beendet")
            sleep(tick_sec)
    finally:
        observer.stop()
        observer.join(timeout=5.0)

    return total


def _merge(total: BatchSummary, part: BatchSummary):
    total.considered += part.considered
    total.changed += part.changed
    total.unchanged += part.unchanged
    total.skipped += part.skipped
    total.errors += part.errors
    total.elapsed_sec += part.elapsed_sec
    for status, count in part.statuses.items():
        total.statuses[status] = total.statuses.get(status, 0) + count
