"""Document processing: sync a single note or a whole vault."""

from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import yaml

from .config import (
    DOCUMENT_EXTENSIONS,
    EXCLUDE_DIRS,
    SYNC_WORKERS,
    log,
)
from .constants import (
    CHANGED_STATUSES,
    SKIPPED_STATUSES,
    STATUS_ERROR,
    STATUS_NO_FRONTMATTER,
    STATUS_UNCHANGED,
    STATUS_UPDATED,
    STATUS_WOULD_UPDATE,
    TAGS_FIELD,
)
from .db import LocalStateDB
from .engine import synchronize_frontmatter
from .exceptions import DocumentWriteError, SyncError
from .frontmatter import parse_frontmatter, replace_frontmatter
from .models import BatchSummary
from .settings import SyncSettings
from .utils import _coerce_tag_list


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def iter_documents(vault_dir: str, extensions=DOCUMENT_EXTENSIONS, exclude_dirs=EXCLUDE_DIRS) -> list[Path]:
    """All notes below vault_dir, sorted, skipping excluded directories."""
    found = []
    for root, dirs, files in os.walk(vault_dir):
        dirs[:] = sorted(d for d in dirs if d not in exclude_dirs)
        for name in files:
            if name.lower().endswith(tuple(extensions)):
                found.append(Path(root) / name)
    return sorted(found)


def document_key(path, vault_dir: str | None = None) -> str:
    """Stable identity of a note: its POSIX path relative to the vault."""
    path = Path(path).resolve()
    if vault_dir:
        try:
            return path.relative_to(Path(vault_dir).resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _write_document(path: Path, text: str) -> tuple[int, int]:
    """Atomic write via a hidden temp file. Returns (mtime_ns, size) of the written file."""
    tmp_path = path.with_name(f".{path.name}.sync-tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            st = os.fstat(f.fileno())
        os.replace(tmp_path, path)
        return st.st_mtime_ns, st.st_size
    except OSError as exc:
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError:
            pass
        raise DocumentWriteError(f"Schreiben fehlgeschlagen: {exc}", str(path)) from exc


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

def sync_document(path, settings: SyncSettings, run_db: LocalStateDB | None = None,
                  dry_run: bool = True, vault_dir: str | None = None,
                  run_id: int | None = None, written_mtimes: dict | None = None) -> str:
    """Reconcile one note's tags with its frontmatter. Returns the status.

    In dry-run mode the file is not written and rule state is not stored, so a
    later live run still retracts what the last live run emitted.
    ``written_mtimes`` (absolute path -> (mtime_ns, size)) receives the
    signature of every file this call rewrote.
    """
    path = Path(path)
    doc_key = document_key(path, vault_dir)

    with open(path, "r", encoding="utf-8", newline="") as f:
        text = f.read()

    frontmatter = parse_frontmatter(text)
    if frontmatter is None:
        log.debug(f"{doc_key}: kein lesbarer Frontmatter, uebersprungen")
        if run_db:
            run_db.record_document(run_id, doc_key, STATUS_NO_FRONTMATTER)
        return STATUS_NO_FRONTMATTER

    rule_state = run_db.load_rule_state(doc_key) if run_db else {}
    tags_before = _coerce_tag_list(frontmatter.get(TAGS_FIELD))
    updated, result = synchronize_frontmatter(frontmatter, settings.rules, settings.gating, rule_state)

    if result.skipped_reason:
        log.debug(f"{doc_key}: uebersprungen ({result.skipped_reason})")
        if run_db:
            run_db.record_document(run_id, doc_key, result.skipped_reason, tags_before, tags_before)
        return result.skipped_reason

    if updated == frontmatter:
        status = STATUS_UNCHANGED
    elif dry_run:
        status = STATUS_WOULD_UPDATE
        log.info(f"[yellow]TESTLAUF[/yellow] {doc_key}: {tags_before} -> {result.tags or []}")
    else:
        signature = _write_document(path, replace_frontmatter(text, updated))
        if written_mtimes is not None:
            written_mtimes[os.path.abspath(path)] = signature
        status = STATUS_UPDATED
        log.info(
            f"[green]Aktualisiert[/green] {doc_key}: {tags_before} -> {result.tags or []}",
            extra={"doc_path": doc_key, "action": "sync", "run_id": run_id, "status": status},
        )

    if run_db:
        if not dry_run:
            run_db.save_rule_state(doc_key, result.rule_state)
        run_db.record_document(run_id, doc_key, status, tags_before, result.tags or [])
    return status


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def _tally(summary: BatchSummary, status: str):
    summary.count(status)
    if status in CHANGED_STATUSES:
        summary.changed += 1
    elif status == STATUS_UNCHANGED:
        summary.unchanged += 1
    elif status in SKIPPED_STATUSES:
        summary.skipped += 1


def _record_failure(summary: BatchSummary, run_db: LocalStateDB | None, run_id: int | None,
                    doc_key: str, exc: Exception):
    summary.errors += 1
    summary.count(STATUS_ERROR)
    log.error(f"Fehler bei {doc_key}: {exc}", extra={"doc_path": doc_key, "run_id": run_id, "status": STATUS_ERROR})
    if run_db:
        try:
            run_db.record_document(run_id, doc_key, STATUS_ERROR, error=str(exc))
        except Exception as db_exc:
            log.warning(f"Fehler konnte nicht gespeichert werden ({doc_key}): {db_exc}")


_DOCUMENT_ERRORS = (OSError, UnicodeDecodeError, SyncError, yaml.YAMLError)


def sync_paths(paths, settings: SyncSettings, run_db: LocalStateDB | None = None,
               dry_run: bool = True, vault_dir: str | None = None, run_id: int | None = None,
               workers: int = SYNC_WORKERS, written_mtimes: dict | None = None) -> BatchSummary:
    """Sync the given notes. One failing note never stops the others."""
    paths = list(paths)
    if not settings.found:
        log.warning(f"Settings-Datei fehlt ({settings.path}) - keine Synchronisation")
        return BatchSummary()
    summary = BatchSummary(considered=len(paths))
    batch_start = time.perf_counter()

    if workers <= 1 or len(paths) <= 1:
        for path in paths:
            doc_key = document_key(path, vault_dir)
            try:
                _tally(summary, sync_document(path, settings, run_db, dry_run, vault_dir, run_id, written_mtimes))
            except _DOCUMENT_ERRORS as exc:
                _record_failure(summary, run_db, run_id, doc_key, exc)
    else:
        log.info(f"[bold]PARALLEL[/bold] Starte {workers} Worker")
        aborted = False
        pool = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = {
                pool.submit(sync_document, path, settings, run_db, dry_run, vault_dir, run_id, written_mtimes):
                    document_key(path, vault_dir)
                for path in paths
            }
            for future in as_completed(futures):
                doc_key = futures[future]
                try:
                    _tally(summary, future.result())
                except _DOCUMENT_ERRORS as exc:
                    _record_failure(summary, run_db, run_id, doc_key, exc)
        except KeyboardInterrupt:
            aborted = True
            log.warning("Sync durch Benutzer abgebrochen")
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        finally:
            if not aborted:
                pool.shutdown(wait=True, cancel_futures=False)

    summary.elapsed_sec = time.perf_counter() - batch_start
    return summary


def sync_vault(vault_dir: str, settings: SyncSettings, run_db: LocalStateDB | None = None,
               dry_run: bool = True, run_id: int | None = None,
               workers: int = SYNC_WORKERS) -> BatchSummary:
    """Sync every note in the vault and report counts."""
    log.info(f"[bold]SYNC START[/bold] - Vault: {vault_dir}{' (TESTLAUF)' if dry_run else ''}")
    paths = iter_documents(vault_dir)
    log.info(f"  {len(paths)} Dokumente gefunden")
    if not paths:
        log.info("[yellow]Keine Dokumente gefunden.[/yellow]")
        return BatchSummary()

    summary = sync_paths(paths, settings, run_db, dry_run, vault_dir, run_id, workers)
    log.info(
        f"[bold]SYNC FERTIG[/bold] - {summary.changed}/{summary.considered} "
        f"{'wuerden aktualisiert' if dry_run else 'aktualisiert'}, "
        f"{summary.skipped} uebersprungen, {summary.errors} Fehler, {summary.elapsed_sec:.1f}s gesamt"
    )
    return summary
