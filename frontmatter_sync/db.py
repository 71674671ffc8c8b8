"""Local SQLite storage for run history and per-document rule memory."""

from __future__ import annotations

import json
import os
import sqlite3
import threading
from datetime import datetime, timedelta


class LocalStateDB:
    """Simple local SQLite storage for runs, document results and rule state.

    ``rule_state`` holds the value a direct rule last emitted for a document,
    keyed by (doc_path, rule_key). It is per document on purpose: settings are
    shared by every note, the remembered value is not.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._init_db()
        self._harden_permissions()

    def _connect(self):
        return sqlite3.connect(self.db_path)

    def _harden_permissions(self):
        try:
            if os.path.exists(self.db_path):
                os.chmod(self.db_path, 0o600)
        except OSError:
            pass

    def _init_db(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    started_at TEXT NOT NULL,
                    ended_at TEXT,
                    action TEXT NOT NULL,
                    dry_run INTEGER NOT NULL,
                    vault_dir TEXT,
                    summary_json TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_id INTEGER,
                    doc_path TEXT NOT NULL,
                    status TEXT NOT NULL,
                    tags_before TEXT,
                    tags_after TEXT,
                    error_text TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(run_id) REFERENCES runs(id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS rule_state (
                    doc_path TEXT NOT NULL,
                    rule_key TEXT NOT NULL,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (doc_path, rule_key)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_doc_path ON documents (doc_path)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_run_id ON documents (run_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_status ON documents (status)")

    # --- Runs ---

    def start_run(self, action: str, dry_run: bool, vault_dir: str = "") -> int:
        now = datetime.now().isoformat(timespec="seconds")
        with self._lock, self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO runs (started_at, action, dry_run, vault_dir) VALUES (?, ?, ?, ?)",
                (now, action, int(dry_run), vault_dir),
            )
            return int(cur.lastrowid)

    def finish_run(self, run_id: int, summary: dict):
        with self._lock, self._connect() as conn:
            conn.execute(
                "UPDATE runs SET ended_at = ?, summary_json = ? WHERE id = ?",
                (datetime.now().isoformat(timespec="seconds"), json.dumps(summary, ensure_ascii=False), run_id),
            )

    def get_recent_runs(self, limit: int = 10) -> list[dict]:
        with self._lock, self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT id, started_at, ended_at, action, dry_run, vault_dir, summary_json
                FROM runs
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        result = []
        for row in rows:
            entry = dict(row)
            try:
                entry["summary"] = json.loads(entry.pop("summary_json") or "{}")
            except json.JSONDecodeError:
                entry["summary"] = {}
            result.append(entry)
        return result

    # --- Documents ---

    def record_document(self, run_id: int | None, doc_path: str, status: str,
                        tags_before: list | None = None, tags_after: list | None = None, error: str = ""):
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO documents (run_id, doc_path, status, tags_before, tags_after, error_text, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    doc_path,
                    status,
                    json.dumps(tags_before or [], ensure_ascii=False),
                    json.dumps(tags_after or [], ensure_ascii=False),
                    error[:500],
                    datetime.now().isoformat(timespec="seconds"),
                ),
            )

    def count_statuses(self, run_id: int) -> dict[str, int]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) FROM documents WHERE run_id = ? GROUP BY status",
                (run_id,),
            ).fetchall()
            return {row[0]: int(row[1]) for row in rows}

    def purge_old_runs(self, keep_days: int = 90) -> dict:
        """Delete runs and their document rows older than keep_days."""
        cutoff = (datetime.now() - timedelta(days=keep_days)).isoformat(timespec="seconds")
        with self._lock, self._connect() as conn:
            old_run_ids = [
                row[0] for row in
                conn.execute("SELECT id FROM runs WHERE started_at < ?", (cutoff,)).fetchall()
            ]
            if not old_run_ids:
                return {"runs": 0, "documents": 0}
            placeholders = ",".join("?" for _ in old_run_ids)
            docs = conn.execute(f"DELETE FROM documents WHERE run_id IN ({placeholders})", old_run_ids).rowcount
            runs = conn.execute(f"DELETE FROM runs WHERE id IN ({placeholders})", old_run_ids).rowcount
            return {"runs": runs, "documents": docs}

    # --- Rule state ---

    def load_rule_state(self, doc_path: str) -> dict:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                "SELECT rule_key, value_json FROM rule_state WHERE doc_path = ?",
                (doc_path,),
            ).fetchall()
        state = {}
        for rule_key, value_json in rows:
            try:
                state[rule_key] = json.loads(value_json)
            except json.JSONDecodeError:
                continue
        return state

    def save_rule_state(self, doc_path: str, state: dict):
        """Replace the stored state of a document. None values are not kept."""
        now = datetime.now().isoformat(timespec="seconds")
        with self._lock, self._connect() as conn:
            conn.execute("DELETE FROM rule_state WHERE doc_path = ?", (doc_path,))
            for rule_key, value in state.items():
                if value is None:
                    continue
                conn.execute(
                    "INSERT INTO rule_state (doc_path, rule_key, value_json, updated_at) VALUES (?, ?, ?, ?)",
                    # dates from YAML are stored as text; sanitizing uses str() anyway
                    (doc_path, rule_key, json.dumps(value, ensure_ascii=False, default=str), now),
                )

    def forget_document(self, doc_path: str) -> int:
        with self._lock, self._connect() as conn:
            cur = conn.execute("DELETE FROM rule_state WHERE doc_path = ?", (doc_path,))
            return cur.rowcount
