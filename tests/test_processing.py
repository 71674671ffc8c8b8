"""Tests for frontmatter_sync.processing (single notes and vault batches)."""

import json
import os

import pytest

from frontmatter_sync.db import LocalStateDB
from frontmatter_sync.frontmatter import parse_frontmatter
from frontmatter_sync.processing import (
    document_key,
    iter_documents,
    sync_document,
    sync_paths,
    sync_vault,
)
from frontmatter_sync.settings import SyncSettings

NOTE_A = """---
title: A
priority: urgent
tags:
  - source/web
---
Body A
"""


@pytest.fixture
def vault(tmp_path):
    root = tmp_path / "vault"
    (root / "notes").mkdir(parents=True)
    (root / ".obsidian").mkdir()
    (root / "a.md").write_text(NOTE_A, encoding="utf-8")
    (root / "notes" / "b.md").write_text("# Kein Frontmatter\n", encoding="utf-8")
    (root / "notes" / "c.md").write_text(
        "---\npriority: low\ntags: [source/x, template]\n---\n", encoding="utf-8")
    (root / "notes" / "d.md").write_text(
        "---\npriority: low\ntags: [note]\n---\n", encoding="utf-8")
    (root / ".obsidian" / "e.md").write_text("---\npriority: x\n---\n", encoding="utf-8")
    (root / "notes" / "readme.txt").write_text("---\npriority: x\n---\n", encoding="utf-8")
    return root


@pytest.fixture
def settings(tmp_path):
    path = tmp_path / "sync_settings.json"
    path.write_text(json.dumps({
        "syncTags": ["source"],
        "ignoreTags": ["template"],
        "rules": [{"field": "priority", "strategy": "direct"}],
    }), encoding="utf-8")
    return SyncSettings(str(path))


@pytest.fixture
def run_db(tmp_path):
    return LocalStateDB(str(tmp_path / "state.db"))


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

class TestDiscovery:
    def test_iter_documents_skips_excluded_and_other_extensions(self, vault):
        names = [p.relative_to(vault).as_posix() for p in iter_documents(str(vault))]
        assert names == ["a.md", "notes/b.md", "notes/c.md", "notes/d.md"]

    def test_document_key_relative_posix(self, vault):
        assert document_key(vault / "notes" / "c.md", str(vault)) == "notes/c.md"

    def test_document_key_outside_vault(self, vault, tmp_path):
        other = tmp_path / "elsewhere.md"
        assert document_key(other, str(vault)) == other.resolve().as_posix()


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

class TestSyncDocument:
    def test_dry_run_does_not_write(self, vault, settings, run_db):
        status = sync_document(vault / "a.md", settings, run_db, dry_run=True, vault_dir=str(vault))
        assert status == "would_update"
        assert (vault / "a.md").read_text(encoding="utf-8") == NOTE_A
        assert run_db.load_rule_state("a.md") == {}

    def test_execute_writes_tags_and_keeps_body(self, vault, settings, run_db):
        status = sync_document(vault / "a.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        assert status == "updated"
        text = (vault / "a.md").read_text(encoding="utf-8")
        assert text.endswith("---\nBody A\n")
        data = parse_frontmatter(text)
        assert data["tags"] == ["urgent", "source/web"]
        assert data["title"] == "A"
        assert run_db.load_rule_state("a.md") == {"direct:priority": "urgent"}

    def test_second_run_unchanged(self, vault, settings, run_db):
        sync_document(vault / "a.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        status = sync_document(vault / "a.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        assert status == "unchanged"

    def test_value_change_retracts_previous_tag(self, vault, settings, run_db):
        path = vault / "a.md"
        sync_document(path, settings, run_db, dry_run=False, vault_dir=str(vault))
        path.write_text(path.read_text(encoding="utf-8").replace("priority: urgent", "priority: low"),
                        encoding="utf-8")
        sync_document(path, settings, run_db, dry_run=False, vault_dir=str(vault))
        assert parse_frontmatter(path.read_text(encoding="utf-8"))["tags"] == ["source/web", "low"]
        assert run_db.load_rule_state("a.md") == {"direct:priority": "low"}

    def test_without_state_db_nothing_is_retracted(self, vault, settings):
        path = vault / "a.md"
        sync_document(path, settings, None, dry_run=False, vault_dir=str(vault))
        path.write_text(path.read_text(encoding="utf-8").replace("priority: urgent", "priority: low"),
                        encoding="utf-8")
        sync_document(path, settings, None, dry_run=False, vault_dir=str(vault))
        assert parse_frontmatter(path.read_text(encoding="utf-8"))["tags"] == ["urgent", "source/web", "low"]

    def test_no_frontmatter(self, vault, settings, run_db):
        status = sync_document(vault / "notes" / "b.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        assert status == "no_frontmatter"

    def test_blocked_untouched(self, vault, settings, run_db):
        before = (vault / "notes" / "c.md").read_text(encoding="utf-8")
        status = sync_document(vault / "notes" / "c.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        assert status == "blocked"
        assert (vault / "notes" / "c.md").read_text(encoding="utf-8") == before

    def test_not_required(self, vault, settings, run_db):
        status = sync_document(vault / "notes" / "d.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        assert status == "not_required"
        assert run_db.load_rule_state("notes/d.md") == {}

    def test_no_temp_file_left(self, vault, settings, run_db):
        sync_document(vault / "a.md", settings, run_db, dry_run=False, vault_dir=str(vault))
        assert not (vault / ".a.md.sync-tmp").exists()


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

class TestSyncVault:
    def test_dry_run_counts(self, vault, settings, run_db):
        run_id = run_db.start_run("sync_vault", True)
        summary = sync_vault(str(vault), settings, run_db, dry_run=True, run_id=run_id)
        assert summary.considered == 4
        assert summary.changed == 1
        assert summary.skipped == 3
        assert summary.errors == 0
        assert summary.statuses == {"would_update": 1, "no_frontmatter": 1, "blocked": 1, "not_required": 1}
        assert run_db.count_statuses(run_id) == summary.statuses

    def test_execute(self, vault, settings, run_db):
        summary = sync_vault(str(vault), settings, run_db, dry_run=False)
        assert summary.statuses["updated"] == 1
        again = sync_vault(str(vault), settings, run_db, dry_run=False)
        assert again.changed == 0
        assert again.unchanged == 1

    def test_unreadable_note_counted_as_error(self, vault, settings, run_db):
        (vault / "broken.md").write_bytes(b"---\npriority: x\n---\n\xff\xfe")
        run_id = run_db.start_run("sync_vault", False)
        summary = sync_vault(str(vault), settings, run_db, dry_run=False, run_id=run_id)
        assert summary.errors == 1
        assert summary.changed == 1
        assert run_db.count_statuses(run_id)["error"] == 1

    def test_parallel_workers(self, vault, settings, run_db):
        summary = sync_vault(str(vault), settings, run_db, dry_run=True, workers=3)
        assert summary.considered == 4
        assert summary.changed == 1

    def test_empty_vault(self, tmp_path, settings):
        (tmp_path / "empty").mkdir()
        summary = sync_vault(str(tmp_path / "empty"), settings)
        assert summary.considered == 0

    def test_sync_paths_missing_file(self, vault, settings):
        summary = sync_paths([vault / "missing.md"], settings, None, dry_run=True, vault_dir=str(vault))
        assert summary.errors == 1
        assert summary.statuses == {"error": 1}

    def test_written_mtimes_recorded(self, vault, settings, run_db):
        written = {}
        sync_paths([vault / "a.md"], settings, run_db, dry_run=False, vault_dir=str(vault),
                   written_mtimes=written)
        st = os.stat(vault / "a.md")
        assert written == {os.path.abspath(vault / "a.md"): (st.st_mtime_ns, st.st_size)}


# ---------------------------------------------------------------------------
# Missing settings file
# ---------------------------------------------------------------------------

class TestMissingSettings:
    def test_vault_left_untouched(self, tmp_path, run_db):
        vault = tmp_path / "vault"
        vault.mkdir()
        note = vault / "note.md"
        note.write_text("---\ntitle: x\ntags: [category/Reading, keep]\n---\n", encoding="utf-8")
        before = note.read_text(encoding="utf-8")

        settings = SyncSettings(str(tmp_path / "does_not_exist.json"))
        summary = sync_vault(str(vault), settings, run_db, dry_run=False)
        assert summary.changed == 0
        assert note.read_text(encoding="utf-8") == before
        assert run_db.load_rule_state("note.md") == {}


# ---------------------------------------------------------------------------
# Line endings
# ---------------------------------------------------------------------------

class TestLineEndings:
    def test_crlf_note_rewritten_without_mixed_endings(self, vault, settings, run_db):
        note = vault / "win.md"
        note.write_bytes(b"---\r\npriority: high\r\ntags: [source/web]\r\n---\r\nBody\r\n")
        assert sync_document(note, settings, run_db, dry_run=False, vault_dir=str(vault)) == "updated"
        raw = note.read_bytes()
        assert raw.endswith(b"---\r\nBody\r\n")
        assert b"\n" not in raw.replace(b"\r\n", b"")
