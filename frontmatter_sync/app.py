"""Main application: command line, sync runs, watch mode."""

from __future__ import annotations

import argparse
import os
import signal
import sys

from rich.panel import Panel

from .config import (
    DEFAULT_DRY_RUN,
    LOG_FILE,
    SETTINGS_FILE,
    STATE_DB_FILE,
    SYNC_WORKERS,
    VAULT_DIR,
    WATCH_INTERVAL_SEC,
    WATCH_POLLING,
    DEBOUNCE_SEC,
    __version__,
    console,
    log,
)
from .db import LocalStateDB
from .exceptions import ConfigError
from .processing import sync_paths, sync_vault
from .settings import SyncSettings
from .statistics import show_recent_runs, show_settings, show_summary
from .watch import watch_vault


# =========================================================================
# App class
# =========================================================================

class App:
    """Bundles settings, state DB and run bookkeeping for one CLI invocation."""

    def __init__(self, vault_dir: str = VAULT_DIR, settings_path: str = SETTINGS_FILE,
                 state_db_path: str = STATE_DB_FILE, dry_run: bool = DEFAULT_DRY_RUN):
        self.vault_dir = vault_dir
        self.dry_run = dry_run
        self.settings = SyncSettings(settings_path)
        self.run_db = LocalStateDB(state_db_path)
        self._active_run_id = None
        self._setup_signal_handlers()

    def _setup_signal_handlers(self):
        """Register signal handlers for graceful shutdown."""
        def _handle_signal(signum, frame):
            sig_name = signal.Signals(signum).name
            log.warning(f"Signal empfangen: {sig_name} - fahre sauber herunter...")
            if self._active_run_id:
                try:
                    self.run_db.finish_run(self._active_run_id, {"aborted": True, "signal": sig_name})
                    log.info(f"Run #{self._active_run_id} sauber abgeschlossen")
                except Exception:
                    pass
            raise KeyboardInterrupt
        try:
            signal.signal(signal.SIGTERM, _handle_signal)
        except (OSError, ValueError, AttributeError):
            # not in the main thread, or platform without SIGTERM
            pass

    def _start_run(self, action: str) -> int:
        run_id = self.run_db.start_run(action, self.dry_run, os.path.abspath(self.vault_dir))
        self._active_run_id = run_id
        log.info(f"Run gestartet: #{run_id} ({action})")
        return run_id

    def _finish_run(self, run_id: int, summary: dict):
        self.run_db.finish_run(run_id, summary)
        self._active_run_id = None
        log.info(f"Run abgeschlossen: #{run_id}")

    def _show_header(self):
        mode = "[red]LIVE[/red]" if not self.dry_run else "[green]TESTLAUF[/green]"
        console.print(Panel(
            f"[bold]Frontmatter Sync v{__version__}[/bold]\n"
            f"Vault: {os.path.abspath(self.vault_dir)}\n"
            f"Modus: {mode}\n"
            f"Regeln: {len(self.settings.rules)} | Sync-Tags: {len(self.settings.sync_tags)} | "
            f"Ignore-Tags: {len(self.settings.ignore_tags)}\n"
            f"Settings: {self.settings.path}\n"
            f"State-DB: {self.run_db.db_path}",
            border_style="blue",
        ))

    # --- Actions ---

    def action_sync(self, paths: list[str] | None = None, workers: int = SYNC_WORKERS) -> dict:
        run_id = self._start_run("sync_paths" if paths else "sync_vault")
        summary = None
        try:
            if paths:
                summary = sync_paths(paths, self.settings, self.run_db, self.dry_run,
                                     self.vault_dir, run_id, workers)
            else:
                summary = sync_vault(self.vault_dir, self.settings, self.run_db, self.dry_run,
                                     run_id, workers)
        finally:
            self._finish_run(run_id, summary.as_dict() if summary else {"aborted": True})
        show_summary(summary, dry_run=self.dry_run)
        return summary.as_dict()

    def action_watch(self, interval_sec: float = WATCH_INTERVAL_SEC, debounce_sec: float = DEBOUNCE_SEC,
                     include_existing: bool = False, use_polling: bool = WATCH_POLLING,
                     max_cycles: int = 0) -> dict:
        run_id = self._start_run("watch")
        console.print("[cyan]Watch laeuft. Stoppen mit Ctrl+C.[/cyan]")
        summary = None
        try:
            summary = watch_vault(self.vault_dir, self.settings, self.run_db, self.dry_run, run_id,
                                  interval_sec, debounce_sec, include_existing, max_cycles,
                                  use_polling=use_polling)
        except KeyboardInterrupt:
            log.info("WATCH beendet")
        finally:
            self._finish_run(run_id, summary.as_dict() if summary else {"aborted": True})
        if summary:
            show_summary(summary, dry_run=self.dry_run, title="Watch-Ergebnis")
            return summary.as_dict()
        return {"aborted": True}

    def action_history(self, limit: int = 10):
        show_recent_runs(self.run_db, limit)

    def action_settings(self, add_sync: list[str] = (), remove_sync: list[str] = (),
                        add_ignore: list[str] = (), remove_ignore: list[str] = ()):
        for tag in add_sync:
            if self.settings.add_sync_tag(tag):
                log.info(f"Sync-Tag hinzugefuegt: {tag}")
        for tag in remove_sync:
            if self.settings.remove_sync_tag(tag):
                log.info(f"Sync-Tag entfernt: {tag}")
        for tag in add_ignore:
            if self.settings.add_ignore_tag(tag):
                log.info(f"Ignore-Tag hinzugefuegt: {tag}")
        for tag in remove_ignore:
            if self.settings.remove_ignore_tag(tag):
                log.info(f"Ignore-Tag entfernt: {tag}")
        show_settings(self.settings)


# =========================================================================
# Main
# =========================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frontmatter-sync",
        description="Frontmatter Sync - Tags aus Frontmatter-Feldern ableiten",
    )
    parser.add_argument("--vault", default=VAULT_DIR, help="Vault-Verzeichnis")
    parser.add_argument("--settings", default=SETTINGS_FILE, help="Pfad zur sync_settings.json")
    parser.add_argument("--state-db", default=STATE_DB_FILE, help="Pfad zur State-DB")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--execute", dest="dry_run", action="store_false", help="Aenderungen wirklich schreiben")
    mode.add_argument("--dry-run", dest="dry_run", action="store_true", help="Nur anzeigen (Standard)")
    parser.set_defaults(dry_run=DEFAULT_DRY_RUN)

    sub = parser.add_subparsers(dest="command")

    p_sync = sub.add_parser("sync", help="Vault oder einzelne Dokumente synchronisieren")
    p_sync.add_argument("paths", nargs="*", help="Dokumente (Standard: ganzer Vault)")
    p_sync.add_argument("--workers", type=int, default=SYNC_WORKERS, help="Parallele Worker")

    p_watch = sub.add_parser("watch", help="Geaenderte Dokumente automatisch synchronisieren")
    p_watch.add_argument("--interval", type=float, default=WATCH_INTERVAL_SEC, help="Polling-Intervall (s, nur mit --polling)")
    p_watch.add_argument("--debounce", type=float, default=DEBOUNCE_SEC, help="Wartezeit nach letzter Aenderung (s)")
    p_watch.add_argument("--include-existing", action="store_true", help="Beim Start alle Dokumente einplanen")
    p_watch.add_argument("--polling", action="store_true", default=WATCH_POLLING,
                         help="Polling statt Dateisystem-Ereignissen (Netzlaufwerke)")

    p_hist = sub.add_parser("history", help="Letzte Runs anzeigen")
    p_hist.add_argument("--limit", type=int, default=10)

    p_set = sub.add_parser("settings", help="Settings anzeigen und Tag-Listen bearbeiten")
    p_set.add_argument("--add-sync-tag", action="append", default=[], metavar="TAG")
    p_set.add_argument("--remove-sync-tag", action="append", default=[], metavar="TAG")
    p_set.add_argument("--add-ignore-tag", action="append", default=[], metavar="TAG")
    p_set.add_argument("--remove-ignore-tag", action="append", default=[], metavar="TAG")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Start: ohne Subcommand wird der ganze Vault synchronisiert."""
    args = build_parser().parse_args(argv)
    log.info("=" * 40)
    log.info(f"[bold]Frontmatter Sync v{__version__}[/bold]")
    log.info(f"  Python: {sys.version.split()[0]}")
    log.info(f"  Log-Datei: {LOG_FILE}")
    log.info("=" * 40)

    try:
        app = App(args.vault, args.settings, args.state_db, args.dry_run)
    except ConfigError as exc:
        console.print(f"[red]Settings fehlerhaft:[/red] {exc}")
        return 2

    command = args.command or "sync"
    if command in ("sync", "watch") and not app.settings.found:
        console.print(
            f"[red]Settings-Datei fehlt:[/red] {app.settings.path}\n"
            "Erst anlegen, z.B. mit: frontmatter-sync settings --add-sync-tag <TAG>"
        )
        return 2

    try:
        if command == "sync":
            app._show_header()
            summary = app.action_sync(getattr(args, "paths", None) or None,
                                      getattr(args, "workers", SYNC_WORKERS))
            return 1 if summary.get("errors") else 0
        if command == "watch":
            app._show_header()
            app.action_watch(args.interval, args.debounce, args.include_existing, args.polling)
        elif command == "history":
            app.action_history(args.limit)
        elif command == "settings":
            app.action_settings(args.add_sync_tag, args.remove_sync_tag,
                                args.add_ignore_tag, args.remove_ignore_tag)
    except KeyboardInterrupt:
        console.print("\n[bold]Abgebrochen.[/bold]")
        return 130
    finally:
        log.info("Frontmatter Sync beendet")
    return 0


if __name__ == "__main__":
    sys.exit(main())
