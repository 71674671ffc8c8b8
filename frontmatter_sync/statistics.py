"""Statistics and reporting: batch summaries, run history, settings overview."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from .config import console
from .constants import STATUS_LABELS
from .db import LocalStateDB
from .models import BatchSummary, DirectRule, EnumeratedRule, ReferenceRule
from .settings import SyncSettings


def show_summary(summary: BatchSummary, dry_run: bool = True, title: str = "Sync-Ergebnis"):
    table = Table(title=title, show_header=True, width=50)
    table.add_column("Status", style="cyan")
    table.add_column("Anzahl", justify="right", style="bold")

    table.add_row("Dokumente", str(summary.considered))
    table.add_row("Wuerden aktualisiert" if dry_run else "Aktualisiert", f"[green]{summary.changed}[/green]")
    table.add_row("Unveraendert", str(summary.unchanged))
    table.add_row("Uebersprungen", str(summary.skipped))
    table.add_row("Fehler", f"[red]{summary.errors}[/red]" if summary.errors else "0")
    console.print(table)

    if summary.statuses:
        detail = Table(title="Details", show_header=True, width=50)
        detail.add_column("Status", style="yellow")
        detail.add_column("Anzahl", justify="right")
        for status, count in sorted(summary.statuses.items(), key=lambda x: x[1], reverse=True):
            detail.add_row(STATUS_LABELS.get(status, status), str(count))
        console.print(detail)

    if dry_run:
        console.print("[yellow]TESTMODUS: Nichts geschrieben[/yellow]")


def show_recent_runs(run_db: LocalStateDB, limit: int = 10):
    """Letzte Runs aus der State-DB."""
    runs = run_db.get_recent_runs(limit)
    if not runs:
        console.print("[dim]Noch keine Runs gespeichert.[/dim]")
        return

    table = Table(title=f"Letzte {len(runs)} Runs", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Start")
    table.add_column("Aktion", style="cyan")
    table.add_column("Modus")
    table.add_column("Dokumente", justify="right")
    table.add_column("Geaendert", justify="right", style="green")
    table.add_column("Fehler", justify="right", style="red")

    for run in runs:
        summary = run.get("summary") or {}
        mode = "Test" if run.get("dry_run") else "[red]Live[/red]"
        if summary.get("aborted"):
            mode += " [yellow](abgebrochen)[/yellow]"
        table.add_row(
            str(run["id"]),
            str(run.get("started_at") or ""),
            str(run.get("action") or ""),
            mode,
            str(summary.get("considered", "-")),
            str(summary.get("changed", "-")),
            str(summary.get("errors", "-")),
        )
    console.print(table)


def _describe_rule(rule) -> str:
    if isinstance(rule, DirectRule):
        return "Feldwert wird Tag"
    if isinstance(rule, EnumeratedRule):
        pairs = ", ".join(f"{v!s} -> {t}" for v, t in rule.pairs[:4])
        more = f" (+{len(rule.pairs) - 4})" if len(rule.pairs) > 4 else ""
        return f"{pairs}{more}" if pairs else "[dim]keine Paare[/dim]"
    if isinstance(rule, ReferenceRule):
        return f"Praefix '{rule.tag_prefix}'"
    return ""


def show_settings(settings: SyncSettings):
    console.print(Panel(
        f"[bold]Settings[/bold]: {settings.path}\n"
        f"Sync-Tags: {', '.join(settings.sync_tags) or '[red](keine)[/red]'}\n"
        f"Ignore-Tags: {', '.join(settings.ignore_tags) or '(keine)'}",
        border_style="blue",
    ))
    table = Table(title="Regeln", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Feld", style="cyan")
    table.add_column("Strategie")
    table.add_column("Abbildung")
    for i, rule in enumerate(settings.rules, 1):
        table.add_row(str(i), rule.key, rule.field_name, rule.strategy, _describe_rule(rule))
    console.print(table)
