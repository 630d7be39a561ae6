from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table


def _fmt_ts(value: Any) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def print_run_summary(summary: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a pipeline or replay summary: dispatcher counters plus one row per sink.
    """
    console = console or Console()
    dispatcher = summary.get("dispatcher", {})
    sink_errors = dispatcher.get("sink_errors", {})

    title = "Batchflow Run Summary"
    details = []
    if "events_published" in summary:
        details.append(f"Published: {summary['events_published']:,}")
    if "completed_batches" in summary:
        details.append(f"Batches completed: {summary['completed_batches']:,}")
    if "records" in summary:
        details.append(f"Replayed: {summary['records']:,}")
    details.append(f"Processed: {dispatcher.get('processed', 0):,}")
    details.append(f"Decode errors: {dispatcher.get('decode_errors', 0):,}")
    title = f"{title}\n[dim]{' │ '.join(details)}[/dim]"

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Sink", style="cyan", no_wrap=True)
    table.add_column("Counters", style="green")
    table.add_column("Errors", justify="right", style="red")

    for name, counters in summary.get("sinks", {}).items():
        rendered = ", ".join(f"{key}={value:,}" for key, value in counters.items()) or "-"
        table.add_row(name, rendered, str(sink_errors.get(name, 0)))

    console.print(table)


def print_queue(
    rows: List[Dict[str, Any]], stats: Dict[str, Any], console: Optional[Console] = None
) -> None:
    """Work-queue view: most recently touched batches first."""
    console = console or Console()
    if not rows:
        console.print("[yellow]Work queue is empty.[/yellow]")
        return

    by_status = ", ".join(f"{status}={count}" for status, count in sorted(stats.get("by_status", {}).items()))
    table = Table(
        title=f"Work Queue\n[dim]Total: {stats.get('total', len(rows))} │ {by_status}[/dim]",
        box=box.ROUNDED,
        caption="Sorted by last update (descending)",
    )
    table.add_column("Object ID", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Outcome", style="blue")
    table.add_column("Records", justify="right")
    table.add_column("Amount", justify="right", style="bold green")
    table.add_column("Company", style="yellow")
    table.add_column("Updated", style="dim")

    for row in rows:
        metadata = row.get("metadata") or {}
        table.add_row(
            row["object_id"],
            row["status"],
            row["outcome"],
            str(row.get("records", 0)),
            metadata.get("formatted_amount", metadata.get("amount", "-")),
            metadata.get("summary", "-"),
            _fmt_ts(row.get("updated")),
        )

    console.print(table)


def print_audit(entries: List[Dict[str, Any]], object_id: str, console: Optional[Console] = None) -> None:
    """Audit history for one object, newest first."""
    console = console or Console()
    if not entries:
        console.print(f"[yellow]No audit entries for {object_id}.[/yellow]")
        return

    table = Table(title=f"Audit Trail: {object_id}", box=box.ROUNDED)
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Action", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Outcome", style="blue")
    table.add_column("Parent", style="yellow")
    table.add_column("Amount", justify="right", style="green")

    for entry in entries:
        metadata = entry.get("metadata") or {}
        table.add_row(
            _fmt_ts(entry.get("timestamp")),
            entry["action"],
            entry["new_status"],
            entry["new_outcome"],
            f"{entry.get('parent_type', '-')}:{entry.get('parent_id', '-')}",
            metadata.get("formatted_amount", metadata.get("amount", "-")),
        )

    console.print(table)


def print_metrics(
    summary: Dict[str, Any],
    companies: List[Dict[str, Any]],
    performance: Dict[str, Any],
    console: Optional[Console] = None,
) -> None:
    """
    Analytics view: overall totals, per-company breakdown and processing time.
    """
    console = console or Console()
    if not summary.get("total_events"):
        console.print("[yellow]No completion events recorded yet.[/yellow]")
        return

    title = (
        "Completion Metrics\n"
        f"[dim]Events: {summary['total_events']:,} │ "
        f"Total: {summary['total_amount']:,.2f} │ "
        f"Success rate: {summary['success_rate']:.2f}% │ "
        f"p95 processing: {performance.get('percentile_95', 0.0):,.0f} ms[/dim]"
    )
    table = Table(title=title, box=box.ROUNDED, caption="Sorted by total amount (descending)")
    table.add_column("Company", style="cyan")
    table.add_column("Events", justify="right", style="magenta")
    table.add_column("Total Amount", justify="right", style="bold green")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Failure", justify="right", style="red")
    table.add_column("Success %", justify="right", style="yellow")

    for row in companies:
        table.add_row(
            row["company_name"],
            f"{row['total_events']:,}",
            f"{row['total_amount']:,.2f}",
            str(row["success_events"]),
            str(row["failure_events"]),
            f"{row['success_rate']:.1f}",
        )

    console.print(table)


__all__ = ["print_audit", "print_metrics", "print_queue", "print_run_summary"]
