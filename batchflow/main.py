from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from batchflow.config import get_settings
from batchflow.infrastructure.analytics_store import DuckDBAnalyticsStore
from batchflow.infrastructure.audit_store import PostgresAuditStore
from batchflow.infrastructure.work_queue_store import PostgresWorkQueueStore
from batchflow.pipeline import replay_file, run_pipeline
from batchflow.reporter import print_audit, print_metrics, print_queue, print_run_summary
from batchflow.utils.logging import configure_logging

app = typer.Typer(help="Batchflow lifecycle event pipeline CLI.")


def _configure() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"queue={settings.queue_db_user}@{settings.queue_db_host}:{settings.queue_db_port}/"
        f"{settings.queue_db_name} | "
        f"audit={settings.audit_db_user}@{settings.audit_db_host}:{settings.audit_db_port}/"
        f"{settings.audit_db_name} (schema={settings.audit_schema}) | "
        f"analytics={settings.analytics_db_path}"
    )
    typer.echo(
        f"create={settings.batch_creation_interval_seconds}s "
        f"(enabled={settings.batch_creation_enabled}) "
        f"update={settings.batch_update_interval_seconds}s "
        f"(enabled={settings.batch_update_enabled}) "
        f"records={settings.batch_size_min}..{settings.batch_size_max} "
        f"flush={settings.analytics_batch_size}/{settings.analytics_flush_interval_seconds}s"
    )


@app.command()
def run(
    duration: Optional[float] = typer.Option(
        None,
        "--duration",
        "-d",
        help="Seconds to run before shutting down (default: until Ctrl+C).",
    ),
    persist: bool = typer.Option(True, help="Write the run summary to results/."),
) -> None:
    """
    Run the generator, dispatcher and all sinks in-process.
    """
    _configure()
    target = f"{duration}s" if duration else "until Ctrl+C"
    typer.echo(f"Running pipeline {target}.")
    summary = run_pipeline(duration=duration, persist=persist)
    print_run_summary(summary)


@app.command()
def replay(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON-lines event file."),
) -> None:
    """
    Feed a recorded event file through the dispatcher into the configured sinks.
    """
    _configure()
    summary = replay_file(path)
    print_run_summary(summary)


@app.command()
def queue(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of batches to show."),
) -> None:
    """
    Show the most recently touched batches in the work queue.
    """
    _configure()
    store = PostgresWorkQueueStore(get_settings().queue_dsn)
    store.open()
    try:
        print_queue(store.recent(limit), store.stats())
    finally:
        store.close()


@app.command()
def audit(
    object_id: str = typer.Argument(..., help="Batch or item id."),
    object_type: str = typer.Option("batch", "--type", "-t", help="Object type: batch or item."),
    limit: int = typer.Option(50, "--limit", "-n"),
) -> None:
    """
    Show the audit history of one object.
    """
    if object_type not in ("batch", "item"):
        raise typer.BadParameter("must be 'batch' or 'item'", param_hint="--type")
    _configure()
    settings = get_settings()
    store = PostgresAuditStore(settings.audit_dsn, schema=settings.audit_schema)
    store.open()
    try:
        print_audit(store.entries_for_object(object_type, object_id, limit), object_id)
    finally:
        store.close()


@app.command()
def metrics() -> None:
    """
    Show completion metrics from the analytics store.
    """
    _configure()
    store = DuckDBAnalyticsStore(get_settings().analytics_db_path)
    store.open()
    try:
        print_metrics(store.summary(), store.company_breakdown(), store.performance())
    finally:
        store.close()


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
