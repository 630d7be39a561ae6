"""
Offline event generation for replay and demos.

Runs the batch generator against a JSON-lines file instead of a live stream:
a number of creation ticks interleaved with update ticks, driven by a seeded
RNG so amounts, companies and lifecycle paths are reproducible. No store is
touched; replay the file with `batchflow replay <path>`.
"""

from __future__ import annotations

import random
import sys
import time
from pathlib import Path

import typer

from batchflow.generator.service import BatchEventGenerator
from batchflow.stream.jsonlines import JsonLinesEventWriter

app = typer.Typer(help="Generate lifecycle events into a JSON-lines file.")


def generate_events(
    output: Path,
    batches: int,
    updates_per_batch: int,
    seed: int,
    batch_size_min: int = 2,
    batch_size_max: int = 5,
) -> int:
    """
    Interleave ``batches`` creation ticks with ``updates_per_batch`` update
    ticks after each one. Returns the number of events written.
    """
    with JsonLinesEventWriter(output) as writer:
        generator = BatchEventGenerator(
            writer,
            creation_enabled=True,
            update_enabled=True,
            batch_size_min=batch_size_min,
            batch_size_max=batch_size_max,
            rng=random.Random(seed),
        )
        for _ in range(batches):
            generator.create_batch()
            for _ in range(updates_per_batch):
                generator.update_batch()
        return writer.published


@app.command()
def main(
    output: Path = typer.Option(
        Path("events.jsonl"),
        "--output",
        "-o",
        help="JSON-lines output path.",
    ),
    batches: int = typer.Option(
        100,
        "--batches",
        "-b",
        help="Number of creation ticks.",
    ),
    updates_per_batch: int = typer.Option(
        3,
        "--updates",
        "-u",
        help="Update ticks run after each creation tick.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
) -> None:
    """
    Generate synthetic lifecycle events without touching any store.
    """
    start = time.perf_counter()
    typer.echo(f"Generating {batches:,} batches -> {output} (updates={updates_per_batch}, seed={seed})")
    written = generate_events(output, batches=batches, updates_per_batch=updates_per_batch, seed=seed)
    duration = time.perf_counter() - start
    typer.echo(f"Wrote {written:,} events in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
