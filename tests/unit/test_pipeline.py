from __future__ import annotations

import json
import random

import pytest

from batchflow import pipeline
from batchflow.domain.models import ObjectType
from batchflow.generator.service import BatchEventGenerator
from batchflow.sinks.abstract import AbstractEventSink
from batchflow.sinks.analytics import AnalyticsBufferSink
from batchflow.sinks.audit_trail import AuditTrailSink
from batchflow.sinks.work_queue import WorkQueueSink
from batchflow.stream.memory import InMemoryEventStream
from scripts.generate_events import generate_events

RUN_SECONDS = 0.5
REPLAY_BATCHES = 5
REPLAY_UPDATES = 4
SEED = 99


@pytest.fixture
def sinks(work_queue_store, audit_store, analytics_store):
    return [
        WorkQueueSink(work_queue_store),
        AuditTrailSink(audit_store),
        AnalyticsBufferSink(
            analytics_store,
            batch_size=3,
            flush_interval=0.05,
            stats_interval=60.0,
            shutdown_timeout=2.0,
        ),
    ]


class _BrokenOpenSink(AbstractEventSink):
    name = "broken"

    def open(self) -> None:
        raise RuntimeError("cannot reach store")

    def handle(self, event) -> None:
        pass


def test_run_pipeline_feeds_every_sink(
    tmp_path, test_settings, sinks, work_queue_store, audit_store, analytics_store
):
    stream = InMemoryEventStream()
    generator = BatchEventGenerator(
        stream, creation_enabled=True, update_enabled=True, rng=random.Random(SEED)
    )

    summary = pipeline.run_pipeline(
        duration=RUN_SECONDS,
        sinks=sinks,
        generator=generator,
        stream=stream,
        settings=test_settings,
        results_dir=tmp_path,
    )

    assert summary["events_published"] > 0
    assert summary["dispatcher"]["processed"] == summary["events_published"]
    assert summary["sinks"]["audit_trail"]["written"] == summary["events_published"]
    assert summary["cached_metadata"] == summary["active_batches"]
    assert summary["sinks"]["audit_trail"]["orphans"] == 0
    assert len(audit_store.entries) == summary["events_published"]
    assert work_queue_store.objects
    assert all(row["object_type"] == "batch" for row in work_queue_store.objects.values())
    assert work_queue_store.closed and audit_store.closed and analytics_store.closed
    assert json.loads((tmp_path / "latest.json").read_text())["events_published"] == (
        summary["events_published"]
    )


def test_open_failure_closes_already_opened_sinks(work_queue_store):
    first = WorkQueueSink(work_queue_store)

    with pytest.raises(RuntimeError):
        pipeline.open_sinks([first, _BrokenOpenSink()])

    assert work_queue_store.opened and work_queue_store.closed


def test_replay_generated_file(tmp_path, test_settings, sinks, audit_store, analytics_store):
    path = tmp_path / "events.jsonl"
    written = generate_events(path, batches=REPLAY_BATCHES, updates_per_batch=REPLAY_UPDATES, seed=SEED)

    summary = pipeline.replay_file(path, sinks=sinks, settings=test_settings)

    assert summary["records"] == written
    assert summary["dispatcher"]["processed"] == written
    assert summary["sinks"]["audit_trail"]["orphans"] == 0
    terminal_items = [
        entry
        for entry in audit_store.entries
        if entry.object_type is ObjectType.ITEM and entry.new_status.is_terminal
    ]
    assert len(analytics_store.rows) == len(terminal_items)


def test_generate_events_is_reproducible(tmp_path):
    first = tmp_path / "a.jsonl"
    second = tmp_path / "b.jsonl"

    generate_events(first, batches=3, updates_per_batch=2, seed=SEED)
    generate_events(second, batches=3, updates_per_batch=2, seed=SEED)

    def _amounts(path):
        return [json.loads(line)["payload"]["metadata"]["amount"] for line in path.read_text().splitlines()]

    assert _amounts(first) == _amounts(second)
