"""
Batchflow - lifecycle event pipeline for synthetic payment batches.

This package generates internally consistent batch and item lifecycle events
and fans them out to three independent sinks:

- A work queue holding the latest snapshot of every in-flight batch
- An append-only audit trail with parent/child linkage
- A columnar analytics store fed by buffered, batched completion metrics

Generator and dispatcher are decoupled by an event stream; each sink applies
its own consistency and batching rules.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from batchflow.config import Settings, get_settings
from batchflow.dispatcher import FanOutDispatcher
from batchflow.domain.models import LifecycleEvent, ObjectPayload, ObjectType, Outcome, Status
from batchflow.generator.service import BatchEventGenerator
from batchflow.pipeline import build_sinks, replay_file, run_pipeline
from batchflow.sinks.abstract import AbstractEventSink, EventSink
from batchflow.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Event contract
    "LifecycleEvent",
    "ObjectPayload",
    "ObjectType",
    "Outcome",
    "Status",
    # Pipeline
    "BatchEventGenerator",
    "FanOutDispatcher",
    "build_sinks",
    "replay_file",
    "run_pipeline",
    # Sink abstractions
    "AbstractEventSink",
    "EventSink",
    # Logging
    "configure_logging",
    "get_logger",
]
