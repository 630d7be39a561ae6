"""
Sinks package for batchflow.

Each sink persists lifecycle events under its own consistency rules:
- WorkQueueSink: latest batch snapshot plus a time-ordered index
- AuditTrailSink: append-only audit rows with parent linkage
- AnalyticsBufferSink: terminal item metrics written in batches
"""

from batchflow.sinks.abstract import AbstractEventSink, EventSink
from batchflow.sinks.analytics import AnalyticsBufferSink, project_metrics_event
from batchflow.sinks.audit_trail import AuditTrailSink
from batchflow.sinks.work_queue import WorkQueueSink, build_snapshot

__all__ = [
    "AbstractEventSink",
    "AnalyticsBufferSink",
    "AuditTrailSink",
    "EventSink",
    "WorkQueueSink",
    "build_snapshot",
    "project_metrics_event",
]
