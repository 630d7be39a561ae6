"""
Generator package for batchflow: the producer side of the pipeline.
"""

from batchflow.generator.items import derive_item_events, item_object_id
from batchflow.generator.registry import ActiveObjectStore
from batchflow.generator.scheduler import PeriodicTask
from batchflow.generator.service import BatchEventGenerator, validate_batch_metadata

__all__ = [
    "ActiveObjectStore",
    "BatchEventGenerator",
    "PeriodicTask",
    "derive_item_events",
    "item_object_id",
    "validate_batch_metadata",
]
