"""
Exception hierarchy for batchflow.

Producer-side failures (metadata validation, amount invariants) abort a single
tick; consumer-side failures are isolated per sink by the dispatcher. Only
store-unavailable errors raised while opening sinks reach process bootstrap.
"""

from __future__ import annotations


class BatchflowError(Exception):
    """Base class for all batchflow errors."""


class MetadataValidationError(BatchflowError, ValueError):
    """Synthetic batch metadata is missing required fields or has a bad amount."""


class AmountInvariantError(BatchflowError, AssertionError):
    """Item amounts do not add up to the batch total."""

    def __init__(self, batch_id: str, item_sum: float, batch_total: float) -> None:
        self.batch_id = batch_id
        self.item_sum = item_sum
        self.batch_total = batch_total
        super().__init__(
            f"Item amount sum ({item_sum:.2f}) does not match batch total "
            f"({batch_total:.2f}) for batch {batch_id}"
        )


class EnvelopeDecodeError(BatchflowError, ValueError):
    """A stream record could not be decoded into an event envelope."""


class SinkError(BatchflowError):
    """A sink's store failed to persist an event; the store error is chained as ``__cause__``."""


class StoreUnavailableError(BatchflowError):
    """A required store could not be reached while opening a sink."""


__all__ = [
    "AmountInvariantError",
    "BatchflowError",
    "EnvelopeDecodeError",
    "MetadataValidationError",
    "SinkError",
    "StoreUnavailableError",
]
