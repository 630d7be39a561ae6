"""
Item audit event derivation.

Every batch tick fans out into ``records`` item events whose amounts are the
cent-accurate shares of the batch amount. The item set is checked against the
batch total before anything is published.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from batchflow.domain.allocation import CENT, distribute_amount
from batchflow.domain.directory import currency_info, format_amount, industry_for
from batchflow.domain.lifecycle import item_event_type
from batchflow.domain.models import (
    LifecycleEvent,
    ObjectPayload,
    ObjectType,
    Status,
    utc_now,
)
from batchflow.errors import AmountInvariantError


def item_object_id(batch_id: str, sequence: int) -> str:
    return f"{batch_id}-{sequence:04d}"


def check_amount_distribution(
    batch_id: str, item_amounts: List[Decimal], batch_total: Decimal
) -> Decimal:
    """
    Verify the item amounts add up to the batch total within one cent.

    Returns the item sum; raises AmountInvariantError otherwise.
    """
    item_sum = sum(item_amounts, Decimal("0"))
    if abs(item_sum - batch_total) >= CENT:
        raise AmountInvariantError(batch_id, float(item_sum), float(batch_total))
    return item_sum


def derive_item_events(
    batch: ObjectPayload,
    action: str,
    status: Status,
    timestamp: Optional[datetime] = None,
) -> List[LifecycleEvent]:
    """
    Build the item events for one batch emission.

    Parameters
    ----------
    batch : ObjectPayload
        The batch as just published (its metadata carries records/amount/region).
    action : str
        ``CREATED`` or ``UPDATED``.
    status : Status
        The batch's newly assigned status; copied onto every item.
    timestamp : datetime, optional
        Shared event/updated timestamp for the whole item set.
    """
    now = timestamp or utc_now()
    metadata = batch.metadata
    record_count = int(metadata.get("records", "1"))
    batch_amount = Decimal(metadata.get("amount", "0.00"))
    region = metadata.get("region", "US")
    company = metadata.get("summary")

    item_amounts = distribute_amount(batch_amount, record_count)
    batch_formatted_total = currency_info(region, batch_amount)["formatted_amount"]
    event_type = item_event_type(action)

    events: List[LifecycleEvent] = []
    for sequence, item_amount in enumerate(item_amounts, start=1):
        item_metadata = dict(metadata)
        item_metadata.update(
            {
                "records": "1",
                "parent_id": batch.object_id,
                "parent_type": ObjectType.BATCH.value,
                "item_sequence": str(sequence),
                "item_count": str(record_count),
                "batch_total": format_amount(batch_amount),
                "batch_formatted_total": batch_formatted_total,
            }
        )
        item_metadata.update(currency_info(region, item_amount))
        if company is not None:
            item_metadata["description"] = company
            item_metadata["company"] = company
        item_metadata["industry"] = industry_for(company)

        payload = ObjectPayload(
            object_id=item_object_id(batch.object_id, sequence),
            object_type=ObjectType.ITEM,
            status=status,
            outcome=batch.outcome,
            metadata=item_metadata,
            created=batch.created,
            updated=now,
        )
        events.append(LifecycleEvent(event_type=event_type, timestamp=now, payload=payload))

    check_amount_distribution(
        batch.object_id,
        [Decimal(event.payload.metadata["amount"]) for event in events],
        batch_amount,
    )
    return events


__all__ = ["check_amount_distribution", "derive_item_events", "item_object_id"]
