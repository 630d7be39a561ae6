"""
Cent-accurate split of a batch amount across its items.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Union

CENT = Decimal("0.01")


def to_cents(amount: Union[Decimal, float, str]) -> int:
    """Round a currency amount to whole cents (half-up)."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def distribute_amount(total: Union[Decimal, float, str], item_count: int) -> List[Decimal]:
    """
    Split ``total`` into ``item_count`` shares that sum exactly to the rounded total.

    The remainder cents go one each to the lowest-sequence items, so the result
    is deterministic and front-loaded: ``150.01`` over 3 items is
    ``[50.01, 50.00, 50.00]``.
    """
    if item_count <= 0:
        raise ValueError(f"item_count must be positive, got {item_count}")

    total_cents = to_cents(total)
    base, remainder = divmod(total_cents, item_count)
    return [
        (Decimal(base + (1 if index < remainder else 0)) / 100).quantize(CENT)
        for index in range(item_count)
    ]


__all__ = ["CENT", "distribute_amount", "to_cents"]
