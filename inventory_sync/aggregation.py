from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class ChildStock(Protocol):
    parent_sku: str
    stock_count: int


def aggregate_parent_stock(processed: Iterable[ChildStock]) -> dict[str, int]:
    """Sum child stock per parent SKU. Children without a parent are ignored."""
    totals: dict[str, int] = {}
    for child in processed:
        if not child.parent_sku:
            continue
        totals[child.parent_sku] = totals.get(child.parent_sku, 0) + child.stock_count
    return totals
