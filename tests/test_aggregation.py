from dataclasses import dataclass
from decimal import Decimal

from inventory_sync.aggregation import aggregate_parent_stock
from inventory_sync.records import ProcessedVariant


@dataclass
class Child:
    parent_sku: str
    stock_count: int


def test_aggregate_empty_input():
    assert aggregate_parent_stock([]) == {}


def test_aggregate_sums_per_parent():
    children = [Child("A", 3), Child("A", 5), Child("B", 2)]

    assert aggregate_parent_stock(children) == {"A": 8, "B": 2}


def test_aggregate_is_order_independent():
    children = [Child("A", 3), Child("B", -2), Child("A", 5), Child("B", 7)]

    assert aggregate_parent_stock(children) == aggregate_parent_stock(list(reversed(children)))


def test_aggregate_ignores_children_without_parent():
    children = [Child("", 4), Child("A", 1)]

    assert aggregate_parent_stock(children) == {"A": 1}


def test_aggregate_accepts_processed_variants():
    processed = [
        ProcessedVariant(sku="V1", parent_sku="P1", stock_count=4, price=Decimal("1"), inserted=True),
        ProcessedVariant(sku="V2", parent_sku="P1", stock_count=6, price=Decimal("1"), inserted=False),
    ]

    assert aggregate_parent_stock(processed) == {"P1": 10}
