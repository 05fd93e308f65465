from decimal import Decimal

import pytest

from inventory_sync.errors import WriteError
from inventory_sync.propagation import (
    SheetWriter,
    format_price,
    plan_parent_updates,
    plan_product_updates,
    plan_variant_updates,
)
from inventory_sync.records import ProcessedProduct, ProcessedVariant
from inventory_sync.sheets import InMemorySheet
from inventory_sync.sheets.base import CellUpdate


class ReadOnlySheet(InMemorySheet):
    def write_cells(self, updates: list[CellUpdate]) -> None:
        raise PermissionError("read only")


def _processed(sku: str, stock: int) -> ProcessedProduct:
    return ProcessedProduct(sku=sku, stock_count=stock, price=Decimal("9.99"), inserted=True)


def test_plan_product_updates_writes_stock_and_clears_adjustment():
    rows = [["OTHER"], ["SKU1", "Widget"]]

    updates = plan_product_updates(rows, [_processed("SKU1", 5)], sheet="Sheet1")

    assert updates == [CellUpdate("Sheet1!H3", "5"), CellUpdate("Sheet1!G3", "0")]


def test_plan_variant_updates_writes_adjustment_stock_and_price():
    rows = [["P1", "V1"], ["P1", "V2"]]
    processed = [ProcessedVariant(sku="V2", parent_sku="P1", stock_count=6, price=Decimal("12.50"), inserted=True)]

    updates = plan_variant_updates(rows, processed, sheet=None, first_row=2)

    assert updates == [CellUpdate("D3", "0"), CellUpdate("E3", "6"), CellUpdate("F3", "12.5")]


def test_plan_parent_updates_targets_parent_rows():
    rows = [["P1"], ["SKU1"], ["P2"]]

    updates = plan_parent_updates(rows, {"P1": 10, "P2": 0}, sheet="Sheet1")

    assert updates == [CellUpdate("Sheet1!H2", "10"), CellUpdate("Sheet1!H4", "0")]


@pytest.mark.parametrize(
    ("price", "expected"),
    [(Decimal("10.00"), "10"), (Decimal("9.99"), "9.99"), (Decimal("0"), "0"), (Decimal("12.50"), "12.5")],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


def test_sheet_writer_rereads_rows_before_writing():
    sheet = InMemorySheet([["sku"], ["SKU1", "Widget", "Y", "", "", "", "5"]])
    writer = SheetWriter(sheet, "Sheet1!A2:L1000")
    sheet.grid.insert(1, ["INSERTED"])

    touched = writer.write_products([_processed("SKU1", 5)])

    assert touched == 1
    assert sheet.value("H3") == "5"
    assert sheet.value("G3") == "0"
    assert sheet.value("H2") == ""


def test_sheet_writer_skips_write_when_nothing_matches():
    sheet = InMemorySheet([["sku"], ["SKU1"]])

    assert SheetWriter(sheet, "Sheet1!A2:L1000").write_parent_totals({"P9": 3}) == 0
    assert sheet.writes == []


def test_sheet_writer_wraps_failures():
    sheet = ReadOnlySheet([["sku"], ["SKU1"]])

    with pytest.raises(WriteError) as excinfo:
        SheetWriter(sheet, "Sheet1!A2:L1000").write_products([_processed("SKU1", 5)])

    assert excinfo.value.error.stage == "sync-sheet-current-stock"
    assert excinfo.value.error.attempted == 1


def test_sheet_writer_requires_range_starting_at_column_a():
    with pytest.raises(ValueError):
        SheetWriter(InMemorySheet(), "Sheet1!B2:L1000")
