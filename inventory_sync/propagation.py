from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal

from inventory_sync.errors import WriteError
from inventory_sync.records import ProcessedProduct, ProcessedVariant
from inventory_sync.sheets.base import CellUpdate, TabularSource, cell, cell_address, parse_range

logger = logging.getLogger(__name__)

# Primary sheet.
PRODUCT_KEY_INDEX = 0
PRODUCT_ADJUST_COLUMN = "G"
PRODUCT_STOCK_COLUMN = "H"

# Variant sheet.
VARIANT_KEY_INDEX = 1
VARIANT_ADJUST_COLUMN = "D"
VARIANT_STOCK_COLUMN = "E"
VARIANT_PRICE_COLUMN = "F"

CLEARED_ADJUSTMENT = "0"


def format_price(price: Decimal) -> str:
    text = format(price.normalize(), "f")
    return text if text != "-0" else "0"


def _keyed_rows(rows: list[list[str]], key_index: int, first_row: int) -> Iterable[tuple[str, int]]:
    for offset, row in enumerate(rows):
        yield cell(row, key_index), first_row + offset


def plan_product_updates(
    rows: list[list[str]],
    results: Iterable[ProcessedProduct],
    sheet: str | None = None,
    first_row: int = 2,
) -> list[CellUpdate]:
    by_sku = {result.sku: result for result in results}
    updates: list[CellUpdate] = []
    for sku, row_number in _keyed_rows(rows, PRODUCT_KEY_INDEX, first_row):
        result = by_sku.get(sku)
        if result is None:
            continue
        updates.append(CellUpdate(cell_address(sheet, PRODUCT_STOCK_COLUMN, row_number), str(result.stock_count)))
        updates.append(CellUpdate(cell_address(sheet, PRODUCT_ADJUST_COLUMN, row_number), CLEARED_ADJUSTMENT))
    return updates


def plan_variant_updates(
    rows: list[list[str]],
    results: Iterable[ProcessedVariant],
    sheet: str | None = None,
    first_row: int = 2,
) -> list[CellUpdate]:
    by_sku = {result.sku: result for result in results}
    updates: list[CellUpdate] = []
    for sku, row_number in _keyed_rows(rows, VARIANT_KEY_INDEX, first_row):
        result = by_sku.get(sku)
        if result is None:
            continue
        updates.append(CellUpdate(cell_address(sheet, VARIANT_ADJUST_COLUMN, row_number), CLEARED_ADJUSTMENT))
        updates.append(CellUpdate(cell_address(sheet, VARIANT_STOCK_COLUMN, row_number), str(result.stock_count)))
        updates.append(CellUpdate(cell_address(sheet, VARIANT_PRICE_COLUMN, row_number), format_price(result.price)))
    return updates


def plan_parent_updates(
    rows: list[list[str]],
    totals: Mapping[str, int],
    sheet: str | None = None,
    first_row: int = 2,
) -> list[CellUpdate]:
    updates: list[CellUpdate] = []
    for sku, row_number in _keyed_rows(rows, PRODUCT_KEY_INDEX, first_row):
        total = totals.get(sku)
        if total is None:
            continue
        updates.append(CellUpdate(cell_address(sheet, PRODUCT_STOCK_COLUMN, row_number), str(total)))
    return updates


class SheetWriter:
    """Writes reconciled values back to one sheet range.

    Rows are re-read right before each write and matched by SKU, so rows moved
    since ingestion still receive their own values.
    """

    def __init__(self, source: TabularSource, range_selector: str) -> None:
        self.source = source
        self.range_selector = range_selector
        ref = parse_range(range_selector)
        if ref.first_column != 0:
            raise ValueError(f"Sheet range must start at column A: {range_selector}")
        self.sheet = ref.sheet
        self.first_row = ref.first_row

    def write_products(self, results: list[ProcessedProduct]) -> int:
        return self._write("sync-sheet-current-stock", results, plan_product_updates, cells_per_row=2)

    def write_variants(self, results: list[ProcessedVariant]) -> int:
        return self._write("sync-product-variants-sheet", results, plan_variant_updates, cells_per_row=3)

    def write_parent_totals(self, totals: dict[str, int]) -> int:
        return self._write("sync-parent-products-sheet", totals, plan_parent_updates, cells_per_row=1)

    def _write(
        self,
        stage: str,
        payload: list | dict,
        planner: Callable[..., list[CellUpdate]],
        cells_per_row: int,
    ) -> int:
        if not payload:
            logger.info("%s: nothing to write", stage)
            return 0

        try:
            rows = self.source.read(self.range_selector)
            updates = planner(rows, payload, self.sheet, self.first_row)
            if updates:
                self.source.write_cells(updates)
        except Exception as exc:
            raise WriteError.at(stage, f"Sheet write failed: {exc}", attempted=len(payload)) from exc

        touched = len(updates) // cells_per_row
        if touched:
            logger.info("%s: updated %s rows", stage, touched)
        else:
            logger.info("%s: no matching SKUs found in sheet", stage)
        return touched
