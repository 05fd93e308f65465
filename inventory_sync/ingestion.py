from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, InvalidOperation

from inventory_sync.errors import FetchError
from inventory_sync.records import ProductRecord, VariantRecord
from inventory_sync.sheets.base import TabularSource, cell

logger = logging.getLogger(__name__)

# Primary sheet columns (0-based).
PRODUCT_SKU = 0
PRODUCT_NAME = 1
PRODUCT_READY_FOR_SALE = 2
PRODUCT_SHORT_DESC = 3
PRODUCT_STOCK_ADJUST = 6
PRODUCT_PRICE = 11

# Variant sheet columns (0-based).
VARIANT_PARENT_SKU = 0
VARIANT_SKU = 1
VARIANT_NAME = 2
VARIANT_STOCK_ADJUST = 3
VARIANT_PRICE = 5

_INT_PREFIX = re.compile(r"^[+-]?\d+")
_DECIMAL_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_int(value: str | None) -> int:
    match = _INT_PREFIX.match((value or "").strip())
    return int(match.group(0)) if match else 0


def parse_price(value: str | None) -> Decimal:
    match = _DECIMAL_PREFIX.match((value or "").strip())
    if not match:
        return Decimal("0")
    try:
        price = Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")
    if not price.is_finite() or price < 0:
        return Decimal("0")
    return price


def product_from_row(row: list[str], parents_with_variants: frozenset[str] = frozenset()) -> ProductRecord:
    sku = cell(row, PRODUCT_SKU)
    stock_adjust_count = parse_int(cell(row, PRODUCT_STOCK_ADJUST))

    if sku in parents_with_variants:
        if stock_adjust_count != 0:
            logger.info(
                "Skipping stock adjustment for %s (has variants, original adjustment: %s)",
                sku,
                stock_adjust_count,
            )
        stock_adjust_count = 0

    return ProductRecord(
        sku=sku,
        name=cell(row, PRODUCT_NAME),
        ready_for_sale=cell(row, PRODUCT_READY_FOR_SALE) == "Y",
        stock_adjust_count=stock_adjust_count,
        price=parse_price(cell(row, PRODUCT_PRICE)),
        short_desc=cell(row, PRODUCT_SHORT_DESC),
    )


def variant_from_row(row: list[str]) -> VariantRecord:
    sku = cell(row, VARIANT_SKU)
    stock_adjust_count = parse_int(cell(row, VARIANT_STOCK_ADJUST))
    if stock_adjust_count < 0:
        logger.info("Negative stock adjustment detected: SKU %s, adjustment: %s", sku, stock_adjust_count)

    return VariantRecord(
        parent_sku=cell(row, VARIANT_PARENT_SKU),
        sku=sku,
        name=cell(row, VARIANT_NAME),
        stock_adjust_count=stock_adjust_count,
        price=parse_price(cell(row, VARIANT_PRICE)),
    )


class SheetIngestor:
    def __init__(
        self,
        product_sheet: TabularSource,
        product_range: str,
        variant_sheet: TabularSource,
        variant_range: str,
    ) -> None:
        self.product_sheet = product_sheet
        self.product_range = product_range
        self.variant_sheet = variant_sheet
        self.variant_range = variant_range

    def fetch_products(self) -> list[ProductRecord]:
        with ThreadPoolExecutor(max_workers=2) as pool:
            rows_future = pool.submit(self.product_sheet.read, self.product_range)
            parents_future = pool.submit(self.parents_with_variants)
            try:
                rows = rows_future.result()
            except Exception as exc:
                raise FetchError.at("fetch-sheet-data", f"Failed to fetch product sheet: {exc}") from exc
            parents = parents_future.result()

        logger.info("Fetched %s product rows", len(rows))
        records = [product_from_row(row, parents) for row in rows]
        return self._drop_blank_skus(records)

    def fetch_variants(self) -> list[VariantRecord]:
        try:
            rows = self.variant_sheet.read(self.variant_range)
        except Exception as exc:
            raise FetchError.at("fetch-sheet-data", f"Failed to fetch variant sheet: {exc}") from exc

        logger.info("Fetched %s product variant rows", len(rows))
        return self._drop_blank_skus([variant_from_row(row) for row in rows])

    def parents_with_variants(self) -> frozenset[str]:
        try:
            rows = self.variant_sheet.read(self.variant_range)
        except Exception as exc:
            logger.warning("Continuing without variant filtering, variant sheet fetch failed: %s", exc)
            return frozenset()

        parents = frozenset(sku for sku in (cell(row, VARIANT_PARENT_SKU) for row in rows) if sku)
        logger.info("Found %s parent products with variants", len(parents))
        return parents

    @staticmethod
    def _drop_blank_skus(records: list) -> list:
        kept = [record for record in records if record.sku]
        if len(kept) != len(records):
            logger.debug("Dropped %s rows with a blank SKU", len(records) - len(kept))
        return kept
