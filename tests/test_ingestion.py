from decimal import Decimal

import pytest

from inventory_sync.errors import FetchError
from inventory_sync.ingestion import SheetIngestor, parse_int, parse_price, product_from_row, variant_from_row
from inventory_sync.sheets import InMemorySheet

PRODUCT_RANGE = "Sheet1!A2:L1000"
VARIANT_RANGE = "Sheet1!A2:F1000"
PRODUCT_HEADER = ["sku", "name", "ready", "short_desc", "", "", "adjust", "stock", "", "", "", "price"]
VARIANT_HEADER = ["parent_sku", "sku", "name", "adjust", "stock", "price"]


class UnreadableSheet(InMemorySheet):
    def read(self, range_selector: str) -> list[list[str]]:
        raise ConnectionError("sheet unavailable")


def _ingestor(products: InMemorySheet, variants: InMemorySheet) -> SheetIngestor:
    return SheetIngestor(products, PRODUCT_RANGE, variants, VARIANT_RANGE)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("5", 5), (" -2 ", -2), ("+4", 4), ("3.7", 3), ("5abc", 5), ("abc", 0), ("", 0), (None, 0)],
)
def test_parse_int_never_raises(raw, expected):
    assert parse_int(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("9.99", Decimal("9.99")),
        ("12.50 NZD", Decimal("12.50")),
        (".5", Decimal("0.5")),
        ("abc", Decimal("0")),
        ("", Decimal("0")),
        ("-3", Decimal("0")),
    ],
)
def test_parse_price_defaults_to_zero(raw, expected):
    assert parse_price(raw) == expected


def test_product_from_row_maps_fixed_columns():
    row = ["SKU1", " Widget ", "Y", " desc ", "", "", "5", "", "", "", "", "9.99"]

    record = product_from_row(row)

    assert record.sku == "SKU1"
    assert record.name == "Widget"
    assert record.ready_for_sale is True
    assert record.short_desc == "desc"
    assert record.stock_adjust_count == 5
    assert record.price == Decimal("9.99")


def test_product_from_row_tolerates_ragged_rows():
    record = product_from_row(["SKU2", "Gadget"])

    assert record.sku == "SKU2"
    assert record.ready_for_sale is False
    assert record.short_desc == ""
    assert record.stock_adjust_count == 0
    assert record.price == Decimal("0")


def test_ready_for_sale_requires_exact_y():
    assert product_from_row(["A", "", " Y "]).ready_for_sale is True
    assert product_from_row(["A", "", "y"]).ready_for_sale is False
    assert product_from_row(["A", "", "Yes"]).ready_for_sale is False


def test_product_with_variants_has_adjustment_suppressed():
    row = ["P1", "Parent", "Y", "", "", "", "7"]

    record = product_from_row(row, frozenset({"P1"}))

    assert record.stock_adjust_count == 0


def test_variant_from_row_maps_fixed_columns():
    record = variant_from_row([" P1 ", "V1", "Red", "-3", "", "12.5"])

    assert record.parent_sku == "P1"
    assert record.sku == "V1"
    assert record.name == "Red"
    assert record.stock_adjust_count == -3
    assert record.price == Decimal("12.5")


def test_fetch_products_cross_references_variant_sheet():
    products = InMemorySheet(
        [
            PRODUCT_HEADER,
            ["P1", "Parent", "Y", "", "", "", "7"],
            ["SKU1", "Widget", "Y", "", "", "", "5"],
            ["", "blank sku row"],
        ]
    )
    variants = InMemorySheet([VARIANT_HEADER, ["P1", "V1", "Red", "1"]])

    records = _ingestor(products, variants).fetch_products()

    assert [record.sku for record in records] == ["P1", "SKU1"]
    assert records[0].stock_adjust_count == 0
    assert records[1].stock_adjust_count == 5


def test_fetch_products_degrades_when_variant_sheet_fails():
    products = InMemorySheet([PRODUCT_HEADER, ["P1", "Parent", "Y", "", "", "", "7"]])

    records = _ingestor(products, UnreadableSheet()).fetch_products()

    assert records[0].stock_adjust_count == 7


def test_fetch_products_raises_when_primary_sheet_fails():
    with pytest.raises(FetchError) as excinfo:
        _ingestor(UnreadableSheet(), InMemorySheet()).fetch_products()

    assert excinfo.value.error.stage == "fetch-sheet-data"
    assert excinfo.value.retriable is True


def test_fetch_variants_raises_when_sheet_fails():
    with pytest.raises(FetchError):
        _ingestor(InMemorySheet(), UnreadableSheet()).fetch_variants()


def test_fetch_variants_returns_typed_records():
    variants = InMemorySheet([VARIANT_HEADER, ["P1", "V1", "Red", "4", "", "0"], ["P1", "V2", "Blue"]])

    records = _ingestor(InMemorySheet(), variants).fetch_variants()

    assert [(record.sku, record.stock_adjust_count) for record in records] == [("V1", 4), ("V2", 0)]
