from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import case, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_sync.errors import FetchError, WriteError
from inventory_sync.models import Product, ProductVariant, new_id, utc_now
from inventory_sync.records import (
    CatalogEntry,
    ProcessedProduct,
    ProcessedVariant,
    ProductRecord,
    UpsertResult,
    VariantRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Keeps each statement far below PostgreSQL's 65535 bind-parameter ceiling.
DEFAULT_BATCH_SIZE = 100

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


@dataclass
class ParentResolution:
    valid: list[tuple[VariantRecord, CatalogEntry]] = field(default_factory=list)
    skipped: list[VariantRecord] = field(default_factory=list)


def resolve_parents(variants: Iterable[VariantRecord], lookup: dict[str, CatalogEntry]) -> ParentResolution:
    resolution = ParentResolution()
    for variant in variants:
        parent = lookup.get(variant.parent_sku)
        if parent is None:
            logger.debug("Parent product %r not found for variant %s", variant.parent_sku, variant.sku)
            resolution.skipped.append(variant)
            continue
        resolution.valid.append((variant, parent))
    return resolution


class CatalogStore:
    def __init__(
        self,
        db: Session,
        batch_size: int = DEFAULT_BATCH_SIZE,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got {batch_size}")
        self.db = db
        self.batch_size = batch_size
        self.id_factory = id_factory

    def fetch_entries(self, skus: Iterable[str]) -> dict[str, CatalogEntry]:
        distinct = sorted({sku for sku in skus if sku})
        entries: dict[str, CatalogEntry] = {}
        for batch in chunked(distinct, self.batch_size):
            try:
                rows = self.db.execute(
                    select(Product.id, Product.sku, Product.price, Product.stock_count).where(Product.sku.in_(batch))
                ).all()
            except SQLAlchemyError as exc:
                self.db.rollback()
                raise FetchError.at("resolve-parents", str(exc), attempted=len(batch)) from exc
            for row in rows:
                entries[row.sku] = CatalogEntry(
                    id=row.id,
                    sku=row.sku,
                    price=Decimal(row.price or 0),
                    stock_count=int(row.stock_count or 0),
                )
        return entries

    def upsert_products(
        self,
        records: Sequence[ProductRecord],
        committed: dict[str, ProcessedProduct] | None = None,
    ) -> UpsertResult:
        """Apply stock deltas in batches.

        ``committed`` collects the result of every batch as it commits. Passing
        the same mapping again skips those SKUs, so a retry only re-processes
        the batches that did not land.
        """
        committed = {} if committed is None else committed
        if not records:
            logger.info("No products to upsert")
            return UpsertResult()

        pending = [record for record in records if record.sku not in committed]
        if len(pending) < len(records):
            logger.info("Resuming product upsert, %s already committed", len(records) - len(pending))

        batches = chunked(pending, self.batch_size)
        logger.info("Starting batch upsert for %s products in %s batches", len(pending), len(batches))
        for index, batch in enumerate(batches, start=1):
            logger.info("Processing product batch %s/%s (%s products)", index, len(batches), len(batch))
            rows = [
                {
                    "sku": record.sku,
                    "name": record.name,
                    "ready_for_sale": record.ready_for_sale,
                    "stock_count": record.stock_adjust_count,
                    "price": record.price,
                    "short_desc": record.short_desc,
                }
                for record in batch
            ]
            returned = self._upsert_batch(
                Product,
                rows,
                overwrite=("name", "ready_for_sale", "price", "short_desc"),
                stage="upsert-products",
            )
            for sku, stock, price, inserted in returned:
                committed[sku] = ProcessedProduct(sku=sku, stock_count=stock, price=price, inserted=inserted)

        total = self._tally(committed[record.sku] for record in records if record.sku in committed)
        logger.info(
            "Batch upsert completed: inserted=%s updated=%s total=%s", total.inserted, total.updated, total.total
        )
        return total

    def upsert_variants(
        self,
        pairs: Sequence[tuple[VariantRecord, CatalogEntry]],
        committed: dict[str, ProcessedVariant] | None = None,
    ) -> UpsertResult:
        committed = {} if committed is None else committed
        if not pairs:
            logger.info("No product variants to upsert")
            return UpsertResult()

        parent_of = {variant.sku: parent.sku for variant, parent in pairs}
        pending = [(variant, parent) for variant, parent in pairs if variant.sku not in committed]
        if len(pending) < len(pairs):
            logger.info("Resuming variant upsert, %s already committed", len(pairs) - len(pending))

        batches = chunked(pending, self.batch_size)
        for index, batch in enumerate(batches, start=1):
            logger.info("Processing variant batch %s/%s (%s variants)", index, len(batches), len(batch))
            rows = [
                {
                    "product_id": parent.id,
                    "sku": variant.sku,
                    "name": variant.name,
                    "stock_count": variant.stock_adjust_count,
                    "price": parent.price if variant.price == 0 else variant.price,
                }
                for variant, parent in batch
            ]
            returned = self._upsert_batch(
                ProductVariant,
                rows,
                overwrite=("product_id", "name", "price"),
                stage="upsert-product-variants",
            )
            for sku, stock, price, inserted in returned:
                committed[sku] = ProcessedVariant(
                    sku=sku,
                    parent_sku=parent_of[sku],
                    stock_count=stock,
                    price=price,
                    inserted=inserted,
                )

        total = self._tally(committed[variant.sku] for variant, _ in pairs if variant.sku in committed)
        logger.info(
            "Product variants upsert completed: inserted=%s updated=%s total=%s",
            total.inserted,
            total.updated,
            total.total,
        )
        return total

    def overwrite_parent_stock(self, totals: dict[str, int]) -> int:
        """Replace parent stock with derived totals; unknown SKUs are ignored."""
        if not totals:
            logger.info("No parent products to update in database")
            return 0

        updated = 0
        for batch in chunked(sorted(totals), self.batch_size):
            stmt = (
                update(Product)
                .where(Product.sku.in_(batch))
                .values(
                    stock_count=case({sku: totals[sku] for sku in batch}, value=Product.sku, else_=Product.stock_count),
                    updated_at=utc_now(),
                )
                .returning(Product.sku, Product.stock_count)
                .execution_options(synchronize_session=False)
            )
            try:
                rows = self.db.execute(stmt).all()
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                raise WriteError.at("update-parent-products-db", str(exc), attempted=len(batch)) from exc

            for row in rows:
                logger.info("Parent %s stock set to %s in catalog", row.sku, row.stock_count)
            updated += len(rows)
        return updated

    def _upsert_batch(
        self,
        model: type[Product] | type[ProductVariant],
        rows: list[dict[str, Any]],
        overwrite: tuple[str, ...],
        stage: str,
    ) -> list[tuple[str, int, Decimal, bool]]:
        now = utc_now()
        issued: dict[str, str] = {}
        for row in rows:
            issued[row["sku"]] = row["id"] = self.id_factory()
            row["created_at"] = now
            row["updated_at"] = now

        insert = self._insert_for_dialect()
        stmt = insert(model).values(rows)
        set_: dict[str, Any] = {name: stmt.excluded[name] for name in overwrite}
        set_["stock_count"] = model.stock_count + stmt.excluded.stock_count
        set_["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(index_elements=[model.sku], set_=set_).returning(
            model.id, model.sku, model.stock_count, model.price
        )

        try:
            returned = self.db.execute(stmt).all()
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise WriteError.at(stage, str(exc), attempted=len(rows)) from exc

        # An existing row keeps its original id, so a matching id means the row was created here.
        return [
            (row.sku, int(row.stock_count), Decimal(row.price or 0), row.id == issued.get(row.sku))
            for row in returned
        ]

    def _insert_for_dialect(self) -> Callable[..., Any]:
        dialect = self.db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise ValueError(f"Upserts are not supported on dialect {dialect}")
        return insert

    @staticmethod
    def _tally(processed: Iterable[ProcessedProduct | ProcessedVariant]) -> UpsertResult:
        result = UpsertResult()
        for item in processed:
            result.results.append(item)
            if item.inserted:
                result.inserted += 1
            else:
                result.updated += 1
            result.total += 1
        return result
