from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from inventory_sync.aggregation import aggregate_parent_stock
from inventory_sync.catalog import CatalogStore, resolve_parents
from inventory_sync.dedupe import dedupe
from inventory_sync.errors import NothingToSync
from inventory_sync.ingestion import SheetIngestor
from inventory_sync.models import SyncRun
from inventory_sync.propagation import SheetWriter
from inventory_sync.records import ProductRecord, SyncResult, UpsertResult, VariantRecord
from inventory_sync.steps import StepRunner, run_with_retries

logger = logging.getLogger(__name__)


class ProductSyncPipeline:
    job = "products"

    def __init__(self, catalog: CatalogStore, ingestor: SheetIngestor, product_writer: SheetWriter) -> None:
        self.catalog = catalog
        self.ingestor = ingestor
        self.product_writer = product_writer

    def run(self, step: StepRunner) -> SyncResult:
        products = step.run("fetch-sheet-data", self.ingestor.fetch_products)
        if not products:
            raise NothingToSync.at("fetch-sheet-data", "No products to update")

        result = step.run("upsert-products", lambda: self._reconcile(products, step.checkpoint("upsert-products")))
        step.run("sync-sheet-current-stock", lambda: self.product_writer.write_products(result.results))
        return SyncResult.from_upsert(result)

    def _reconcile(self, products: list[ProductRecord], committed: dict) -> UpsertResult:
        unique, _, _ = dedupe(products)
        return self.catalog.upsert_products(unique, committed)


class VariantSyncPipeline:
    job = "variants"

    def __init__(
        self,
        catalog: CatalogStore,
        ingestor: SheetIngestor,
        variant_writer: SheetWriter,
        product_writer: SheetWriter,
    ) -> None:
        self.catalog = catalog
        self.ingestor = ingestor
        self.variant_writer = variant_writer
        self.product_writer = product_writer

    def run(self, step: StepRunner) -> SyncResult:
        variants = step.run("fetch-sheet-data", self.ingestor.fetch_variants)
        if not variants:
            raise NothingToSync.at("fetch-sheet-data", "No product variants to update")

        result = step.run(
            "upsert-product-variants",
            lambda: self._reconcile(variants, step.checkpoint("upsert-product-variants")),
        )

        # Entity sheet first, then the derived parent totals: sheet, then catalog.
        step.run("sync-product-variants-sheet", lambda: self.variant_writer.write_variants(result.results))
        totals = aggregate_parent_stock(result.results)
        logger.info("Calculated stock for %s parent products", len(totals))
        step.run("sync-parent-products-sheet", lambda: self.product_writer.write_parent_totals(totals))
        step.run("update-parent-products-db", lambda: self.catalog.overwrite_parent_stock(totals))
        return SyncResult.from_upsert(result)

    def _reconcile(self, variants: list[VariantRecord], committed: dict) -> UpsertResult:
        unique, _, _ = dedupe(variants)
        lookup = self.catalog.fetch_entries(variant.parent_sku for variant in unique)
        logger.info("Found %s parent products", len(lookup))

        resolution = resolve_parents(unique, lookup)
        if resolution.skipped:
            logger.info(
                "Skipping %s variants without a matching parent product, processing %s",
                len(resolution.skipped),
                len(resolution.valid),
            )

        result = self.catalog.upsert_variants(resolution.valid, committed)
        result.skipped = len(resolution.skipped)
        return result


def execute_job(
    db: Session,
    pipeline: ProductSyncPipeline | VariantSyncPipeline,
    retries: int = 3,
    backoff_seconds: float = 0.0,
) -> SyncRun:
    run = SyncRun(job=pipeline.job, status="running")
    db.add(run)
    db.commit()

    step = StepRunner()
    try:
        result = run_with_retries(pipeline.run, retries=retries, backoff_seconds=backoff_seconds, step=step)
        run.items_total = result.total
        run.items_new = result.inserted
        run.items_updated = result.updated
        run.items_skipped = result.skipped
        run.status = "completed"
    except NothingToSync as exc:
        logger.info("Nothing to sync: %s", exc.error.message)
        run.status = "skipped"
        run.error_summary = exc.error.message
    except Exception as exc:
        logger.exception("Sync job %s failed", pipeline.job)
        run.status = "failed"
        run.error_summary = str(exc)
    finally:
        run.attempts = step.attempts
        run.finished_at = datetime.now(timezone.utc)
        db.commit()

    return run
