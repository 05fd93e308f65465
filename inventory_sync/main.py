from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass

from inventory_sync.catalog import CatalogStore
from inventory_sync.config import SyncSettings, get_settings
from inventory_sync.db import build_engine, build_session_factory
from inventory_sync.ingestion import SheetIngestor
from inventory_sync.models import Base
from inventory_sync.pipeline import ProductSyncPipeline, VariantSyncPipeline, execute_job
from inventory_sync.propagation import SheetWriter
from inventory_sync.sheets import GoogleSheetsSource, InMemorySheet, TabularSource

JOBS = ("products", "variants")


@dataclass(frozen=True)
class SheetSources:
    products: TabularSource
    variants: TabularSource


def build_sources(settings: SyncSettings, mode: str, product_csv: str | None, variant_csv: str | None) -> SheetSources:
    if mode == "fixture":
        if not product_csv or not variant_csv:
            raise ValueError("--product-csv and --variant-csv are required in fixture mode")
        return SheetSources(products=InMemorySheet.from_csv(product_csv), variants=InMemorySheet.from_csv(variant_csv))

    products = GoogleSheetsSource.from_settings(settings, settings.product_sheet_id)
    try:
        variants = GoogleSheetsSource.from_settings(settings, settings.variant_sheet_id)
    except Exception:
        products.close()
        raise
    return SheetSources(products=products, variants=variants)


def build_pipeline(job: str, catalog: CatalogStore, sources: SheetSources, settings: SyncSettings):
    ingestor = SheetIngestor(
        product_sheet=sources.products,
        product_range=settings.product_sheet_range,
        variant_sheet=sources.variants,
        variant_range=settings.variant_sheet_range,
    )
    product_writer = SheetWriter(sources.products, settings.product_sheet_range)
    if job == "products":
        return ProductSyncPipeline(catalog, ingestor, product_writer)
    if job == "variants":
        variant_writer = SheetWriter(sources.variants, settings.variant_sheet_range)
        return VariantSyncPipeline(catalog, ingestor, variant_writer, product_writer)
    raise ValueError(f"Unknown job: {job}")


def run_once(
    job: str,
    settings: SyncSettings,
    mode: str = "live",
    product_csv: str | None = None,
    variant_csv: str | None = None,
    create_schema: bool = False,
) -> int:
    sources = build_sources(settings, mode, product_csv, variant_csv)
    try:
        engine = build_engine(settings)
        if create_schema:
            Base.metadata.create_all(bind=engine)
        SessionLocal = build_session_factory(engine)

        with SessionLocal() as db:
            catalog = CatalogStore(db, batch_size=settings.batch_size)
            pipeline = build_pipeline(job, catalog, sources, settings)
            run = execute_job(
                db,
                pipeline,
                retries=settings.max_retries,
                backoff_seconds=settings.run_backoff_seconds,
            )
            print(
                f"run={run.id} job={run.job} status={run.status} attempts={run.attempts} "
                f"inserted={run.items_new} updated={run.items_updated} total={run.items_total} skipped={run.items_skipped}"
            )
            return 1 if run.status == "failed" else 0
    finally:
        sources.products.close()
        sources.variants.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Spreadsheet to catalog inventory sync")
    parser.add_argument("--job", required=True, choices=JOBS)
    parser.add_argument("--mode", default="live", choices=["live", "fixture"])
    parser.add_argument("--product-csv", help="Primary sheet CSV export (fixture mode)")
    parser.add_argument("--variant-csv", help="Variant sheet CSV export (fixture mode)")
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument("--create-schema", action="store_true", help="Create catalog tables before syncing")

    args = parser.parse_args(argv)
    settings = get_settings()
    if args.max_retries is not None:
        settings = settings.model_copy(update={"max_retries": max(0, args.max_retries)})

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(
        run_once(
            job=args.job,
            settings=settings,
            mode=args.mode,
            product_csv=args.product_csv,
            variant_csv=args.variant_csv,
            create_schema=args.create_schema,
        )
    )


if __name__ == "__main__":
    main()
