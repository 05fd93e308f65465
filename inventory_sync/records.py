from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ProductRecord:
    sku: str
    name: str
    ready_for_sale: bool
    stock_adjust_count: int
    price: Decimal
    short_desc: str


@dataclass(frozen=True)
class VariantRecord:
    parent_sku: str
    sku: str
    name: str
    stock_adjust_count: int
    price: Decimal


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    sku: str
    price: Decimal
    stock_count: int


@dataclass(frozen=True)
class ProcessedProduct:
    sku: str
    stock_count: int
    price: Decimal
    inserted: bool


@dataclass(frozen=True)
class ProcessedVariant:
    sku: str
    parent_sku: str
    stock_count: int
    price: Decimal
    inserted: bool


@dataclass
class UpsertResult:
    """Counts and absolute post-write state for one reconciliation pass."""

    inserted: int = 0
    updated: int = 0
    total: int = 0
    skipped: int = 0
    results: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class SyncResult:
    inserted: int
    updated: int
    total: int
    skipped: int = 0

    @classmethod
    def from_upsert(cls, result: UpsertResult) -> SyncResult:
        return cls(inserted=result.inserted, updated=result.updated, total=result.total, skipped=result.skipped)

    def to_dict(self) -> dict[str, int]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "total": self.total,
            "skipped": self.skipped,
        }
