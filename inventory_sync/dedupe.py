from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from typing import Generic, NamedTuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedArena(Generic[T]):
    """Ordered map keyed by natural key where a later put overwrites the value.

    A key keeps the position of its first appearance and the value of its last
    one, so spreadsheet row order is the only tie-break.
    """

    def __init__(self) -> None:
        self._records: dict[Hashable, T] = {}
        self._collisions: dict[Hashable, int] = {}

    def put(self, key: Hashable, record: T) -> None:
        if key in self._records:
            self._collisions[key] = self._collisions.get(key, 0) + 1
        self._records[key] = record

    def values(self) -> list[T]:
        return list(self._records.values())

    @property
    def discarded_count(self) -> int:
        return sum(self._collisions.values())

    @property
    def colliding_keys(self) -> list[Hashable]:
        return list(self._collisions)

    def __len__(self) -> int:
        return len(self._records)


class DedupeResult(NamedTuple):
    records: list
    discarded_count: int
    discarded_keys: list[Hashable]


def _sku(record: object) -> Hashable:
    return getattr(record, "sku")


def dedupe(records: Iterable[T], key: Callable[[T], Hashable] = _sku) -> DedupeResult:
    arena: KeyedArena[T] = KeyedArena()
    for record in records:
        arena.put(key(record), record)

    result = DedupeResult(arena.values(), arena.discarded_count, arena.colliding_keys)
    if result.discarded_count:
        logger.warning(
            "Found %s duplicate SKUs, processing %s unique records; duplicates: %s",
            result.discarded_count,
            len(result.records),
            ", ".join(str(k) for k in result.discarded_keys),
        )
    return result
