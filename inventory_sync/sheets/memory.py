from __future__ import annotations

import csv
from pathlib import Path

from inventory_sync.sheets.base import CellUpdate, TabularSource, parse_cell, parse_range


class InMemorySheet(TabularSource):
    """Grid-backed source; ``grid[0]`` is sheet row 1.

    Reads trim trailing blank cells the way the Sheets API does, so returned
    rows can be ragged.
    """

    def __init__(self, grid: list[list[str]] | None = None) -> None:
        self.grid: list[list[str]] = [list(row) for row in (grid or [])]
        self.writes: list[list[CellUpdate]] = []

    @classmethod
    def from_csv(cls, path: str | Path) -> InMemorySheet:
        with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
            return cls([row for row in csv.reader(handle)])

    def read(self, range_selector: str) -> list[list[str]]:
        ref = parse_range(range_selector)
        rows: list[list[str]] = []
        for row in self.grid[ref.first_row - 1 :]:
            values = [str(value) for value in row[ref.first_column :]]
            while values and values[-1] == "":
                values.pop()
            rows.append(values)
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def write_cells(self, updates: list[CellUpdate]) -> None:
        for update in updates:
            _, column, row_number = parse_cell(update.address)
            while len(self.grid) < row_number:
                self.grid.append([])
            row = self.grid[row_number - 1]
            while len(row) <= column:
                row.append("")
            row[column] = update.value
        self.writes.append(list(updates))

    def value(self, address: str) -> str:
        _, column, row_number = parse_cell(address)
        if row_number > len(self.grid):
            return ""
        row = self.grid[row_number - 1]
        return row[column] if column < len(row) else ""
