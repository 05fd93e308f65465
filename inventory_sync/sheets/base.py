from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

_CELL_RE = re.compile(r"^([A-Za-z]+)(\d+)?$")


@dataclass(frozen=True)
class CellUpdate:
    address: str
    value: str


@dataclass(frozen=True)
class RangeRef:
    sheet: str | None
    first_column: int
    first_row: int


def column_letter(index: int) -> str:
    """0-based column index to A1 letters (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative: {index}")
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def column_index(letters: str) -> int:
    value = 0
    for char in letters.upper():
        if not "A" <= char <= "Z":
            raise ValueError(f"Invalid column letters: {letters}")
        value = value * 26 + (ord(char) - ord("A") + 1)
    if value == 0:
        raise ValueError("Column letters cannot be empty")
    return value - 1


def split_sheet(selector: str) -> tuple[str | None, str]:
    if "!" not in selector:
        return None, selector
    sheet, _, rest = selector.rpartition("!")
    return sheet.strip("'") or None, rest


def parse_range(selector: str) -> RangeRef:
    sheet, cells = split_sheet(selector)
    start = cells.split(":", 1)[0]
    match = _CELL_RE.match(start.strip())
    if not match:
        raise ValueError(f"Invalid range selector: {selector}")
    letters, row = match.groups()
    return RangeRef(sheet=sheet, first_column=column_index(letters), first_row=int(row) if row else 1)


def parse_cell(address: str) -> tuple[str | None, int, int]:
    sheet, cell = split_sheet(address)
    match = _CELL_RE.match(cell.strip())
    if not match or match.group(2) is None:
        raise ValueError(f"Invalid cell address: {address}")
    return sheet, column_index(match.group(1)), int(match.group(2))


def cell_address(sheet: str | None, column: str, row_number: int) -> str:
    if sheet:
        return f"{sheet}!{column}{row_number}"
    return f"{column}{row_number}"


def cell(row: list[str], index: int) -> str:
    if index < len(row) and row[index] is not None:
        return str(row[index]).strip()
    return ""


class TabularSource(ABC):
    """A spreadsheet-like store addressed with A1 notation.

    Row 1 is the header; data starts on row 2.
    """

    @abstractmethod
    def read(self, range_selector: str) -> list[list[str]]:
        raise NotImplementedError

    @abstractmethod
    def write_cells(self, updates: list[CellUpdate]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass
