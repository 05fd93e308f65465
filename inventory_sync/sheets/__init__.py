from inventory_sync.sheets.base import CellUpdate, TabularSource
from inventory_sync.sheets.google import GoogleSheetsSource
from inventory_sync.sheets.memory import InMemorySheet

__all__ = ["CellUpdate", "GoogleSheetsSource", "InMemorySheet", "TabularSource"]
