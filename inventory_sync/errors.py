from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class StageError:
    stage: str
    message: str
    attempted: int = 0
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stage": self.stage,
            "message": self.message,
            "attempted": self.attempted,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class SyncError(Exception):
    retriable = True

    def __init__(self, error: StageError):
        super().__init__(f"{error.stage}: {error.message} (attempted={error.attempted})")
        self.error = error

    @classmethod
    def at(cls, stage: str, message: str, attempted: int = 0, **details: Any) -> SyncError:
        return cls(StageError(stage=stage, message=message, attempted=attempted, details=details or None))


class FetchError(SyncError):
    """The spreadsheet could not be read."""


class WriteError(SyncError):
    """A catalog or spreadsheet write failed."""


class NothingToSync(SyncError):
    """Ingestion produced no records; the run ends without consuming a retry."""

    retriable = False
