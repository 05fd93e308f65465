from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from inventory_sync.errors import SyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3


class StepRunner:
    """Runs named steps and keeps each completed step's result.

    A run that is retried with the same runner returns the kept result for
    steps that already completed instead of executing them again. A step that
    raised is executed again on the next attempt. A step that commits work in
    pieces records them in its checkpoint so the next attempt can skip them.
    """

    def __init__(self) -> None:
        self.results: dict[str, Any] = {}
        self.checkpoints: dict[str, dict[str, Any]] = {}
        self.attempts = 0

    def run(self, name: str, fn: Callable[[], T]) -> T:
        if name in self.results:
            logger.info("Step %s already completed, reusing its result", name)
            return self.results[name]

        logger.info("Running step %s", name)
        result = fn()
        self.results[name] = result
        return result

    def checkpoint(self, name: str) -> dict[str, Any]:
        return self.checkpoints.setdefault(name, {})


def run_with_retries(
    job: Callable[[StepRunner], T],
    retries: int = DEFAULT_RETRIES,
    backoff_seconds: float = 0.0,
    step: StepRunner | None = None,
) -> T:
    step = step or StepRunner()
    attempts = max(0, retries) + 1
    for attempt in range(attempts):
        step.attempts = attempt + 1
        try:
            return job(step)
        except SyncError as exc:
            if not exc.retriable:
                raise
            if attempt >= attempts - 1:
                raise
            logger.warning("Run failed at %s, retrying (%s/%s): %s", exc.error.stage, attempt + 1, retries, exc)
        except Exception as exc:
            if attempt >= attempts - 1:
                raise
            logger.warning("Run failed, retrying (%s/%s): %s", attempt + 1, retries, exc)

        delay = backoff_seconds * (2**attempt)
        if delay > 0:
            time.sleep(delay)
    raise RuntimeError("Unreachable retry state")
