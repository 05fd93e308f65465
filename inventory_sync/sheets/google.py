from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from inventory_sync.config import SyncSettings
from inventory_sync.sheets.base import CellUpdate, TabularSource

logger = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUSES = {429, 500, 502, 503, 504}


class GoogleSheetsSource(TabularSource):
    """One spreadsheet accessed through the Sheets v4 values API."""

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str,
        base_url: str = "https://sheets.googleapis.com/v4/spreadsheets",
        timeout_seconds: float = 15.0,
        max_fetch_retries: int = 2,
        retry_backoff_seconds: float = 0.6,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id is required")
        self.spreadsheet_id = spreadsheet_id
        self.max_fetch_retries = max(0, max_fetch_retries)
        self.retry_backoff_seconds = max(0.0, retry_backoff_seconds)
        self.client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/{spreadsheet_id}",
            timeout=timeout_seconds,
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: SyncSettings, spreadsheet_id: str) -> GoogleSheetsSource:
        return cls(
            spreadsheet_id=spreadsheet_id,
            access_token=settings.google_access_token,
            base_url=settings.google_sheets_base_url,
            timeout_seconds=settings.request_timeout_seconds,
            max_fetch_retries=settings.max_fetch_retries,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )

    def read(self, range_selector: str) -> list[list[str]]:
        response = self._request_with_retries("GET", f"/values/{quote(range_selector, safe='!:')}")
        payload = response.json()
        rows = payload.get("values") or []
        return [[str(value) for value in row] for row in rows]

    def write_cells(self, updates: list[CellUpdate]) -> None:
        if not updates:
            return
        body: dict[str, Any] = {
            "valueInputOption": "RAW",
            "data": [{"range": update.address, "values": [[update.value]]} for update in updates],
        }
        self._request_with_retries("POST", "/values:batchUpdate", json=body)

    def close(self) -> None:
        self.client.close()

    def _request_with_retries(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        attempts = self.max_fetch_retries + 1
        for attempt in range(attempts):
            try:
                response = self.client.request(method, url, **kwargs)
                if response.status_code in RETRYABLE_HTTP_STATUSES:
                    raise httpx.HTTPStatusError(
                        f"Retryable status {response.status_code} for {url}",
                        request=response.request,
                        response=response,
                    )
                response.raise_for_status()
                return response
            except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as exc:
                if isinstance(exc, httpx.HTTPStatusError):
                    status = exc.response.status_code if exc.response is not None else None
                    if status not in RETRYABLE_HTTP_STATUSES:
                        raise

                if attempt >= attempts - 1:
                    raise

                backoff = self.retry_backoff_seconds * (2**attempt)
                if backoff > 0:
                    time.sleep(backoff)
                logger.debug(
                    "Retrying %s %s on sheet %s after error (%s), attempt %s/%s",
                    method,
                    url,
                    self.spreadsheet_id,
                    exc,
                    attempt + 1,
                    attempts,
                )
        raise RuntimeError(f"Unreachable retry state for {url}")
