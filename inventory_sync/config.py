from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncSettings(BaseSettings):
    database_url: str = Field(default="sqlite:///./inventory.db")
    google_access_token: str = ""
    google_sheets_base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    product_sheet_id: str = ""
    product_sheet_range: str = "Sheet1!A2:L1000"
    variant_sheet_id: str = ""
    variant_sheet_range: str = "Sheet1!A2:F1000"
    batch_size: int = Field(default=100, ge=1)
    max_retries: int = Field(default=3, ge=0)
    run_backoff_seconds: float = Field(default=2.0, ge=0)
    request_timeout_seconds: float = 15.0
    max_fetch_retries: int = 2
    retry_backoff_seconds: float = 0.6
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="INVSYNC_")


@lru_cache
def get_settings() -> SyncSettings:
    return SyncSettings()
