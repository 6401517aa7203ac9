import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

DEFAULT_STORAGE_PATH = Path.home() / ".progress_sync" / "local_storage.json"


class Settings(BaseSettings):
    storage_path: Path = Field(DEFAULT_STORAGE_PATH, alias="PROGRESS_SYNC_STORAGE_PATH")
    catalog_path: Optional[Path] = Field(None, alias="PROGRESS_SYNC_CATALOG_PATH")
    remote_url: Optional[str] = Field(None, alias="PROGRESS_SYNC_REMOTE_URL")
    debounce_seconds: float = Field(2.0, ge=0.0, alias="PROGRESS_SYNC_DEBOUNCE_SECONDS")
    http_timeout_seconds: float = Field(10.0, gt=0.0, alias="PROGRESS_SYNC_HTTP_TIMEOUT_SECONDS")
    database_url: Optional[str] = Field(None, alias="PROGRESS_SYNC_DATABASE_URL")
    database_echo: bool = Field(False, alias="PROGRESS_SYNC_DATABASE_ECHO")
    auth_secret: str = Field(
        "progress-sync-default-secret-change-in-prod",
        alias="PROGRESS_SYNC_AUTH_SECRET",
    )

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid progress sync configuration: {exc}") from exc
