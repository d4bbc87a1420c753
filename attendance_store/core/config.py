from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STORE_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Line Attendance Store"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/attendance_store.db"

    upload_dir: Path = Path("./data/images")
    upload_url_prefix: str = "/images"
    upload_max_bytes: int = 5_000_000
    upload_extensions_raw: str = "jpg,jpeg,png,bmp,webp"

    cors_origins_raw: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins_raw.split(",") if origin.strip()]

    @property
    def upload_extensions(self) -> set[str]:
        return {ext.strip().lower().lstrip(".") for ext in self.upload_extensions_raw.split(",") if ext.strip()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
