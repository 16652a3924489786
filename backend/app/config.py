"""PartsCatalog configuration — Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "PartsCatalog"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Network
    host: str = "127.0.0.1"
    port: int = 8000
    api_prefix: str = "/api"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    # Session cookie signing
    secret_key: str = "change-me-in-prod"
    token_algorithm: str = "HS256"

    # Auth — oauth = per-admin Google login, service_account = fixed credentials file
    auth_mode: Literal["oauth", "service_account"] = "oauth"
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/api/auth/callback"
    google_scopes: list[str] = [
        "openid",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/drive",
    ]
    google_service_account_file: str = ""
    admin_emails: list[str] = []  # empty = any Google account may log in
    post_login_redirect: str = "/"
    revoke_on_logout: bool = False

    # Sessions
    session_backend: Literal["memory", "database"] = "database"
    session_ttl_minutes: int = 720  # 12 hours
    session_max_entries: int = 1000  # memory backend only
    session_purge_interval_seconds: int = 300
    session_cookie_name: str = "parts_session"
    session_cookie_secure: bool = False

    # Google Drive
    root_folder_id: str = ""
    drive_api_url: str = "https://www.googleapis.com/drive/v3"
    drive_upload_url: str = "https://www.googleapis.com/upload/drive/v3"
    drive_view_base_url: str = "https://drive.google.com/uc"
    drive_order_by: str = "createdTime"
    drive_page_size: int = 100
    drive_timeout_seconds: float = 15.0
    drive_read_retries: int = 2
    drive_retry_backoff_seconds: float = 0.5

    # Catalog aggregation
    catalog_concurrency: int = 4
    catalog_failure_mode: Literal["strict", "lenient"] = "strict"

    # Storage paths (relative resolved from backend/ at runtime)
    data_dir: str = "./data"
    database_path: str = "./data/parts.db"
    static_dir: str = "../public"

    uvicorn_workers: int = 1
    max_db_connections: int = 5

    @property
    def oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="PARTS_",
        extra="ignore",
    )

    @field_validator("cors_origins", "admin_emails", "google_scopes", mode="before")
    @classmethod
    def split_comma_list(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @field_validator("admin_emails")
    @classmethod
    def lowercase_emails(cls, value: list[str]) -> list[str]:
        return [e.lower() for e in value]

    @field_validator("catalog_concurrency")
    @classmethod
    def positive_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("catalog_concurrency must be >= 1")
        return value

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure storage paths are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "database_path", "static_dir"):
            val = getattr(self, field)
            if not Path(val).is_absolute():
                setattr(self, field, str((base / val).resolve()))
        if self.google_service_account_file and not Path(self.google_service_account_file).is_absolute():
            self.google_service_account_file = str(base / self.google_service_account_file)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
