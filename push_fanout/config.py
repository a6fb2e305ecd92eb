from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote_plus


SUPPORTED_APP_ENVS = {"SIT", "UAT"}
SUPPORTED_NOTIFICATION_PROVIDERS = {"mock", "fcm"}
DEFAULT_ICON_URL = "https://i.ibb.co.com/hJCt1BMP/Picsart-26-01-03-19-21-09-763.png"


def _current_app_env() -> str:
    default_env = "UAT" if os.getenv("RAILWAY_ENVIRONMENT", "").strip() else "SIT"
    raw = os.getenv("APP_ENV", default_env).strip().upper()
    if not raw:
        return default_env
    if raw not in SUPPORTED_APP_ENVS:
        raise ValueError(f"Invalid APP_ENV: {raw}. Supported values: {sorted(SUPPORTED_APP_ENVS)}")
    return raw


def _get_first_set(*env_names: str) -> str:
    for env_name in env_names:
        value = os.getenv(env_name, "").strip()
        if value:
            return value
    return ""


def _normalize_database_url(raw_url: str) -> str:
    if not raw_url:
        return raw_url
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg2://", 1)
    if raw_url.startswith("postgresql://") and "+" not in raw_url.split("://", 1)[0]:
        return raw_url.replace("postgresql://", "postgresql+psycopg2://", 1)
    if raw_url.startswith("postgresql+psycopg://"):
        return raw_url.replace("postgresql+psycopg://", "postgresql+psycopg2://", 1)
    return raw_url


def _with_sslmode_if_needed(db_url: str) -> str:
    if not db_url or "sslmode=" in db_url:
        return db_url
    lowered = db_url.lower()
    if "localhost" in lowered or "127.0.0.1" in lowered:
        return db_url
    sep = "&" if "?" in db_url else "?"
    return f"{db_url}{sep}sslmode=require"


def _build_database_url() -> str:
    prefix = _current_app_env()
    explicit = _get_first_set(f"{prefix}_DATABASE_URL", "DATABASE_URL", "DATABASE_PUBLIC_URL")
    if explicit:
        return _with_sslmode_if_needed(_normalize_database_url(explicit))

    host = _get_first_set(f"{prefix}_PGHOST", "PGHOST")
    port = _get_first_set(f"{prefix}_PGPORT", "PGPORT") or "5432"
    user = _get_first_set(f"{prefix}_PGUSER", "PGUSER")
    password = _get_first_set(f"{prefix}_PGPASSWORD", "PGPASSWORD")
    database = _get_first_set(f"{prefix}_PGDATABASE", "PGDATABASE")
    if host and user and database:
        pwd = quote_plus(password)
        url = f"postgresql+psycopg2://{user}:{pwd}@{host}:{port}/{database}"
        return _with_sslmode_if_needed(url)

    # Local dev fallback when DATABASE_URL is not set.
    sqlite_file = Path(os.getenv("SQLITE_DB_PATH", "./push_fanout.db")).as_posix()
    if sqlite_file.startswith("/"):
        return f"sqlite:///{sqlite_file}"
    return f"sqlite:///./{sqlite_file.lstrip('./')}"


def _build_db_schema() -> str:
    prefix = _current_app_env()
    return _get_first_set(f"{prefix}_DB_SCHEMA", "DB_SCHEMA") or "push_fanout"


def _notification_provider() -> str:
    raw = os.getenv("NOTIFICATION_PROVIDER", "mock").strip().lower() or "mock"
    if raw not in SUPPORTED_NOTIFICATION_PROVIDERS:
        raise ValueError(
            f"Invalid NOTIFICATION_PROVIDER: {raw}. Supported values: {sorted(SUPPORTED_NOTIFICATION_PROVIDERS)}"
        )
    return raw


def _csv_env(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    app_env: str = _current_app_env()
    app_name: str = os.getenv("APP_NAME", "push_fanout")
    app_debug: bool = os.getenv("APP_DEBUG", "false").lower() == "true"
    app_host: str = os.getenv("APP_HOST", "0.0.0.0")
    app_port: int = int(os.getenv("APP_PORT", "8004"))
    cors_allow_origins: list[str] = field(default_factory=lambda: _csv_env("CORS_ALLOW_ORIGINS", "*"))

    database_url: str = _build_database_url()
    db_schema: str = _build_db_schema()

    notification_provider: str = _notification_provider()
    firebase_project_id: str = os.getenv("FIREBASE_PROJECT_ID", "")
    firebase_credentials_path: str = os.getenv("FIREBASE_CREDENTIALS_PATH", "")
    default_notification_icon: str = os.getenv("DEFAULT_NOTIFICATION_ICON", DEFAULT_ICON_URL)
    default_notification_badge: str = os.getenv("DEFAULT_NOTIFICATION_BADGE", DEFAULT_ICON_URL)
    notification_click_link: str = os.getenv("NOTIFICATION_CLICK_LINK", "")

    token_retention_days: int = int(os.getenv("TOKEN_RETENTION_DAYS", "90"))
    token_cleanup_scheduler_enabled: bool = os.getenv("TOKEN_CLEANUP_SCHEDULER_ENABLED", "true").lower() == "true"
    token_cleanup_hour_utc: int = int(os.getenv("TOKEN_CLEANUP_HOUR_UTC", "3"))


settings = Settings()


def get_settings() -> Settings:
    return settings
