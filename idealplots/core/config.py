# idealplots/core/config.py
import ssl
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """
    Process configuration, read from the environment (and an optional `.env`).

    The DB_* keys mirror the deployment environment of the listing site; pool
    defaults depend on NODE_ENV (production: 10 connections, 60s acquire,
    300s idle; development: 5 connections, 30s acquire, 180s idle).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Process ---
    node_env: Literal["development", "production"] = "development"
    host: str = "0.0.0.0"
    port: int = 5000
    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # --- Database ---
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "idealplots"
    db_connection_limit: Optional[int] = None
    db_acquire_timeout: Optional[int] = None  # milliseconds
    db_timeout: Optional[int] = None  # milliseconds, per statement
    db_ssl_reject_unauthorized: bool = False
    db_ssl: bool = False
    db_echo: bool = False
    db_max_reconnect_attempts: int = 5

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"

    # --- Workflow engine ---
    operation_timeout_seconds: float = 5.0
    transient_retry_attempts: int = 3
    transient_retry_backoff_seconds: float = 2.0
    ticket_insert_attempts: int = 5
    shutdown_timeout_seconds: float = 30.0
    bcrypt_rounds: int = 12

    # --- Facade ---
    enquiry_rate_limit: int = 10
    enquiry_rate_window_seconds: int = 900
    dashboard_cache_ttl_seconds: int = 300

    # --- Bootstrap ---
    bootstrap_admin_name: str = "Administrator"
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_phone: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"

    @property
    def pool_size(self) -> int:
        if self.db_connection_limit:
            return self.db_connection_limit
        return 10 if self.is_production else 5

    @property
    def pool_acquire_timeout(self) -> float:
        millis = self.db_acquire_timeout or (60000 if self.is_production else 30000)
        return millis / 1000

    @property
    def pool_idle_timeout(self) -> int:
        return 300 if self.is_production else 180

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return URL.create(
            "postgresql+asyncpg",
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        ).render_as_string(hide_password=False)

    def connect_args(self) -> dict:
        """asyncpg-specific connection arguments; empty for other drivers."""
        if not self.sqlalchemy_url.startswith("postgresql+asyncpg"):
            return {}
        args = {}
        if self.db_timeout:
            args["command_timeout"] = self.db_timeout / 1000
        if self.db_ssl:
            context = ssl.create_default_context()
            if not self.db_ssl_reject_unauthorized:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            args["ssl"] = context
        return args


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
