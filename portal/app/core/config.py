import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma or space separated hosts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    origins: list[str] = []
    for part in parts:
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browsers include the scheme in the Origin header.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


def strip_scheme(server: str) -> str:
    """Return a bare host name from a SERVER value that may carry a scheme."""
    for prefix in ("http://", "https://"):
        if server.startswith(prefix):
            return server[len(prefix):]
    return server


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Variable names are case-insensitive (``PORT`` maps to ``port``).
    """

    debug: bool = False

    # Listener
    host: str = "0.0.0.0"
    port: int = 8060
    server: str = "localhost"  # Public name handed to the frontend
    ssl_keyfile: str | None = None
    ssl_certfile: str | None = None

    # PostgreSQL settings
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "portal"
    db_password: str = "portal"
    db_name: str = "portal"

    # Connection pool settings
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_timeout: int = 30  # Seconds to wait for a pooled connection
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True
    db_command_timeout: float = 30.0

    # Explicit DATABASE_URL (takes priority over db_* settings)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    @property
    def database_url(self) -> str:
        """Build database connection URL.

        Priority:
        1. database_url_override (from DATABASE_URL env var or .env file)
        2. Built from db_* settings
        """
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def server_host(self) -> str:
        return strip_scheme(self.server)

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_keyfile and self.ssl_certfile)

    # Rate limiting (API namespace only)
    rate_limit_enabled: bool = True
    rate_limit_requests_per_minute: int = 500
    rate_limit_window_seconds: int = 60
    rate_limit_max_entries: int = 10000

    # Request admission
    request_timeout_seconds: float = 10.0
    headers_timeout_seconds: float = 15.0  # Slow clients sending request headers
    keep_alive_timeout_seconds: int = 5
    max_body_bytes: int = 1024

    # Load shedding (event loop lag)
    load_shedding_enabled: bool = True
    max_event_loop_lag_ms: float = 100.0
    lag_check_interval_ms: float = 500.0

    # Transport-level connection caps
    connection_tracking_enabled: bool = True
    max_connections_per_ip: int = 50
    max_queue_size: int = 400
    connection_retention_seconds: float = 60.0

    # Interval of the background sweep over idle admission state
    admission_sweep_interval_seconds: float = 60.0

    # Generic SQL passthrough endpoint (unsafe, kept for compatibility)
    raw_query_enabled: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Use NoDecode so a bare host value does not crash JSON decoding.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "rate_limit_requests_per_minute",
        "rate_limit_window_seconds",
        "rate_limit_max_entries",
        "max_connections_per_ip",
        "max_queue_size",
        "max_body_bytes",
    )
    @classmethod
    def validate_limit_positive(cls, v: int) -> int:
        """Validate admission limits are positive."""
        if v < 1:
            raise ValueError("Limit values must be at least 1")
        return v

    @field_validator("db_pool_size", "db_max_overflow")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    @field_validator(
        "request_timeout_seconds",
        "headers_timeout_seconds",
        "keep_alive_timeout_seconds",
        "max_event_loop_lag_ms",
        "lag_check_interval_ms",
        "connection_retention_seconds",
        "admission_sweep_interval_seconds",
    )
    @classmethod
    def validate_duration_positive(cls, v: float) -> float:
        """Validate timeouts and intervals are positive."""
        if v <= 0:
            raise ValueError("Timeout and interval values must be positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
