"""Floorline — Configuration Management.

Strictly-typed configuration system using pydantic-settings.
All settings are loaded from environment variables (or ``.env``) with
validation, grouped per concern with an env prefix each.
"""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Event store connection configuration.

    Attributes:
        url: SQLAlchemy async URL (sqlite+aiosqlite or postgresql+asyncpg).
        echo: Echo SQL statements (debugging only).
        create_schema: Create missing tables at startup.
        pool_size: Pool size for server databases (ignored for SQLite).
        max_overflow: Max overflow connections for server databases.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./data/machines.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    create_schema: bool = Field(default=True, description="Create tables at startup")
    pool_size: int = Field(default=10, ge=1, le=100, description="Pool size")
    max_overflow: int = Field(default=10, ge=0, le=100, description="Max overflow connections")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_safe(self) -> str:
        """Database URL safe for logging (password masked)."""
        if "@" not in self.url or "://" not in self.url:
            return self.url
        scheme, rest = self.url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


class RedisSettings(BaseSettings):
    """Redis pub/sub configuration for machine-update fan-out.

    Attributes:
        enabled: Publish machine updates to Redis as well as WebSockets.
        host: Redis server hostname.
        port: Redis server port.
        password: Redis password (SecretStr, optional for dev).
        db: Redis database number.
        ssl: Enable SSL/TLS connection.
        socket_timeout: Socket timeout in seconds.
        channel_prefix: Channel name; per-machine channels append ``:<name>``.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Publish updates to Redis")
    host: str = Field(default="localhost", description="Redis server hostname")
    port: int = Field(default=6379, ge=1, le=65535, description="Redis server port")
    password: SecretStr | None = Field(default=None, description="Redis password")
    db: int = Field(default=0, ge=0, le=15, description="Redis database number")
    ssl: bool = Field(default=False, description="Enable SSL/TLS")
    socket_timeout: float = Field(default=5.0, gt=0, description="Socket timeout (seconds)")
    channel_prefix: str = Field(default="machine-update", min_length=1, description="Pub/sub channel")

    @property
    def url(self) -> str:
        """Build Redis URL for connection."""
        protocol = "rediss" if self.ssl else "redis"
        auth = ""
        if self.password:
            auth = f":{self.password.get_secret_value()}@"
        return f"{protocol}://{auth}{self.host}:{self.port}/{self.db}"

    @property
    def url_safe(self) -> str:
        """Build Redis URL safe for logging (password masked)."""
        protocol = "rediss" if self.ssl else "redis"
        auth = ":***@" if self.password else ""
        return f"{protocol}://{auth}{self.host}:{self.port}/{self.db}"


class LivenessSettings(BaseSettings):
    """Periodic machine timeout checker.

    Attributes:
        enabled: Run the checker inside the API process.
        timeout_ms: Silence after which a machine is offline.
        grace_ms: Machines updated more recently than this are never flagged.
        poll_interval_seconds: Time between passes (also the pass timeout).
        startup_delay_seconds: Delay before the first pass.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIVENESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Run the timeout checker")
    timeout_ms: int = Field(default=8000, ge=1, description="Offline threshold (ms)")
    grace_ms: int = Field(default=2000, ge=0, description="Recent-update grace (ms)")
    poll_interval_seconds: float = Field(default=1.0, gt=0, le=60, description="Polling interval (seconds)")
    startup_delay_seconds: float = Field(default=2.0, ge=0, le=60, description="Delay before first pass")

    @model_validator(mode="after")
    def validate_grace_below_timeout(self) -> "LivenessSettings":
        if self.grace_ms >= self.timeout_ms:
            raise ValueError("LIVENESS_GRACE_MS must be smaller than LIVENESS_TIMEOUT_MS")
        return self


class DashboardSettings(BaseSettings):
    """Dashboard view configuration.

    Attributes:
        timezone: IANA zone for naive timestamps and day boundaries
            (empty means the host's local zone).
        production_periods: Buckets in a machine card's production series.
    """

    model_config = SettingsConfigDict(
        env_prefix="DASHBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = Field(default="", description="IANA timezone name")
    production_periods: int = Field(default=13, ge=1, le=96, description="Production series buckets")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        v = v.strip()
        if v:
            try:
                ZoneInfo(v)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @property
    def tzinfo(self) -> ZoneInfo | None:
        return ZoneInfo(self.timezone) if self.timezone else None


class LogSettings(BaseSettings):
    """Logging configuration for observability.

    Attributes:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format: Force json or text output; unset follows the environment
            (text only in development).
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["json", "text"] | None = Field(
        default=None,
        description="Log format override (json for production)",
    )

    @property
    def json_output(self) -> bool | None:
        if self.format is None:
            return None
        return self.format == "json"


class Settings(BaseSettings):
    """Root application settings aggregating all configuration sections.

    Use get_settings() to obtain a cached singleton instance.

    Example:
        >>> settings = get_settings()
        >>> print(settings.database.url_safe)
        sqlite+aiosqlite:///./data/machines.db
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="Floorline", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    debug: bool = Field(default=False, description="Debug mode (disable in production!)")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    liveness: LivenessSettings = Field(default_factory=LivenessSettings)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Enforce strict settings in production."""
        if self.environment == "production":
            if self.debug:
                raise ValueError("Debug mode must be disabled in production")
            if self.log.level == "DEBUG":
                raise ValueError("DEBUG log level is not allowed in production")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton.

    Raises:
        ValidationError: If settings are invalid. This causes immediate
            application startup failure.
    """
    return Settings()
