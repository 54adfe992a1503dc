"""Configuration management for the Transaction Risk Evaluation service.

Configuration is loaded from environment variables. Every scoring rule
constant is a named setting so thresholds can be tuned without code changes.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Constants for database URL construction
POSTGRESQL_PREFIX = "postgresql://"
ASYNCPG_DRIVER = "+asyncpg"
SQLITE_PREFIX = "sqlite"


class AppEnvironment(str, Enum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AlertChannelType(str, Enum):
    LOG = "log"
    KAFKA = "kafka"


class AppConfig(BaseSettings):
    name: str = Field(default="transaction-risk-evaluation")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    log_level: LogLevel = Field(default=LogLevel.INFO)

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v.upper())


class ServerConfig(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    workers: int = Field(default=4)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class DatabaseConfig(BaseSettings):
    # Primary: full connection URL (postgresql:// or sqlite+aiosqlite://)
    url_app: str = Field(default="", alias="database_url_app")

    # Fallback: individual components
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="risk_evaluation")
    user: str = Field(default="postgres")
    password: SecretStr = Field(default=SecretStr(""))
    pool_size: int = Field(default=10)
    max_overflow: int = Field(default=20)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)
    echo: bool = Field(default=False)
    create_schema: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        populate_by_name=True,
    )

    @property
    def is_sqlite(self) -> bool:
        return self.async_url.startswith(SQLITE_PREFIX)

    @property
    def async_url(self) -> str:
        """Build async database URL."""
        if self.url_app:
            url = self.url_app
            if url.startswith(POSTGRESQL_PREFIX) and ASYNCPG_DRIVER not in url:
                new_prefix = POSTGRESQL_PREFIX.removesuffix("://") + ASYNCPG_DRIVER + "://"
                url = url.replace(POSTGRESQL_PREFIX, new_prefix, 1)
            return url
        password = self.password.get_secret_value()
        return f"postgresql{ASYNCPG_DRIVER}://{self.user}:{password}@{self.host}:{self.port}/{self.name}"


class RiskRulesConfig(BaseSettings):
    """Rule penalties and thresholds for the scoring engine."""

    # Rule 1: first transaction with a high amount
    high_amount_limit: Decimal = Field(default=Decimal("100000"), gt=0)
    first_transaction_high_amount_penalty: int = Field(default=30, ge=0)

    # Rule 2: deviation from the learned average amount
    deviation_multiplier_high: Decimal = Field(default=Decimal("10"), gt=0)
    deviation_multiplier_medium: Decimal = Field(default=Decimal("5"), gt=0)
    deviation_multiplier_low: Decimal = Field(default=Decimal("2"), gt=0)
    amount_deviation_high_penalty: int = Field(default=40, ge=0)
    amount_deviation_medium_penalty: int = Field(default=30, ge=0)
    amount_deviation_low_penalty: int = Field(default=20, ge=0)

    # Rule 3: velocity within a trailing window, tiered by amount
    velocity_window_seconds: int = Field(default=60, gt=0)
    medium_amount_min: Decimal = Field(default=Decimal("1000"))
    medium_amount_max: Decimal = Field(default=Decimal("10000"))
    medium_amount_min_count: int = Field(default=4, ge=1)
    rapid_medium_amount_penalty: int = Field(default=20, ge=0)
    large_amount_min: Decimal = Field(default=Decimal("10000"))
    large_amount_max: Decimal = Field(default=Decimal("50000"))
    large_amount_min_count: int = Field(default=3, ge=1)
    rapid_large_amount_penalty: int = Field(default=30, ge=0)
    very_large_amount_min: Decimal = Field(default=Decimal("50000"))
    very_large_amount_min_count: int = Field(default=2, ge=1)
    rapid_very_large_amount_penalty: int = Field(default=40, ge=0)

    # Rules 4 and 5: device checks
    untrusted_device_penalty: int = Field(default=30, ge=0)
    missing_device_penalty: int = Field(default=50, ge=0)

    # Status classification
    flagged_threshold: int = Field(default=30, ge=0)
    blocked_threshold: int = Field(default=70, ge=0)

    model_config = SettingsConfigDict(env_prefix="RISK_")

    @model_validator(mode="after")
    def validate_ordering(self) -> RiskRulesConfig:
        if self.flagged_threshold >= self.blocked_threshold:
            raise ValueError(
                "RISK_FLAGGED_THRESHOLD must be lower than RISK_BLOCKED_THRESHOLD "
                f"(got {self.flagged_threshold} >= {self.blocked_threshold})"
            )
        if not (
            self.deviation_multiplier_high
            > self.deviation_multiplier_medium
            > self.deviation_multiplier_low
        ):
            raise ValueError("Deviation multipliers must be strictly decreasing (high > medium > low)")
        if self.medium_amount_min >= self.medium_amount_max:
            raise ValueError("RISK_MEDIUM_AMOUNT_MIN must be lower than RISK_MEDIUM_AMOUNT_MAX")
        if self.large_amount_min >= self.large_amount_max:
            raise ValueError("RISK_LARGE_AMOUNT_MIN must be lower than RISK_LARGE_AMOUNT_MAX")
        return self


class EvaluationConfig(BaseSettings):
    timeout_seconds: float = Field(default=10.0, gt=0)
    # The transaction under evaluation is persisted before scoring, so it is
    # part of its own velocity window unless this is disabled.
    count_in_flight_transaction: bool = Field(default=True)

    model_config = SettingsConfigDict(env_prefix="EVALUATION_")


class AlertConfig(BaseSettings):
    channel: AlertChannelType = Field(default=AlertChannelType.LOG)
    bootstrap_servers: str = Field(default="")
    topic: str = Field(default="fraud.alerts.blocked.v1")
    client_id: str = Field(default="transaction-risk-evaluation")
    subject: str = Field(default="URGENT: Transaction Blocked - Security Alert")
    # Undelivered outbox entries are retried on this interval, starting at startup.
    sweep_interval_seconds: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="ALERTS_")

    @model_validator(mode="after")
    def validate_kafka(self) -> AlertConfig:
        if self.channel == AlertChannelType.KAFKA and not self.bootstrap_servers:
            raise ValueError("ALERTS_BOOTSTRAP_SERVERS is required when ALERTS_CHANNEL=kafka")
        return self


class ObservabilityConfig(BaseSettings):
    service_name: str = Field(default="transaction-risk-evaluation")
    otlp_endpoint: str | None = Field(default=None)
    otlp_insecure: bool = Field(default=True)
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class SecurityConfig(BaseSettings):
    cors_allowed_origins: str = Field(default="http://localhost:3000,http://localhost:8000")
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["GET", "POST"])
    cors_allow_headers: list[str] = Field(default=["Authorization", "Content-Type", "X-Request-ID"])

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    @field_validator("cors_allowed_origins", mode="after")
    @classmethod
    def validate_cors_allowed_origins(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated string into list of origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    rules: RiskRulesConfig = Field(default_factory=RiskRulesConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()
