"""
AuthorStack Sales Service
Centralized Configuration Management

Pydantic settings with environment variable support, validation, and type safety.
The relational store, document store and Redis endpoints are required: a
missing value raises at startup instead of degrading silently.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


PLATFORMS = ["kdp", "gumroad", "apple_books", "draft2digital"]


class DatabaseSettings(BaseSettings):
    """Relational store (sales rows, daily aggregates, sync logs)"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", env_file=".env", extra="ignore", populate_by_name=True)

    url: str = Field(alias="DATABASE_URL", description="SQLAlchemy async URL")
    echo: bool = Field(default=False, description="Echo SQL queries")


class DocumentStoreSettings(BaseSettings):
    """Document store (books)"""

    model_config = SettingsConfigDict(env_prefix="DOCUMENT_STORE_", env_file=".env", extra="ignore", populate_by_name=True)

    url: str = Field(alias="DOCUMENT_STORE_URL", description="SQLAlchemy async URL")
    echo: bool = Field(default=False, description="Echo SQL queries")


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_", env_file=".env", extra="ignore", populate_by_name=True)

    url: str = Field(alias="REDIS_URL", description="Redis URL")
    max_connections: int = Field(default=50, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    key_prefix: str = Field(default="authorstack", description="Namespace for every key")


class AISettings(BaseSettings):
    """AI provider (OpenRouter). Optional: AI features are disabled without a key."""

    model_config = SettingsConfigDict(env_prefix="OPENROUTER_", env_file=".env", extra="ignore", populate_by_name=True)

    api_key: Optional[SecretStr] = Field(default=None, alias="OPENROUTER_API_KEY", description="API key")
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="API base URL")
    model: str = Field(default="deepseek/deepseek-chat", description="Default model")
    fallback_model: Optional[str] = Field(
        default="openai/gpt-4-turbo-preview", description="Retried once when the default model errors; empty disables"
    )
    max_tokens: int = Field(default=2000, description="Completion token budget")
    temperature: float = Field(default=0.7, description="Sampling temperature")
    timeout_seconds: float = Field(default=30.0, description="HTTP timeout")
    app_url: str = Field(default="http://localhost:3000", alias="APP_URL", description="Referer sent upstream")

    @property
    def is_configured(self) -> bool:
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class RateLimitSettings(BaseSettings):
    """Rate limiting budgets"""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", env_file=".env", extra="ignore")

    enabled: bool = Field(default=True, description="Enable API rate limiting")
    api_requests: int = Field(default=10, description="API requests per window")
    api_window_seconds: int = Field(default=10, description="API window")
    ai_requests: int = Field(default=5, description="AI operations per window")
    ai_window_seconds: int = Field(default=60, description="AI window")


class CacheTTLSettings(BaseSettings):
    """Cache TTLs in seconds"""

    model_config = SettingsConfigDict(env_prefix="CACHE_TTL_", env_file=".env", extra="ignore")

    book: int = Field(default=300, gt=0)
    sales: int = Field(default=60, gt=0)
    dashboard: int = Field(default=60, gt=0)
    ai_insight: int = Field(default=3600, gt=0)


class FeatureSettings(BaseSettings):
    """Feature flags"""

    model_config = SettingsConfigDict(env_prefix="FEATURE_", env_file=".env", extra="ignore")

    ai_insights: bool = True
    ai_pricing: bool = True
    ai_forecasting: bool = False
    enabled_platforms: List[str] = Field(default=["kdp", "gumroad"])

    @field_validator("enabled_platforms")
    @classmethod
    def validate_platforms(cls, v: List[str]) -> List[str]:
        unknown = [p for p in v if p not in PLATFORMS]
        if unknown:
            raise ValueError(f"Unknown platforms: {unknown}")
        return v

    def platform_enabled(self, platform: str) -> bool:
        return platform in self.enabled_platforms


class StripeSettings(BaseSettings):
    """Stripe webhooks. Without a signing secret only the signature header is required."""

    model_config = SettingsConfigDict(env_prefix="STRIPE_", env_file=".env", extra="ignore")

    webhook_secret: Optional[SecretStr] = Field(default=None, description="Webhook signing secret (whsec_...)")
    webhook_tolerance_seconds: int = Field(default=300, description="Accepted signature timestamp age")

    @property
    def verifies_signatures(self) -> bool:
        return self.webhook_secret is not None and bool(self.webhook_secret.get_secret_value())


class MonitoringSettings(BaseSettings):
    """Logging and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="authorstack", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        alias="CORS_ORIGINS",
        description="Allowed CORS origins",
    )

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    documents: DocumentStoreSettings = Field(default_factory=DocumentStoreSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    ai: AISettings = Field(default_factory=AISettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache_ttl: CacheTTLSettings = Field(default_factory=CacheTTLSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Raises pydantic.ValidationError when a required store endpoint is missing.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
