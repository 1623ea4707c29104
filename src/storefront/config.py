from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "storefront"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 8080

    # Redis (cache store). Either a full URL or host/port/password.
    redis_url: str | None = Field(default=None, validation_alias="REDIS_URL")
    redis_host: str | None = Field(default=None, validation_alias="REDIS_HOST")
    redis_port: int = Field(default=6379, validation_alias="REDIS_PORT")
    redis_password: str | None = Field(default=None, validation_alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, validation_alias="REDIS_DB")

    # Cache store timeouts (seconds)
    redis_connect_timeout: float = Field(default=5.0, validation_alias="REDIS_CONNECT_TIMEOUT")
    redis_command_timeout: float = Field(default=2.0, validation_alias="REDIS_COMMAND_TIMEOUT")
    redis_reconnect_interval: float = Field(
        default=1.0, validation_alias="REDIS_RECONNECT_INTERVAL"
    )

    # Rate Limiting
    enable_rate_limiting: bool = Field(default=True, validation_alias="ENABLE_RATE_LIMITING")
    # Upper bound on a single limiter round trip before falling back to local counting
    rate_limit_timeout: float = Field(default=0.25, validation_alias="RATE_LIMIT_TIMEOUT")
    rate_limit_bypass_prefixes: list[str] = Field(
        default_factory=lambda: ["/health", "/metrics", "/api/webhooks"],
        validation_alias="RATE_LIMIT_BYPASS_PREFIXES",
    )
    # Key clients by X-Forwarded-For only behind a proxy that overwrites it
    trust_proxy_headers: bool = Field(default=False, validation_alias="TRUST_PROXY_HEADERS")

    # Carts
    cart_mutation_retries: int = Field(default=3, validation_alias="CART_MUTATION_RETRIES")

    # Observability
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    log_level: str = "INFO"

    def redis_connection_url(self) -> str:
        """Resolve the cache store URL.

        Raises:
            ConfigurationError: If neither REDIS_URL nor REDIS_HOST is set.
        """
        if self.redis_url:
            return self.redis_url
        if not self.redis_host:
            raise ConfigurationError(
                "Missing required Redis configuration: set REDIS_URL or REDIS_HOST"
            )
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"


settings = Settings()
