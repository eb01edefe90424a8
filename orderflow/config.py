"""Configuration management for the order workflow service."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # State store
    state_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Backing store for orders, products and users"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_workers: int = Field(default=4, description="Number of API workers")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Concurrency
    max_retries: int = Field(
        default=5, description="Reload-and-retry attempts on a version conflict"
    )
    order_number_attempts: int = Field(
        default=10, description="Attempts to generate a unique order number"
    )

    # Pricing
    delivery_fees: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "Harar": Decimal("50"),
            "Dire Dawa": Decimal("75"),
            "Hararge": Decimal("100"),
        },
        description="Flat delivery fee per destination city",
    )
    default_delivery_fee: Decimal = Field(default=Decimal("100"))
    agent_fee_share: Decimal = Field(
        default=Decimal("0.8"), description="Share of the delivery fee paid to the agent"
    )

    # Workflow
    allow_admin_override: bool = Field(
        default=True, description="Allow admins to force transitions outside the table"
    )
    estimated_delivery_minutes: int = Field(
        default=120, description="Delivery estimate stamped when an agent accepts an order"
    )

    # Notifications
    notification_history_limit: int = Field(
        default=100, description="Notifications kept per user"
    )

    # Pagination
    default_page_size: int = Field(default=10)
    max_page_size: int = Field(default=100)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper

    @property
    def expose_error_details(self) -> bool:
        """Whether internal error messages may be returned to callers."""
        return self.environment != "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
