"""Configuration settings for shiftpay."""

from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class PayrollPolicy:
    """Business rules shared by escrow estimates and settlement."""

    minimum_hours: Decimal = Decimal("4")
    overtime_threshold_hours: Decimal = Decimal("8")
    platform_fee_percentage: Decimal = Decimal("0.15")
    currency_label: str = "SGD"
    dispatch_notifications_inline: bool = True
    notification_max_attempts: int = 5


DEFAULT_POLICY = PayrollPolicy()


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not in model
    )

    # Supabase
    supabase_url: str
    supabase_secret_key: str | None = None  # Backend/admin access
    # Legacy key (deprecated)
    supabase_service_role_key: str | None = None

    # Supabase-issued access tokens
    supabase_jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # Payments
    payment_gateway: Literal["mock", "ledger"] = "mock"
    platform_fee_percentage: Decimal = Field(default=Decimal("0.15"), ge=0, le=1)
    minimum_hours: Decimal = Field(default=Decimal("4"), ge=0)
    overtime_threshold_hours: Decimal = Field(default=Decimal("8"), gt=0)
    currency_label: str = "SGD"

    # Notifications
    dispatch_notifications_inline: bool = True
    notification_max_attempts: int = Field(default=5, ge=1)

    # App
    debug: bool = False
    log_level: str = "INFO"
    admin_user_ids: list[str] = []
    cors_origins: list[str] = [
        "http://localhost:8081",
        "http://localhost:19006",
    ]

    def payroll_policy(self) -> PayrollPolicy:
        """Build the rule set the services run with."""
        return PayrollPolicy(
            minimum_hours=self.minimum_hours,
            overtime_threshold_hours=self.overtime_threshold_hours,
            platform_fee_percentage=self.platform_fee_percentage,
            currency_label=self.currency_label,
            dispatch_notifications_inline=self.dispatch_notifications_inline,
            notification_max_attempts=self.notification_max_attempts,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
