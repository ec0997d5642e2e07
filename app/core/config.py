from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(alias="DATABASE_URL")

    # JWT Configuration
    secret_key: str = Field(alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # First Admin User
    first_admin_email: str = Field(alias="FIRST_ADMIN_EMAIL")
    first_admin_password: str = Field(alias="FIRST_ADMIN_PASSWORD")

    # Frontend URL for CORS and payment redirect links
    frontend_url: str | None = Field(default=None, alias="FRONTEND_URL")

    # Payment processor (Stripe)
    stripe_secret_key: str | None = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str | None = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_api_base: str = Field(default="https://api.stripe.com/v1", alias="STRIPE_API_BASE")
    stripe_webhook_tolerance_seconds: int = Field(
        default=300, alias="STRIPE_WEBHOOK_TOLERANCE_SECONDS"
    )
    payment_provider_timeout_seconds: float = Field(
        default=10.0, alias="PAYMENT_PROVIDER_TIMEOUT_SECONDS"
    )
    payment_currency: str = Field(default="chf", alias="PAYMENT_CURRENCY")

    # Business rules
    platform_commission_rate: Decimal = Field(
        default=Decimal("0.04"), alias="PLATFORM_COMMISSION_RATE"
    )
    default_deposit_months: int = Field(default=3, alias="DEFAULT_DEPOSIT_MONTHS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator(
        "frontend_url", "stripe_secret_key", "stripe_webhook_secret", mode="before"
    )
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for optional string fields."""
        if v == "":
            return None
        return v

    @field_validator("platform_commission_rate")
    @classmethod
    def validate_commission_rate(cls, v: Decimal) -> Decimal:
        if not (Decimal("0") <= v < Decimal("1")):
            raise ValueError("PLATFORM_COMMISSION_RATE must be in [0, 1)")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
