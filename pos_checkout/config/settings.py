"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_CURRENCIES = ("KHR", "USD")
PRICING_MODES = ("catalog", "client")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Bakong settlement configuration
    bakong_token: Optional[str] = Field(default=None, description="Bakong open API bearer token")
    bakong_merchant_id: Optional[str] = Field(
        default=None, description="Bakong account id of the merchant (e.g. shop@bank)"
    )
    bakong_api_url: str = Field(
        default="https://api-bakong.nbc.gov.kh/v1",
        description="Bakong open API base URL",
    )
    settlement_timeout_seconds: float = Field(
        default=10.0, description="Timeout for a single settlement query (seconds)"
    )

    # Telegram notifier configuration
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    telegram_chat_id: Optional[str] = Field(default=None, description="Telegram recipient chat id")
    telegram_api_url: str = Field(
        default="https://api.telegram.org", description="Telegram Bot API base URL"
    )
    notifier_timeout_seconds: float = Field(
        default=10.0, description="Timeout for a single notifier delivery (seconds)"
    )

    # Merchant / checkout configuration
    merchant_name: str = Field(default="Sokpheak Store", description="Merchant display name")
    merchant_city: str = Field(default="Phnom Penh", description="Merchant city on the KHQR")
    merchant_terminal_id: str = Field(default="POS001", description="Merchant id on the KHQR")
    acquiring_bank: str = Field(default="DEV_BANK", description="Acquiring bank on the KHQR")
    store_label: str = Field(default="Sokpheak Store", description="Store label on the KHQR")
    terminal_label: str = Field(default="POS-001", description="Terminal label on the KHQR")
    currency: str = Field(default="KHR", description="Checkout currency (KHR or USD)")
    pricing_mode: str = Field(
        default="catalog", description="Cart pricing strategy (catalog or client)"
    )
    order_ttl_seconds: int = Field(default=300, gt=0, description="Payment code lifetime")
    expiry_sweep_interval_seconds: float = Field(
        default=0.0, ge=0, description="Expired order sweep interval, 0 disables the sweep"
    )

    # Application configuration
    app_name: str = Field(default="pos-checkout", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3000, description="API port")
    allowed_origins: str = Field(default="*", description="CORS allowed origins (comma-separated)")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "bakong_token", "bakong_merchant_id", "telegram_bot_token", "telegram_chat_id",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Strip credentials; an empty value means unset."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate checkout currency."""
        v = v.strip().upper()
        if v not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Invalid currency. Must be one of: {list(SUPPORTED_CURRENCIES)}")
        return v

    @field_validator("pricing_mode")
    @classmethod
    def validate_pricing_mode(cls, v: str) -> str:
        """Validate pricing strategy."""
        v = v.strip().lower()
        if v not in PRICING_MODES:
            raise ValueError(f"Invalid pricing mode. Must be one of: {list(PRICING_MODES)}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def settlement_enabled(self) -> bool:
        """Live settlement checks need both the token and the merchant id."""
        return bool(self.bakong_token and self.bakong_merchant_id)

    @property
    def code_generation_live(self) -> bool:
        """Check whether real KHQR payloads are generated."""
        return self.settlement_enabled

    @property
    def notifier_enabled(self) -> bool:
        """Check whether Telegram delivery is configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
