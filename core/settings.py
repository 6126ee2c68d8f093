"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Gateway credentials are read once into a frozen RazorpayConfig which is
handed to the gateway at construction; nothing reads them from globals later.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, ConfigDict, Field


class PaymentTimeouts(BaseModel):
    model_config = ConfigDict(frozen=True)

    connect: float = 10.0
    read: float = 30.0
    write: float = 30.0
    total: float = 30.0


class PaymentRetry(BaseModel):
    """Retry policy for idempotent provider reads only. Order creation never retries."""
    model_config = ConfigDict(frozen=True)

    max: int = 2
    base_backoff: float = 0.2


class RazorpayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    key_id: str = ""
    key_secret: str = ""
    webhook_secret: str = ""
    is_production: bool = False
    application_url: str = "http://localhost:8000"
    api_base: str = "https://api.razorpay.com/v1"
    currency: str = "INR"
    checkout_name: str = "Online Assessment"
    theme_color: str = "#3399cc"
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    @property
    def callback_url(self) -> str:
        return f"{self.application_url.rstrip('/')}/api/v1/payments/razorpay/callback"

    @property
    def webhook_url(self) -> str:
        return f"{self.application_url.rstrip('/')}/api/v1/payments/razorpay/webhook"


class WebhookSettings(BaseModel):
    ip_allowlist: Optional[list[str]] = None  # Optional IPs allowed to post webhooks


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="razorpay", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    razorpay: RazorpayConfig = Field(default_factory=RazorpayConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
