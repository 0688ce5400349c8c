"""Application configuration and environment helpers."""

from __future__ import annotations

import datetime as dt
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEZONE = "Asia/Shanghai"
DEFAULT_BASE_CURRENCY = "USD"
DEFAULT_DISPLAY_CURRENCY = "CNY"


class AppSettings(BaseSettings):
    """Configuration options for the investment log engine."""

    app_name: str = Field(default="Investlog Valuation Engine")
    timezone: str = Field(default=DEFAULT_TIMEZONE)
    base_currency: str = Field(default=DEFAULT_BASE_CURRENCY)
    display_currency: str = Field(default=DEFAULT_DISPLAY_CURRENCY)

    database_url: str = Field(
        default="sqlite+aiosqlite:///data/investlog.db",
        description="SQLAlchemy async database URL.",
    )
    database_echo: bool = Field(default=False)

    finnhub_api_key: str | None = Field(default=None)
    alphavantage_api_key: str | None = Field(default=None)
    quote_providers: list[str] = Field(
        default_factory=lambda: ["finnhub", "alpha_vantage"],
        description="Quote providers in fallback order.",
    )
    quote_timeout_seconds: float = Field(default=10.0, gt=0)
    quote_retries_interactive: int = Field(default=1, ge=0)
    quote_retries_batch: int = Field(default=2, ge=0)
    quote_retry_base_delay_seconds: float = Field(default=2.0, ge=0)

    price_cutover_hour: int = Field(default=8, ge=0, le=23)
    price_cutover_minute: int = Field(default=0, ge=0, le=59)

    refresh_request_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between upstream requests in the scheduled refresh.",
    )
    interactive_request_delay_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Pause between upstream requests in user-triggered bulk refreshes.",
    )
    refresh_cron_hour: int = Field(default=7, ge=0, le=23)
    refresh_cron_minute: int = Field(default=0, ge=0, le=59)

    profit_history_start: dt.date = Field(
        default=dt.date(2025, 12, 1),
        description="First day recomputed by a full profit recalculation.",
    )
    missing_price_policy: Literal["cost_basis", "flag"] = Field(
        default="cost_basis",
        description="cost_basis values unpriced positions at cost silently; flag marks the day incomplete.",
    )

    exchange_rate_url: str = Field(default="https://open.er-api.com/v6/latest")

    telemetry_enabled: bool = Field(default=False)
    telemetry_service_name: str = Field(default="investlog")
    telemetry_otlp_endpoint: str | None = Field(default=None)
    telemetry_otlp_insecure: bool = Field(default=True)
    telemetry_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def price_cutover(self) -> dt.time:
        return dt.time(self.price_cutover_hour, self.price_cutover_minute)

    def dict_for_logging(self) -> dict[str, Any]:
        """Return a sanitized dict for logging purposes."""

        hidden = {"finnhub_api_key", "alphavantage_api_key"}
        return {k: ("***" if k in hidden and v else v) for k, v in self.model_dump().items()}


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> AppSettings:
    """Return cached application settings with optional overrides."""

    if overrides:
        return AppSettings(**overrides)
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_TIMEZONE",
    "DEFAULT_BASE_CURRENCY",
    "DEFAULT_DISPLAY_CURRENCY",
    "get_settings",
]
