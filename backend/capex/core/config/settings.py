from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict

from capex.shared.enums import Env


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    env: Env = Env.dev
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./capex.db"

    # Dev-only actor header (identity is resolved upstream in prod)
    dev_actor_header: str = "X-DEV-ACTOR"

    # Cashflow generation
    sum_tolerance_percent: Decimal = Decimal("1")
    default_currency: str = "EUR"

    # Notification defaults (a group's own settings take precedence)
    payment_reminder_days: int = 7
    monthly_report_deadline_day: int = 5
    notification_retention_days: int = 30


settings = Settings()
