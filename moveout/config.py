# moveout/config.py
from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    engine_version: str = "2026-10-19.v1"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Backing store (contracts, assets, inspections, meters, pricing, invoices) ----
    backend_base_url: str = "http://localhost:8081"
    backend_api_token: str | None = None
    http_timeout_seconds: float = 20.0

    # ---- Dates ----
    # "today" is the start of day in this zone.
    timezone: str = "Asia/Ho_Chi_Minh"
    expiring_window_days: int = 30
    # duration: end - start + 1, both days counted (review-screen rule) | remaining: end - today
    expiring_basis: str = "duration"

    # ---- Reconciler ----
    reconcile_max_attempts: int = 3
    reconcile_delay_seconds: float = 1.0
    item_poll_max_attempts: int = 5
    item_poll_delay_seconds: float = 2.0
    cost_tolerance: float = 0.01

    # ---- Meter readings ----
    reading_batch_workers: int = 4

    def model_post_init(self, __context) -> None:
        if int(self.reconcile_max_attempts) < 1:
            raise ValueError("reconcile_max_attempts must be >= 1")
        if int(self.item_poll_max_attempts) < 1:
            raise ValueError("item_poll_max_attempts must be >= 1")
        if float(self.reconcile_delay_seconds) < 0 or float(self.item_poll_delay_seconds) < 0:
            raise ValueError("retry delays cannot be negative")
        if (self.expiring_basis or "").strip().lower() not in ("duration", "remaining"):
            raise ValueError("expiring_basis must be duration or remaining")
        if int(self.reading_batch_workers) < 1:
            raise ValueError("reading_batch_workers must be >= 1")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {self.timezone}") from e

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
