"""
Service settings — environment / .env driven.

Every variable is prefixed with SALESBRIDGE_, e.g. SALESBRIDGE_API_KEY.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from salesbridge.order import CommitDefaults
from salesbridge.ledger import LedgerPolicy
from salesbridge.gateway import ServiceLayerConfig


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SALESBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Stores
    ledger_database_url: str = "sqlite+aiosqlite:///./salesbridge-ledger.db"
    masterdata_database_url: str = "sqlite+aiosqlite:///./salesbridge-masterdata.db"

    # Inbound API key; empty disables the check
    api_key: str = ""

    # Master-data defaults applied to every order
    default_customer_code: str = ""
    default_salesperson_code: str = ""
    default_warehouse_code: str = ""

    # Downstream service layer
    downstream_base_url: str = "https://localhost:50000/b1s/v1"
    downstream_company_db: str = ""
    downstream_username: str = ""
    downstream_password: str = ""
    downstream_timeout_seconds: float = Field(default=120.0, gt=0)
    downstream_verify_tls: bool = True

    # Ledger; 0 never reclaims PROCESSING entries
    stale_processing_after_seconds: int = Field(default=0, ge=0)
    max_error_length: int = Field(default=4000, ge=16)

    # Logging / server
    log_level: str = "INFO"
    json_logs: bool = False
    host: str = "0.0.0.0"
    port: int = 8080

    def commit_defaults(self) -> CommitDefaults:
        return CommitDefaults(
            customer_code=self.default_customer_code,
            salesperson_code=self.default_salesperson_code,
            warehouse_code=self.default_warehouse_code,
        )

    def ledger_policy(self) -> LedgerPolicy:
        policy = LedgerPolicy().with_max_error_length(self.max_error_length)
        if self.stale_processing_after_seconds > 0:
            policy = policy.with_stale_after(seconds=self.stale_processing_after_seconds)
        return policy

    def service_layer(self) -> ServiceLayerConfig:
        return ServiceLayerConfig(
            base_url=self.downstream_base_url,
            company_db=self.downstream_company_db,
            username=self.downstream_username,
            password=self.downstream_password,
            verify_tls=self.downstream_verify_tls,
            request_timeout=self.downstream_timeout_seconds,
        )

    @property
    def downstream_timeout(self) -> timedelta:
        return timedelta(seconds=self.downstream_timeout_seconds)


@lru_cache
def get_settings() -> Settings:
    """Cached after the first call; tests call get_settings.cache_clear()."""
    return Settings()


__all__ = ("Settings", "get_settings")
