import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_COINS = ["bitcoin", "ethereum", "solana"]


class Settings(BaseModel):
    COINGECKO_BASE_URL: str = "https://api.coingecko.com/api/v3"
    TRACKER_DEFAULT_COINS: list[str] = Field(default_factory=lambda: list(DEFAULT_COINS))
    TRACKER_REFRESH_INTERVAL_SEC: float = Field(default=30.0, gt=0)
    TRACKER_HTTP_TIMEOUT_SEC: float = Field(default=10.0, gt=0)
    TRACKER_STORE_PATH: str | None = None
    TRACKER_LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("TRACKER_DEFAULT_COINS")
    @classmethod
    def require_default_coin(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one default coin is required")
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        raw_coins = os.getenv("TRACKER_DEFAULT_COINS", ",".join(DEFAULT_COINS))
        default_coins: list[str] = []
        for coin in raw_coins.split(","):
            value = coin.strip()
            if value and value not in default_coins:
                default_coins.append(value)
        if not default_coins:
            default_coins = list(DEFAULT_COINS)

        raw = {
            "COINGECKO_BASE_URL": os.getenv("COINGECKO_BASE_URL"),
            "TRACKER_DEFAULT_COINS": default_coins,
            "TRACKER_REFRESH_INTERVAL_SEC": os.getenv("TRACKER_REFRESH_INTERVAL_SEC"),
            "TRACKER_HTTP_TIMEOUT_SEC": os.getenv("TRACKER_HTTP_TIMEOUT_SEC"),
            "TRACKER_STORE_PATH": os.getenv("TRACKER_STORE_PATH") or None,
            "TRACKER_LOG_LEVEL": (os.getenv("TRACKER_LOG_LEVEL") or "INFO").upper(),
        }
        # unset variables fall back to model defaults
        return cls.model_validate({k: v for k, v in raw.items() if v is not None})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
