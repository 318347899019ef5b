"""Runtime settings and logging setup for XO Relay."""

from __future__ import annotations

import sys
from typing import Tuple

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration, read from ``XORELAY_*`` environment variables."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = "INFO"

    room_grace_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="How long a lobby with nobody connected is kept around",
    )
    sweep_interval_seconds: float = Field(default=5.0, gt=0.0)
    think_delay: Tuple[float, float] = Field(
        default=(0.5, 0.5),
        description="Cosmetic pause (min, max seconds) before the computer replies",
    )

    model_config = SettingsConfigDict(env_prefix="XORELAY_")

    @field_validator("think_delay")
    @classmethod
    def ensure_ordered_delay(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        low, high = value
        if low < 0 or high < low:
            raise ValueError("think_delay must be (min, max) with 0 <= min <= max")
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return value.upper()


settings = Settings()


def get_settings() -> Settings:
    return settings


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
