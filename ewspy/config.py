from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


VERSION = "0.1.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EWSPY_", env_file=".env", extra="ignore")

    # Transfer
    timeout: float = Field(default=60.0, gt=0)
    user_agent: str = f"ewspy/{VERSION}"
    chunk_size: int = Field(default=16384, gt=0)

    # Debug only, never enable in production
    verbose: bool = False
    verify_tls: bool = True

    # Logging; the library only attaches its own stderr handlers when asked to
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_to_stderr: bool = False


settings = Settings()
