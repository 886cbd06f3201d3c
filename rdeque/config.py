"""
Configuration for rdeque, loaded from environment variables.

    RDEQUE_REDIS_URL=redis://cache:6379/2
    RDEQUE_LOG_LEVEL=DEBUG

Queue names and codecs are per handle and are not configured here.
"""
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DequeSettings(BaseSettings):
    """Settings shared by every handle created by one application."""

    model_config = SettingsConfigDict(
        env_prefix="RDEQUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for RedisExecutor.from_settings()",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = Field(default=False, description="Console log renderer instead of JSON")
    loop_thread_name: str = Field(
        default="rdeque-loop", description="Thread name for LoopThread.from_settings()"
    )
