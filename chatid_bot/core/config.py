from __future__ import annotations

import re
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TOKEN_RE = re.compile(r"^\d+:[A-Za-z0-9_-]{35}$")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    bot_token: SecretStr = Field(alias="BOT_TOKEN")
    bot_mode: Literal["polling", "webhook"] = Field(default="polling", alias="BOT_MODE")
    environment: Literal["development", "production", "test"] = Field(default="development", alias="ENVIRONMENT")

    webhook_url: str = Field(default="", alias="WEBHOOK_URL")
    webhook_host: str = Field(default="0.0.0.0", alias="WEBHOOK_HOST")
    webhook_port: int = Field(default=8080, ge=1, le=65535, alias="WEBHOOK_PORT")
    webhook_path: str = Field(default="/webhook", alias="WEBHOOK_PATH")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    rate_limit_max_requests: int = Field(default=10, ge=1, alias="RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_seconds: float = Field(default=60.0, gt=0, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_penalty_seconds: float = Field(default=300.0, ge=0, alias="RATE_LIMIT_PENALTY_SECONDS")
    rate_limit_progressive: bool = Field(default=True, alias="RATE_LIMIT_PROGRESSIVE")
    rate_limit_cleanup_seconds: float = Field(default=300.0, gt=0, alias="RATE_LIMIT_CLEANUP_SECONDS")

    shutdown_grace_seconds: float = Field(default=10.0, ge=0, alias="SHUTDOWN_GRACE_SECONDS")

    @field_validator("bot_token")
    @classmethod
    def _check_token_format(cls, value: SecretStr) -> SecretStr:
        if not _TOKEN_RE.match(value.get_secret_value()):
            raise ValueError("BOT_TOKEN must look like '<bot_id>:<secret>'")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = (value or "INFO").upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            return "INFO"
        return level

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
