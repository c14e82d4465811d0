"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceConfig(BaseModel):
    """One service definition: name, class reference and parameters."""

    name: str = Field(min_length=1)
    service: str = Field(min_length=1)
    params: dict[str, Any] = {}

    @field_validator("service")
    @classmethod
    def validate_service(cls, v: str) -> str:
        """Validate the class reference is more than a bare sentinel."""
        if v in (".", "="):
            raise ValueError(f"Service reference {v!r} names no class")
        return v


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/chat-backbone/bot.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RuntimeConfig(BaseModel):
    """Runtime configuration."""

    stop_on_initialize_error: bool = Field(
        True, description="Abort startup at the first service that fails to initialize"
    )
    shutdown_timeout: float = Field(30.0, gt=0, le=600, description="Seconds allowed for shutdown")


class BotConfig(BaseSettings):
    """Root configuration for a bot."""

    name: str = "bot"
    namespace: str | None = None
    services: list[ServiceConfig] = []
    logging: LoggingConfig = LoggingConfig()
    runtime: RuntimeConfig = RuntimeConfig()

    model_config = SettingsConfigDict(
        env_prefix="BACKBONE_",
        env_nested_delimiter="__",
    )
