"""Configuration schema using Pydantic."""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _snake_case(key: str) -> str:
    """linkPreview -> link_preview; snake_case keys pass through."""
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


class BotSettingsConfig(BaseModel):
    """Per-bot behavior settings."""
    model_config = ConfigDict(extra="forbid")

    simulate_typing: bool = True
    typing_delay: int = Field(default=1000, ge=0)  # ms
    queue_delay: int = Field(default=1000, ge=0)  # ms before each outbound send
    read_receipts: bool = True
    ignore_groups: bool = True
    ignored_senders: list[str] = Field(default_factory=list)
    admin_numbers: list[str] = Field(default_factory=list)


class AutoResponseConfig(BaseModel):
    """One auto-response rule."""
    model_config = ConfigDict(extra="forbid")

    pattern: str = Field(min_length=1)
    response: str = Field(min_length=1)
    case_insensitive: bool = False
    priority: int = Field(default=1, ge=0)
    cooldown: float | None = Field(default=None, ge=0)  # seconds
    response_options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("response")
    @classmethod
    def _response_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("response cannot be blank")
        return v

    @field_validator("response_options")
    @classmethod
    def _normalize_options(cls, v: dict[str, Any]) -> dict[str, Any]:
        # camelCase and snake_case aliases collapse to snake_case once, here
        return {_snake_case(key): value for key, value in v.items()}


class WebhookConfig(BaseModel):
    """One webhook rule."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    pattern: str = Field(min_length=1)
    url: str = Field(min_length=1)
    method: Literal["GET", "POST", "PUT", "PATCH"] = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: int = Field(default=5000, gt=0)  # ms
    retry: int = Field(default=3, ge=1)
    priority: int = Field(default=1, ge=0)
    cooldown: float | None = Field(default=None, ge=0)  # seconds
    case_insensitive: bool = True

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class BotConfig(BaseModel):
    """One bot as written in the config file."""
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str = Field(min_length=1)
    phone: str | None = None
    settings: BotSettingsConfig = Field(default_factory=BotSettingsConfig)
    auto_responses: list[AutoResponseConfig] = Field(default_factory=list)
    webhooks: list[WebhookConfig] = Field(default_factory=list)

    @field_validator("phone", mode="before")
    @classmethod
    def _phone_as_str(cls, v: Any) -> Any:
        # YAML reads unquoted +15550000 as an int
        return str(v) if isinstance(v, int) else v


class GlobalConfig(BaseModel):
    """Process-wide settings."""
    model_config = ConfigDict(extra="forbid")

    log_level: Literal["debug", "info", "warning", "error"] = "info"
    api_enabled: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = Field(default=3000, ge=1, le=65535)
    startup_delay: float = Field(default=3.0, ge=0)  # seconds between bot starts
    shutdown_grace: float = Field(default=10.0, ge=0)
    sweep_interval: float = Field(default=60.0, ge=0)
    shared_cooldowns: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def _lower_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.lower()
            return "warning" if v == "warn" else v
        return v


class Config(BaseSettings):
    """Root configuration for botfleet."""
    model_config = SettingsConfigDict(
        env_prefix="BOTFLEET_",
        env_nested_delimiter="__",
        extra="forbid",
        populate_by_name=True,
    )

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    bots: list[BotConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_bot_ids(self) -> "Config":
        seen: set[str] = set()
        for bot in self.bots:
            if bot.id in seen:
                raise ValueError(f"Duplicate bot id: {bot.id}")
            seen.add(bot.id)
        return self

    def get_bot(self, bot_id: str) -> BotConfig | None:
        """Find a bot by id."""
        for bot in self.bots:
            if bot.id == bot_id:
                return bot
        return None
