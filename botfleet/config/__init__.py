"""Configuration for botfleet."""

from botfleet.config.schema import (
    AutoResponseConfig,
    BotConfig,
    BotSettingsConfig,
    Config,
    GlobalConfig,
    WebhookConfig,
)
from botfleet.config.loader import (
    generate_bot_id,
    get_config_path,
    load_config,
    load_profiles,
    parse_config,
    save_bot,
    to_profile,
)

__all__ = [
    "AutoResponseConfig",
    "BotConfig",
    "BotSettingsConfig",
    "Config",
    "GlobalConfig",
    "WebhookConfig",
    "generate_bot_id",
    "get_config_path",
    "load_config",
    "load_profiles",
    "parse_config",
    "save_bot",
    "to_profile",
]
