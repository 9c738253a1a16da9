"""
Configuration loading.

Reads the YAML config file (following `!include` tags), validates it with
the pydantic schema and turns each bot into an immutable BotProfile.
"""

import hashlib
import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from botfleet.config.schema import BotConfig, Config
from botfleet.errors import ConfigurationError
from botfleet.rules.models import (
    AutoResponseRule,
    BotId,
    BotProfile,
    BotSettings,
    HttpMethod,
    WebhookRule,
)
from botfleet.rules.pattern import RulePattern

CONFIG_ENV_VAR = "BOTFLEET_CONFIG"


def get_config_path() -> Path:
    """Config file location: $BOTFLEET_CONFIG or ~/.config/botfleet/config.yml."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "botfleet" / "config.yml"


def _read_yaml(path: Path, stack: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, resolving `!include` relative to it."""
    path = path.resolve()
    if path in stack:
        chain = " -> ".join(str(p) for p in (*stack, path))
        raise ConfigurationError(f"Include cycle detected: {chain}")

    class IncludeLoader(yaml.SafeLoader):
        pass

    def include(loader: yaml.SafeLoader, node: yaml.Node) -> Any:
        target = Path(loader.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = path.parent / target
        return _read_yaml(target, (*stack, path))

    IncludeLoader.add_constructor("!include", include)

    try:
        with path.open(encoding="utf-8") as f:
            return yaml.load(f, Loader=IncludeLoader)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e


def _flatten_bots(raw: Any) -> Any:
    """An included file may hold one bot or a list of bots."""
    if not isinstance(raw, list):
        return raw
    bots: list[Any] = []
    for entry in raw:
        if isinstance(entry, list):
            bots.extend(entry)
        else:
            bots.append(entry)
    return bots


def parse_config(data: Any, source: str = "<config>") -> Config:
    """
    Validate an already-parsed config document.

    Raises:
        ConfigurationError: The document does not match the schema.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: top level must be a mapping")
    if "bots" in data:
        data = {**data, "bots": _flatten_bots(data["bots"])}

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: {e}") from e


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate the config file.

    Args:
        config_path: File to read. Defaults to get_config_path().

    Raises:
        ConfigurationError: Missing file, bad YAML, schema violation or
            include cycle.
    """
    path = config_path or get_config_path()
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    config = parse_config(_read_yaml(path), source=str(path))
    logger.debug(f"Loaded config from {path}: {len(config.bots)} bot(s)")
    return config


def to_profile(bot: BotConfig) -> BotProfile:
    """
    Build the runtime profile for one bot.

    Patterns compile here, so an invalid regex fails before any bot starts.
    """
    settings = BotSettings(
        ignore_groups=bot.settings.ignore_groups,
        ignored_senders=frozenset(bot.settings.ignored_senders),
        outbound_delay_ms=bot.settings.queue_delay,
        simulate_typing=bot.settings.simulate_typing,
        typing_delay_ms=bot.settings.typing_delay,
        read_receipts=bot.settings.read_receipts,
        admin_senders=frozenset(bot.settings.admin_numbers),
    )

    auto_responses = tuple(
        AutoResponseRule(
            pattern=RulePattern(ar.pattern, ar.case_insensitive),
            response=ar.response,
            priority=ar.priority,
            cooldown=ar.cooldown,
            metadata=dict(ar.response_options),
        )
        for ar in bot.auto_responses
    )

    webhooks = tuple(
        WebhookRule(
            name=wh.name,
            pattern=RulePattern(wh.pattern, wh.case_insensitive),
            url=wh.url,
            method=HttpMethod(wh.method),
            headers=dict(wh.headers),
            timeout_ms=wh.timeout,
            max_retries=wh.retry,
            priority=wh.priority,
            cooldown=wh.cooldown,
        )
        for wh in bot.webhooks
    )

    return BotProfile(
        id=BotId(bot.id),
        name=bot.name,
        phone=bot.phone,
        settings=settings,
        auto_responses=auto_responses,
        webhooks=webhooks,
    )


def load_profiles(config: Config) -> list[BotProfile]:
    """
    Build profiles for every configured bot.

    Raises:
        ConfigurationError: First invalid bot, with its id in the message.
    """
    profiles = []
    for bot in config.bots:
        try:
            profiles.append(to_profile(bot))
        except ConfigurationError as e:
            raise ConfigurationError(f"Bot {bot.id!r}: {e}") from e
    return profiles


# ============================================================================
# Writing
# ============================================================================


class IncludeRef(str):
    """An `!include` entry kept as-is when a config file is rewritten."""


class _RawLoader(yaml.SafeLoader):
    pass


class _ConfigDumper(yaml.SafeDumper):
    pass


_RawLoader.add_constructor(
    "!include", lambda loader, node: IncludeRef(loader.construct_scalar(node))
)
_ConfigDumper.add_representer(
    IncludeRef, lambda dumper, ref: dumper.represent_scalar("!include", str(ref))
)


def generate_bot_id(name: str) -> str:
    """Stable id for a display name: ``bot-`` plus 8 hex chars of its md5."""
    digest = hashlib.md5(name.strip().lower().encode("utf-8")).hexdigest()
    return f"bot-{digest[:8]}"


def save_bot(bot: BotConfig, config_path: Path | None = None) -> bool:
    """
    Add a bot to the config file, or replace the bot with the same id.

    The file is created if missing. Other bots, `!include` entries and the
    global section are written back unchanged.

    Returns:
        True if an existing bot was replaced.

    Raises:
        ConfigurationError: The bot is invalid or the file cannot be
            parsed or written.
    """
    to_profile(bot)
    path = config_path or get_config_path()

    data: Any = {}
    if path.exists():
        try:
            data = yaml.load(path.read_text(encoding="utf-8"), Loader=_RawLoader) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot update config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    bots = data.get("bots") or []
    if not isinstance(bots, list):
        raise ConfigurationError(f"{path}: 'bots' must be a list")

    entry = bot.model_dump(mode="json", exclude_none=True)
    replaced = False
    for index, existing in enumerate(bots):
        if isinstance(existing, dict) and existing.get("id") == bot.id:
            bots[index] = entry
            replaced = True
            break
    else:
        bots.append(entry)
    data["bots"] = bots

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.dump(data, Dumper=_ConfigDumper, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file {path}: {e}") from e

    logger.info(f"{'Updated' if replaced else 'Added'} bot {bot.id} in {path}")
    return replaced
