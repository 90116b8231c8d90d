"""Deployment configuration for the form relay.

Loaded once at process start and passed explicitly into every component.
Nothing reads the environment while a request is being handled.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Mapping

from formrelay.infra.time import load_zone
from formrelay.observability.logging import LOG_LEVELS

MessageFormat = Literal["HTML", "Markdown"]

DEFAULT_TIMEZONE = "Europe/Kyiv"
DEFAULT_SKIP_FIELDS = frozenset({"form_id", "referer", "queried_id", "action", "token"})
DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"
DEFAULT_GEO_LOOKUP_URL = "https://ipinfo.io"
DEFAULT_REFERENCE_FLAG = "\U0001F1FA\U0001F1E6"

# Timeouts (seconds)
DEFAULT_TELEGRAM_TIMEOUT = 30.0
DEFAULT_GEO_LOOKUP_TIMEOUT = 5.0

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class ConfigError(Exception):
    """Raised when the deployment configuration cannot be parsed."""

    pass


@dataclass(frozen=True)
class RelayConfig:
    """Immutable process-wide settings.

    Attributes:
        bot_token: Telegram bot token from @BotFather. NEVER logged.
        chat_id: Destination chat. NEVER logged.
        default_timezone: Reference zone, also the fallback display zone.
        skip_fields: Field names left out of the rendered message.
        detect_timezone: Whether to look up the submitter's zone by IP.
        message_format: Markup dialect of the outgoing message.
        reference_label: Label of the reference timestamp line. Derived
                         from ``default_timezone`` when empty.
        log_level: Threshold for all formrelay loggers.
    """

    bot_token: str = ""
    chat_id: str = ""
    default_timezone: str = DEFAULT_TIMEZONE
    skip_fields: frozenset[str] = field(default_factory=lambda: DEFAULT_SKIP_FIELDS)
    detect_timezone: bool = True
    message_format: MessageFormat = "HTML"
    telegram_api_base: str = DEFAULT_TELEGRAM_API_BASE
    telegram_timeout: float = DEFAULT_TELEGRAM_TIMEOUT
    geo_lookup_url: str = DEFAULT_GEO_LOOKUP_URL
    geo_lookup_timeout: float = DEFAULT_GEO_LOOKUP_TIMEOUT
    reference_flag: str = DEFAULT_REFERENCE_FLAG
    reference_label: str = ""
    trust_forwarded_for: bool = False
    log_level: str = "INFO"

    @property
    def reference_name(self) -> str:
        """Human label for the reference zone, e.g. "Kyiv" for Europe/Kyiv."""
        if self.reference_label:
            return self.reference_label
        return self.default_timezone.rsplit("/", 1)[-1].replace("_", " ")


def load_config(environ: Mapping[str, str] | None = None) -> RelayConfig:
    """Build RelayConfig from environment variables.

    Env vars (all optional):
    - TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID
    - DEFAULT_TIMEZONE (default: Europe/Kyiv)
    - SKIP_FIELDS: comma separated field names
    - DETECT_TIMEZONE: bool (default: true)
    - MESSAGE_FORMAT: "HTML" or "Markdown" (default: HTML)
    - TELEGRAM_API_BASE, TELEGRAM_HTTP_TIMEOUT
    - GEO_LOOKUP_URL, GEO_LOOKUP_TIMEOUT
    - REFERENCE_FLAG, REFERENCE_LABEL
    - TRUST_FORWARDED_FOR: bool (default: false)
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)

    Raises:
        ConfigError: If a boolean, numeric, MESSAGE_FORMAT or LOG_LEVEL
            variable cannot be parsed, or DEFAULT_TIMEZONE is not in the
            tz database.
    """
    env = os.environ if environ is None else environ

    skip_raw = env.get("SKIP_FIELDS")
    if skip_raw is None:
        skip_fields = DEFAULT_SKIP_FIELDS
    else:
        skip_fields = frozenset(name.strip() for name in skip_raw.split(",") if name.strip())

    default_timezone = env.get("DEFAULT_TIMEZONE") or DEFAULT_TIMEZONE
    if load_zone(default_timezone) is None:
        raise ConfigError(f"DEFAULT_TIMEZONE is not a known timezone: {default_timezone!r}")

    return RelayConfig(
        bot_token=env.get("TELEGRAM_BOT_TOKEN", ""),
        chat_id=env.get("TELEGRAM_CHAT_ID", ""),
        default_timezone=default_timezone,
        skip_fields=skip_fields,
        detect_timezone=_parse_bool(env, "DETECT_TIMEZONE", True),
        message_format=_parse_format(env.get("MESSAGE_FORMAT", "")),
        telegram_api_base=(env.get("TELEGRAM_API_BASE") or DEFAULT_TELEGRAM_API_BASE).rstrip("/"),
        telegram_timeout=_parse_seconds(env, "TELEGRAM_HTTP_TIMEOUT", DEFAULT_TELEGRAM_TIMEOUT),
        geo_lookup_url=(env.get("GEO_LOOKUP_URL") or DEFAULT_GEO_LOOKUP_URL).rstrip("/"),
        geo_lookup_timeout=_parse_seconds(env, "GEO_LOOKUP_TIMEOUT", DEFAULT_GEO_LOOKUP_TIMEOUT),
        reference_flag=env.get("REFERENCE_FLAG", DEFAULT_REFERENCE_FLAG),
        reference_label=env.get("REFERENCE_LABEL", ""),
        trust_forwarded_for=_parse_bool(env, "TRUST_FORWARDED_FOR", False),
        log_level=_parse_log_level(env.get("LOG_LEVEL", "")),
    )


def _parse_format(raw: str) -> MessageFormat:
    """Map MESSAGE_FORMAT to a dialect. Empty means HTML."""
    value = raw.strip().lower()
    if value in ("", "html"):
        return "HTML"
    if value in ("markdown", "markdownv2"):
        return "Markdown"
    raise ConfigError(f"MESSAGE_FORMAT must be HTML or Markdown, got {raw!r}")


def _parse_log_level(raw: str) -> str:
    value = raw.strip().upper() or "INFO"
    if value not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {raw!r}")
    return value


def _parse_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _parse_seconds(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        seconds = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}") from None
    if seconds <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return seconds
