"""Configuration: a JSON sources file plus environment variables.

Sources file layout::

    {
      "rssSources": {
        "blog": {"feedUrl": "https://example.com/feed.xml", "updateInterval": "5m"}
      }
    }

`updateInterval` is either a number of seconds or a duration string such as
"90s", "5m" or "1h30m". It defaults to five minutes. Numbers are seconds,
not nanoseconds, so anything above a week is rejected as a likely unit mix-up.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from insightcourier.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_INTERVAL = 5 * 60.0
MAX_UPDATE_INTERVAL = 7 * 24 * 3600.0
DEFAULT_STORAGE_DSN = "sqlite:///state/insightcourier.db"
DEFAULT_FLARESOLVERR_URL = "http://localhost:8191/v1"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_interval(value: Any) -> float:
    """Seconds from a number or a duration string ("30s", "5m", "1h30m")."""
    if isinstance(value, bool):
        raise ValueError(f"invalid interval: {value!r}")
    if isinstance(value, (int, float)):
        return _bounded(float(value), value)
    s = str(value).strip().lower()
    if not s:
        raise ValueError("empty interval")
    pos = 0
    total = 0.0
    for m in _DURATION_PART.finditer(s):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()
    if pos != len(s) or pos == 0:
        raise ValueError(f"invalid interval: {value!r}")
    return _bounded(total, value)


def _bounded(seconds: float, value: Any) -> float:
    if seconds > MAX_UPDATE_INTERVAL:
        raise ValueError(f"interval {value!r} exceeds {MAX_UPDATE_INTERVAL:g}s (numbers are seconds)")
    return seconds


@dataclass(frozen=True)
class SourceConfig:
    name: str
    feed_url: str
    update_interval: float = DEFAULT_UPDATE_INTERVAL


@dataclass
class Config:
    """Runtime configuration with validation"""

    sources: Dict[str, SourceConfig] = field(default_factory=dict)

    # Telegram bot settings
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    storage_dsn: str = DEFAULT_STORAGE_DSN
    flaresolverr_url: str = DEFAULT_FLARESOLVERR_URL

    queue_size: int = 100
    request_timeout: int = 30
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, config_path: Optional[str] = None) -> "Config":
        """Load the sources file and environment variables, then validate."""
        load_dotenv()
        path = config_path or os.getenv("IC_CONFIG_PATH", "")
        errors: List[str] = []
        sources: Dict[str, SourceConfig] = {}
        if not path:
            errors.append("config file path is required (--config or IC_CONFIG_PATH)")
        else:
            sources = load_sources(path, errors)

        config = cls(
            sources=sources,
            telegram_bot_token=os.getenv("IC_TG_BOT_API_KEY", ""),
            telegram_chat_id=os.getenv("IC_TG_CHAT_ID", ""),
            storage_dsn=os.getenv("IC_STORAGE_DSN", DEFAULT_STORAGE_DSN),
            flaresolverr_url=os.getenv("IC_FLARESOLVERR_URL", DEFAULT_FLARESOLVERR_URL),
            queue_size=_int_env("IC_QUEUE_SIZE", 100, errors),
            request_timeout=_int_env("IC_REQUEST_TIMEOUT", 30, errors),
            log_level=os.getenv("IC_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("IC_LOG_FILE") or None,
        )
        config._validate(errors)
        return config

    def _validate(self, errors: Optional[List[str]] = None) -> None:
        errors = list(errors or [])

        if not self.telegram_bot_token:
            errors.append("environment variable IC_TG_BOT_API_KEY should be set to non empty value")
        elif self.telegram_bot_token.count(":") != 1:
            errors.append("Invalid Telegram bot token format")
        if not self.telegram_chat_id:
            errors.append("environment variable IC_TG_CHAT_ID should be set to non empty value")

        if not self.sources:
            errors.append("at least one source must be configured under rssSources")
        for src in self.sources.values():
            if not src.feed_url:
                errors.append(f"source {src.name}: feedUrl is required")
            if src.update_interval <= 0:
                errors.append(f"source {src.name}: updateInterval must be positive")

        if self.queue_size < 0:
            errors.append("IC_QUEUE_SIZE must not be negative")
        if self.request_timeout < 1 or self.request_timeout > 300:
            errors.append("IC_REQUEST_TIMEOUT should be between 1 and 300 seconds")

        if errors:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        logger.info(f"Configuration validated: {len(self.sources)} sources")


def load_sources(path: str, errors: List[str]) -> Dict[str, SourceConfig]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        errors.append(f"unable to read config file {path}: {e}")
        return {}
    except json.JSONDecodeError as e:
        errors.append(f"unable to decode config file {path}: {e}")
        return {}

    raw = data.get("rssSources") if isinstance(data, dict) else None
    if not isinstance(raw, dict):
        errors.append("rssSources must be an object keyed by source name")
        return {}

    sources: Dict[str, SourceConfig] = {}
    for name, entry in raw.items():
        if not isinstance(entry, dict):
            errors.append(f"source {name}: expected an object")
            continue
        interval = DEFAULT_UPDATE_INTERVAL
        if entry.get("updateInterval") not in (None, "", 0):
            try:
                interval = parse_interval(entry["updateInterval"])
            except ValueError as e:
                errors.append(f"source {name}: {e}")
                continue
        sources[name] = SourceConfig(
            name=name,
            feed_url=str(entry.get("feedUrl") or "").strip(),
            update_interval=interval,
        )
    return sources


def _int_env(name: str, default: int, errors: List[str]) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        errors.append(f"{name} must be an integer, got {raw!r}")
        return default
