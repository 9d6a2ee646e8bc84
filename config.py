"""
Load and validate the monitor configuration (config.toml plus .env overrides)
"""

import os
import tomllib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from errors import ConfigError
from models import ProgramConfig

DEFAULT_CONFIG_FILE = 'config.toml'


@dataclass(frozen=True)
class MonitorConfig:
    interval_seconds: int
    ntfy_endpoint: str
    program_ids: List[ProgramConfig]
    max_concurrency: int = 4
    request_timeout_seconds: float = 10
    backoff_threshold: int = 3
    max_backoff_ticks: int = 8
    notify_on_startup: bool = False


def config_path(path: Optional[str] = None) -> str:
    """Resolve the config file location: explicit path, WARRIOR_CONFIG, then the default"""
    return path or os.getenv('WARRIOR_CONFIG') or DEFAULT_CONFIG_FILE


def load_config(path: Optional[str] = None) -> MonitorConfig:
    path = config_path(path)
    try:
        with open(path, 'rb') as f:
            raw = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    endpoint = os.getenv('NTFY_ENDPOINT') or raw.get('ntfy_endpoint')
    return MonitorConfig(
        interval_seconds=_int(raw, 'interval_seconds', minimum=1),
        ntfy_endpoint=_endpoint(endpoint),
        program_ids=_programs(raw.get('program_ids')),
        max_concurrency=_int(raw, 'max_concurrency', minimum=1, default=4),
        request_timeout_seconds=_timeout(raw.get('request_timeout_seconds', 10)),
        backoff_threshold=_int(raw, 'backoff_threshold', minimum=1, default=3),
        max_backoff_ticks=_int(raw, 'max_backoff_ticks', minimum=0, default=8),
        notify_on_startup=_bool(raw, 'notify_on_startup', default=False),
    )


def _int(raw: Dict[str, Any], key: str, minimum: int, default: Optional[int] = None) -> int:
    value = raw.get(key, default)
    if value is None:
        raise ConfigError(f"Missing required setting: {key}")
    # bool is an int subclass; `true` is not a valid interval
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


def _timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"request_timeout_seconds must be a positive number, got {value!r}")
    return float(value)


def _endpoint(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError("Missing required setting: ntfy_endpoint")
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ConfigError(f"ntfy_endpoint must be an http(s) URL, got {value!r}")
    return value


def _programs(value: Any) -> List[ProgramConfig]:
    if not isinstance(value, list) or not value:
        raise ConfigError("program_ids must be a non-empty list of {id, name} entries")

    programs = []
    seen = set()
    for index, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise ConfigError(f"program_ids[{index}] must be a table with id and name")
        program_id = entry.get('id')
        name = entry.get('name')
        if not isinstance(program_id, str) or not isinstance(name, str):
            raise ConfigError(f"program_ids[{index}] id and name must be strings")
        program_id = program_id.strip()
        name = name.strip()
        if not program_id or not name:
            raise ConfigError(f"program_ids[{index}] needs both id and name")
        if program_id in seen:
            raise ConfigError(f"Duplicate program id: {program_id}")
        seen.add(program_id)
        programs.append(ProgramConfig(id=program_id, name=name))
    return programs
