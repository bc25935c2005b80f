"""Runtime settings for the relay.

Values come from (lowest precedence first) built-in defaults, an optional
YAML file named by ``PHAB_RELAY_CONFIG``, and the ``SYNAPSE_*`` environment
variables used by the existing deployment's env file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

logger = logging.getLogger("phab-relay")

VERSION = "1.2.0"

CONFIG_FILE_KEY = "PHAB_RELAY_CONFIG"

SYNAPSE_KEY = "SYNAPSE_"
ENV_KEYS = {
    "phab_url": SYNAPSE_KEY + "PHAB_URL",
    "phab_token": SYNAPSE_KEY + "PHAB_TOKEN",
    "matrix_host": SYNAPSE_KEY + "HOST",
    "matrix_token": SYNAPSE_KEY + "API_TOKEN",
    "room": SYNAPSE_KEY + "FEED_ROOM",
    "resolve_types": SYNAPSE_KEY + "FEED_PHIDS",
    "lookup_phid": SYNAPSE_KEY + "LOOKUP_PHID",
    "debug": SYNAPSE_KEY + "FEED_DEBUG",
    "log_dir": SYNAPSE_KEY + "FEED_LOG",
    "listen_host": "PHAB_RELAY_HOST",
    "listen_port": "PHAB_RELAY_PORT",
    "http_timeout_sec": "PHAB_RELAY_HTTP_TIMEOUT_SEC",
}

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "phab_url": {"type": "string"},
        "phab_token": {"type": "string"},
        "matrix_host": {"type": "string"},
        "matrix_token": {"type": "string"},
        "room": {"type": "string"},
        "resolve_types": {
            "oneOf": [
                {"type": "string"},
                {"type": "array", "items": {"type": "string"}},
            ]
        },
        "lookup_phid": {"type": "string"},
        "debug": {"type": "boolean"},
        "log_dir": {"type": "string"},
        "listen_host": {"type": "string"},
        "listen_port": {"type": "integer", "minimum": 0, "maximum": 65535},
        "http_timeout_sec": {"type": "number", "exclusiveMinimum": 0},
    },
}

_TRUE = {"1", "t", "true", "yes", "on"}
_FALSE = {"0", "f", "false", "no", "off"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    phab_url: str = ""
    phab_token: str = ""
    matrix_host: str = ""
    matrix_token: str = ""
    room: str = ""
    resolve_types: tuple[str, ...] = field(default_factory=tuple)
    lookup_phid: str = ""
    debug: bool = False
    log_dir: str = ""
    listen_host: str = "0.0.0.0"
    listen_port: int = 8080
    http_timeout_sec: float = 30.0

    @property
    def phid_query_url(self) -> str:
        return f"{self.phab_url}api/phid.query"

    @property
    def paste_search_url(self) -> str:
        return f"{self.phab_url}api/paste.search"


def parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def split_types(raw: str | list[str]) -> tuple[str, ...]:
    items = raw.split(",") if isinstance(raw, str) else raw
    return tuple(x.strip() for x in items)


def load_config_file(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file missing: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    validator = Draft202012Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        where = "/".join(str(p) for p in first.absolute_path) or "<root>"
        raise ConfigError(f"{path}: schema error at {where}: {first.message}")
    return data


def load_settings(env: Mapping[str, str] | None = None, config_file: str | Path | None = None) -> Settings:
    env = os.environ if env is None else env
    values: dict[str, Any] = {}

    config_file = config_file or env.get(CONFIG_FILE_KEY)
    if config_file:
        values.update(load_config_file(config_file))

    for name, key in ENV_KEYS.items():
        raw = env.get(key)
        if raw is None:
            continue
        if name == "debug":
            try:
                values["debug"] = parse_bool(raw)
            except ValueError as exc:
                logger.error("unable to determine debug setting: %s", exc)
                values["debug"] = False
        elif name == "listen_port":
            try:
                values["listen_port"] = int(raw)
            except ValueError as exc:
                raise ConfigError(f"{key} must be an integer: {raw!r}") from exc
        elif name == "http_timeout_sec":
            try:
                values["http_timeout_sec"] = float(raw)
            except ValueError as exc:
                raise ConfigError(f"{key} must be a number: {raw!r}") from exc
        else:
            values[name] = raw

    if "resolve_types" in values:
        values["resolve_types"] = split_types(values["resolve_types"])
    return Settings(**values)
