import os
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .errors import ConfigError
from .models import AppConfig

CONFIG_PATH = os.environ.get("PIHOTSPOT_CONFIG", "/etc/pihotspot/config.yaml")


def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError([f"{path}: {e}"]) from e
    if not isinstance(data, dict):
        raise ConfigError([f"{path}: expected a mapping at top level"])
    return data


def _problems(err: ValidationError) -> list:
    out = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e["loc"])
        msg = e["msg"].removeprefix("Value error, ")
        out.append(f"{loc}: {msg}" if loc else msg)
    return out


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    """Defaults, then the YAML file (if any), then non-None ``overrides`` on the hotspot section."""
    data = _read_yaml(path or CONFIG_PATH)
    hotspot = dict(data.get("hotspot") or {})
    for key, value in (overrides or {}).items():
        if value is not None:
            hotspot[key] = value
    data["hotspot"] = hotspot
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_problems(e)) from e
