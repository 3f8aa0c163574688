from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml  # type: ignore

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class DradisConfig:
    url: str
    verify_ssl: bool = True
    timeout: Optional[float] = None  # seconds, passed to every request


def _parse_bool(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _read_section(config_path: str) -> Dict[str, Any]:
    # safe_load also reads the flat JSON files ({"dradis_url": ..., "api_key": ..., "verify": ...})
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file does not exist: {config_path}") from None
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {config_path} is not valid YAML/JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    section = data.get("dradis", data)
    return section if isinstance(section, dict) else {}


def load_dradis_config(config_path: Optional[str] = None) -> DradisConfig:
    """Build a DradisConfig from an optional YAML/JSON file, with DRADIS_* env overrides."""
    section = _read_section(config_path) if config_path else {}

    url = os.environ.get("DRADIS_URL") or section.get("dradis_url") or section.get("url") or ""
    if not url:
        raise ConfigError("Missing Dradis URL (dradis_url in config or DRADIS_URL).")

    verify_default = section.get("verify_ssl", section.get("verify", True))
    verify_ssl = _parse_bool(os.environ.get("DRADIS_VERIFY_SSL"), _parse_bool(verify_default, True))

    raw_timeout = os.environ.get("DRADIS_TIMEOUT") or section.get("timeout")
    timeout: Optional[float] = None
    if raw_timeout not in (None, ""):
        try:
            timeout = float(raw_timeout)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid timeout value: {raw_timeout!r}") from None

    if not verify_ssl:
        logger.debug("TLS certificate verification disabled for %s", url)
    return DradisConfig(url=str(url).rstrip("/"), verify_ssl=verify_ssl, timeout=timeout)


def load_api_key(config_path: Optional[str] = None) -> str:
    """API key from DRADIS_API_KEY, else the config file's api_key."""
    key = os.environ.get("DRADIS_API_KEY") or ""
    if not key and config_path:
        key = str(_read_section(config_path).get("api_key") or "")
    if not key:
        raise ConfigError("Missing Dradis API key (api_key in config or DRADIS_API_KEY).")
    return key
