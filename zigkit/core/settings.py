"""User settings for zigkit.

Settings are read from ``settings.yaml`` in the zigkit root directory. The
file is optional; every key has a default. Invalid values never abort a
command: they are replaced by the default and a warning is logged.

There is intentionally no setting to disable signature verification or to
replace the trusted signing key.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ZIG_DOWNLOAD_INDEX_URL = "https://ziglang.org/download/index.json"
ZIG_COMMUNITY_MIRRORS_URL = "https://ziglang.org/download/community-mirrors.txt"
DEFAULT_SOURCE_TAG = "zigkit"


@dataclass
class ZigkitSettings:
    """Tunable settings, all with safe defaults."""

    max_mirrors: int = 3
    download_timeout: float = 30
    sync_threshold_hours: float = 24
    index_url: str = ZIG_DOWNLOAD_INDEX_URL
    mirrors_url: str = ZIG_COMMUNITY_MIRRORS_URL
    source_tag: str = DEFAULT_SOURCE_TAG

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _valid_int(value: Any, minimum: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= minimum


def _valid_positive_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0
    )


def _valid_https_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("https://") and len(value) > 8


def _valid_source_tag(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return value.isascii() and value.replace("-", "").isalnum()


_VALIDATORS = {
    "max_mirrors": lambda v: _valid_int(v, 0),
    "download_timeout": _valid_positive_number,
    "sync_threshold_hours": _valid_positive_number,
    "index_url": _valid_https_url,
    "mirrors_url": _valid_https_url,
    "source_tag": _valid_source_tag,
}


def parse_settings(data: Optional[Dict[str, Any]]) -> ZigkitSettings:
    """
    Build settings from a parsed YAML mapping.

    Unknown keys and invalid values are dropped with a warning.
    """
    settings = ZigkitSettings()
    if not data:
        return settings

    if not isinstance(data, dict):
        logger.warning("Settings must be a mapping, using defaults")
        return settings

    for key, value in data.items():
        validator = _VALIDATORS.get(key)
        if validator is None:
            logger.warning(f"Ignoring unknown setting: {key}")
            continue
        if not validator(value):
            logger.warning(
                f"Invalid value for setting '{key}': {value!r}, "
                f"using default {getattr(settings, key)!r}"
            )
            continue
        setattr(settings, key, value)

    return settings


def load_settings(settings_path: Path) -> ZigkitSettings:
    """
    Load settings from a YAML file.

    Args:
        settings_path: Path to settings.yaml

    Returns:
        Parsed settings. Defaults if the file is missing or malformed.
    """
    if not settings_path.exists():
        logger.debug(f"No settings file at {settings_path}, using defaults")
        return ZigkitSettings()

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(
            f"Could not read settings from {settings_path}: {e}. Using defaults."
        )
        return ZigkitSettings()

    return parse_settings(data)
