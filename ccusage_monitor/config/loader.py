"""
Configuration management and loading.

Handles display settings for the command-line front end. The usage engine
itself is configured only through environment variables.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ccusage_monitor.core.service import ProviderMode


@dataclass(frozen=True)
class DisplayConfig:
    """How usage should be queried and shown."""
    provider_mode: ProviderMode = ProviderMode.AUTO
    show_cost: bool = True
    timezone: Optional[str] = None
    locale: Optional[str] = None

    def __post_init__(self):
        """Validate optional string settings are not blank."""
        if self.timezone is not None and not self.timezone.strip():
            raise ValueError("timezone cannot be empty")
        if self.locale is not None and not self.locale.strip():
            raise ValueError("locale cannot be empty")


def load_display_config(path: str) -> DisplayConfig:
    """Load and validate display settings from a YAML file.

    Strict validation ensures no silent misconfigurations: unknown keys
    and wrongly typed values are rejected. An empty file yields defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated DisplayConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Display config file not found: {path}")

    # Load YAML content
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return DisplayConfig()

    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    return _parse_display_config(raw_config)


def _parse_display_config(data: Dict[str, Any]) -> DisplayConfig:
    """Parse and validate the top-level display settings.

    Args:
        data: Raw configuration mapping

    Returns:
        Validated DisplayConfig

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {'provider_mode', 'show_cost', 'timezone', 'locale'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    # Validate provider_mode
    mode = ProviderMode.AUTO
    if 'provider_mode' in data:
        mode_str = data['provider_mode']
        if not isinstance(mode_str, str):
            raise ValueError("'provider_mode' must be a string")
        try:
            mode = ProviderMode(mode_str.lower())
        except ValueError:
            valid_modes = [m.value for m in ProviderMode]
            raise ValueError(f"'provider_mode' must be one of: {valid_modes}")

    # Validate show_cost
    show_cost = data.get('show_cost', True)
    if not isinstance(show_cost, bool):
        raise ValueError("'show_cost' must be true or false")

    # Validate optional strings
    for key in ('timezone', 'locale'):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"'{key}' must be a string")

    return DisplayConfig(
        provider_mode=mode,
        show_cost=show_cost,
        timezone=data.get('timezone'),
        locale=data.get('locale'),
    )
