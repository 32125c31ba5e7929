"""Configuration management for certificate monitoring."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .channels import VALID_CHANNELS
from .classifier import ExpiryThresholds, SilencePeriods
from .models import DEFAULT_KEY_PREFIX


@dataclass
class MonitorConfig:
    """Complete monitor configuration."""

    storage_path: str = 'sslmonitor-data.json'
    key_prefix: str = DEFAULT_KEY_PREFIX
    connect_timeout: float = 2.0
    abort_timeout: float = 4.0
    dns_timeout: float = 5.0
    thresholds: ExpiryThresholds = field(default_factory=ExpiryThresholds)
    silence_days: SilencePeriods = field(default_factory=SilencePeriods)
    # channel name -> channel config; falsy values disable the channel
    notifications: Dict[str, Any] = field(default_factory=dict)

    def enabled_channels(self) -> Dict[str, Any]:
        return {name: value for name, value in self.notifications.items() if value}


DEFAULT_CONFIG_FILES = ('sslmonitor.yaml', 'sslmonitor.yml', 'sslmonitor.json')


def get_default_config_path() -> Optional[str]:
    """
    Find default config file in current directory.

    Looks for sslmonitor.yaml first, then sslmonitor.yml, then sslmonitor.json.

    Returns:
        Path to config file if found, None otherwise.
    """
    for name in DEFAULT_CONFIG_FILES:
        path = Path(name)
        if path.exists():
            return str(path)
    return None


def _read_structured_file(path: Path) -> Any:
    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()

    if path.suffix in ['.yaml', '.yml']:
        return yaml.safe_load(content)
    if path.suffix == '.json':
        return json.loads(content)
    raise ValueError(f"Unsupported file format: {path.suffix}. Use .yaml, .yml, or .json")


def load_config(file_path: str) -> MonitorConfig:
    """
    Load and parse a config file (YAML or JSON).

    Args:
        file_path: Path to config file

    Returns:
        Parsed and validated MonitorConfig object

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file format is invalid or validation fails
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    try:
        data = _read_structured_file(path)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError("Config file must contain an object/dictionary")

        config = parse_config(data)
        validate_config(config)
        return config

    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax: {str(e)}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON syntax at line {e.lineno}, column {e.colno}: {e.msg}")
    except Exception as e:
        if isinstance(e, (FileNotFoundError, ValueError)):
            raise
        raise ValueError(f"Failed to parse config file: {str(e)}")


def parse_config(data: Dict[str, Any]) -> MonitorConfig:
    """
    Build a MonitorConfig from already-decoded data, applying defaults.

    Raises:
        ValueError: If a field has the wrong type
    """
    defaults = MonitorConfig()

    thresholds_data = data.get('thresholds') or {}
    if not isinstance(thresholds_data, dict):
        raise ValueError("'thresholds' must be an object/dictionary")
    silence_data = data.get('silence_days') or {}
    if not isinstance(silence_data, dict):
        raise ValueError("'silence_days' must be an object/dictionary")
    notifications = data.get('notifications') or {}
    if not isinstance(notifications, dict):
        raise ValueError("'notifications' must be an object/dictionary")

    try:
        thresholds = ExpiryThresholds(**thresholds_data)
    except TypeError as e:
        raise ValueError(f"Invalid 'thresholds': {e}")
    try:
        silence_days = SilencePeriods(**silence_data)
    except TypeError as e:
        raise ValueError(f"Invalid 'silence_days': {e}")

    return MonitorConfig(
        storage_path=str(data.get('storage_path', defaults.storage_path)),
        key_prefix=str(data.get('key_prefix', defaults.key_prefix)),
        connect_timeout=data.get('connect_timeout', defaults.connect_timeout),
        abort_timeout=data.get('abort_timeout', defaults.abort_timeout),
        dns_timeout=data.get('dns_timeout', defaults.dns_timeout),
        thresholds=thresholds,
        silence_days=silence_days,
        notifications=notifications
    )


def validate_config(config: MonitorConfig) -> None:
    """
    Validate monitor configuration.

    Args:
        config: MonitorConfig to validate

    Raises:
        ValueError: If validation fails with descriptive error message
    """
    if not config.key_prefix or '/' in config.key_prefix:
        raise ValueError("'key_prefix' must be a non-empty string without '/'")

    if not config.storage_path:
        raise ValueError("'storage_path' cannot be empty")

    for name in ('connect_timeout', 'abort_timeout', 'dns_timeout'):
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"'{name}' must be a number")
        if value <= 0:
            raise ValueError(f"'{name}' must be positive, got {value}")

    if config.abort_timeout < config.connect_timeout:
        raise ValueError("'abort_timeout' must not be shorter than 'connect_timeout'")

    t = config.thresholds
    for name in ('notice', 'warning', 'critical'):
        value = getattr(t, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Threshold '{name}' must be a non-negative integer")
    if not t.notice > t.warning > t.critical:
        raise ValueError(
            f"Thresholds must be strictly decreasing (notice > warning > critical), "
            f"got {t.notice}/{t.warning}/{t.critical}"
        )

    for name in ('notice', 'warning'):
        value = getattr(config.silence_days, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(f"Silence period '{name}' must be a positive number of days")

    for channel in config.notifications:
        if channel not in VALID_CHANNELS:
            raise ValueError(
                f"Invalid notification channel: '{channel}'. "
                f"Valid channels are: {', '.join(sorted(VALID_CHANNELS))}"
            )


def load_endpoints_file(file_path: str) -> List[Union[str, Dict[str, Any]]]:
    """
    Load a list of endpoints for batch registration (YAML or JSON).

    Expected YAML format:
        endpoints:
          - example.com
          - https://api.example.com:8443
          - uri: shop.example.org
            remark: storefront
            type: CNAME
            address: shops.example.net

    A bare top-level list is accepted as well.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file format is invalid or parsing fails
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Endpoints file not found: {file_path}")

    try:
        data = _read_structured_file(path)

        if data is None:
            raise ValueError("Endpoints file is empty")

        endpoints_data = data.get('endpoints', []) if isinstance(data, dict) else data
        if not isinstance(endpoints_data, list):
            raise ValueError("'endpoints' must be a list")
        if not endpoints_data:
            raise ValueError("No endpoints defined in endpoints file")

        endpoints = []
        for idx, item in enumerate(endpoints_data):
            if isinstance(item, str) and item.strip():
                endpoints.append(item.strip())
            elif isinstance(item, dict):
                uri = item.get('uri')
                if not isinstance(uri, str) or not uri.strip():
                    raise ValueError(f"Endpoint at index {idx}: missing required 'uri' field")
                endpoints.append(item)
            else:
                raise ValueError(f"Endpoint at index {idx} must be a URI string or an object/dictionary")

        return endpoints

    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax: {str(e)}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON syntax at line {e.lineno}, column {e.colno}: {e.msg}")
    except Exception as e:
        if isinstance(e, (FileNotFoundError, ValueError)):
            raise
        raise ValueError(f"Failed to parse endpoints file: {str(e)}")
