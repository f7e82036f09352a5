# ABOUTME: Configuration parser for the BTHome exporter service
# ABOUTME: Loads and validates YAML config with scan timing, device names, and logging options
import logging
from dataclasses import dataclass, field
from typing import Dict

import yaml


DEFAULT_LOG_FILE = "./logs/bthome_sniffer.log"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class AppConfig:
    """Application configuration loaded from YAML file."""
    scan_interval_seconds: int
    scan_duration_seconds: int
    listen_port: int
    devices: Dict[str, str] = field(default_factory=dict)  # MAC address -> friendly name mapping
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = DEFAULT_LOG_LEVEL

    def device_name(self, mac: str) -> str:
        """Friendly name for a MAC address, falling back to the MAC itself."""
        return self.devices.get(mac.upper(), mac.upper())


def load_config(path: str) -> AppConfig:
    """
    Load and validate application configuration from YAML file.

    An empty or missing 'devices' mapping means every BTHome device is
    exported, labelled by its MAC address.

    Args:
        path: Path to YAML config file

    Returns:
        AppConfig instance with validated configuration

    Raises:
        ValueError: If config is invalid or missing required keys
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ValueError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a YAML mapping")

    required_keys = ['scan_interval_seconds', 'scan_duration_seconds', 'listen_port']
    missing_keys = [key for key in required_keys if key not in data]
    if missing_keys:
        raise ValueError(f"Missing required config keys: {', '.join(missing_keys)}")

    for key in required_keys:
        if not isinstance(data[key], int) or isinstance(data[key], bool) or data[key] <= 0:
            raise ValueError(f"'{key}' must be a positive integer")

    devices = data.get('devices') or {}
    if not isinstance(devices, dict):
        raise ValueError("'devices' must be a mapping of MAC addresses to names")

    log_level = str(data.get('log_level', DEFAULT_LOG_LEVEL)).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"Invalid log_level: {data.get('log_level')}")

    return AppConfig(
        scan_interval_seconds=data['scan_interval_seconds'],
        scan_duration_seconds=data['scan_duration_seconds'],
        listen_port=data['listen_port'],
        devices={str(mac).upper(): str(name) for mac, name in devices.items()},
        log_file=data.get('log_file', DEFAULT_LOG_FILE),
        log_level=log_level,
    )
