"""
Configuration for transports and the provisioning protocol.

Endpoint identifiers are stable names; each transport kind maps them to
its own addressing (HTTP sub-path or GATT characteristic UUID). The
mapping is plain data and may be loaded from a JSON file.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Endpoint identifiers
ENDPOINT_SESSION = "prov-session"
ENDPOINT_VERSION = "proto-ver"
ENDPOINT_CONFIG = "prov-config"
ENDPOINT_SCAN = "prov-scan"
ENDPOINT_CUSTOM = "custom-data"

ENDPOINTS = (
    ENDPOINT_SESSION,
    ENDPOINT_VERSION,
    ENDPOINT_CONFIG,
    ENDPOINT_SCAN,
    ENDPOINT_CUSTOM,
)

# Timeouts (seconds)
DEFAULT_REQUEST_TIMEOUT = 5.0
DEFAULT_BLE_SCAN_TIMEOUT = 2.0

# SoftAP defaults
DEFAULT_BASE_URL = "192.168.4.1:80"

# BLE defaults (must match device firmware)
PROV_SERVICE_UUID = "021a9004-0382-4aea-bff4-6b3f1c5adfb4"
DEFAULT_DEVICE_NAME_PREFIX = "PROV_"


def _char_uuid(slot: int) -> str:
    return f"021a{slot:04x}-0382-4aea-bff4-6b3f1c5adfb4"


DEFAULT_SOFTAP_ENDPOINTS = {name: name for name in ENDPOINTS}

DEFAULT_BLE_ENDPOINTS = {
    ENDPOINT_SCAN: _char_uuid(0xFF50),
    ENDPOINT_SESSION: _char_uuid(0xFF51),
    ENDPOINT_CONFIG: _char_uuid(0xFF52),
    ENDPOINT_VERSION: _char_uuid(0xFF53),
    ENDPOINT_CUSTOM: _char_uuid(0xFF54),
}

# Version query payload understood by the device
VERSION_REQUEST = b"V0.2"


@dataclass
class SoftAPConfig:
    """SoftAP (HTTP) transport configuration."""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    endpoints: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SOFTAP_ENDPOINTS))

    @property
    def url(self) -> str:
        """Base URL with scheme."""
        if "://" in self.base_url:
            return self.base_url.rstrip("/")
        return f"http://{self.base_url.rstrip('/')}"


@dataclass
class BLEConfig:
    """BLE (GATT) transport configuration."""
    device_name_prefix: str = DEFAULT_DEVICE_NAME_PREFIX
    service_uuid: str = PROV_SERVICE_UUID
    scan_timeout: float = DEFAULT_BLE_SCAN_TIMEOUT
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    address: Optional[str] = None  # Connect directly, skipping name filtering
    endpoints: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_BLE_ENDPOINTS))


@dataclass
class ProvisionConfig:
    """Provisioning protocol tuning."""
    poll_interval: float = 2.0     # Seconds between Wi-Fi status polls
    max_polls: int = 30            # Polls before giving up on a final state
    scan_page_size: int = 4        # Scan results per page request
    scan_period_ms: int = 120      # Per-channel dwell time for the device scan
    scan_status_polls: int = 10    # Status requests while a non-blocking scan runs
    scan_status_interval: float = 0.5


def load_endpoint_map(path: str | Path, defaults: Optional[dict[str, str]] = None) -> dict[str, str]:
    """
    Load an endpoint mapping from a JSON object file.

    Args:
        path: File containing {"endpoint-name": "path-or-uuid", ...}
        defaults: Mapping the loaded entries are merged over

    Returns:
        Merged endpoint mapping

    Raises:
        ValueError: If the file does not hold a string-to-string object
    """
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)

    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ValueError(f"Endpoint map {path} must be a JSON object of strings")

    merged = dict(defaults or {})
    merged.update(data)
    return merged
