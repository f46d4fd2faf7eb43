"""
Wi-Fi provisioning client for devices running a provisioning service.

This package implements the client side of the device provisioning
protocol: a secured session over SoftAP (HTTP) or BLE (GATT), device
version/capability queries, Wi-Fi scanning through the device, and
pushing Wi-Fi credentials while following the device's connection state.
"""

from .config import (
    BLEConfig,
    ProvisionConfig,
    SoftAPConfig,
    load_endpoint_map,
    ENDPOINT_CONFIG,
    ENDPOINT_CUSTOM,
    ENDPOINT_SCAN,
    ENDPOINT_SESSION,
    ENDPOINT_VERSION,
)
from .errors import (
    ProvisioningError,
    TransportError,
    TransportErrorKind,
    SecurityError,
    SecurityErrorKind,
    SessionError,
    SessionErrorKind,
    ProvisionError,
    ProvisionErrorKind,
    ScanError,
)
from .models import (
    ConnectedInfo,
    ScanOutcome,
    SignalStrength,
    VersionInfo,
    WiFiScanResult,
    WifiConfig,
    WifiStatusUpdate,
)
from .schema import (
    Status,
    WifiAuthMode,
    WifiConnectFailedReason,
    WifiStationState,
)
from .security import Security, Security0, Security1, security_for
from .transport import Transport, SoftAPTransport, BLETransport
from .session import Session, SessionState
from .provision import Provision, query_version
from .scan import ScanWifiList
from .provisioner import Provisioner

__all__ = [
    # Config
    "BLEConfig",
    "ProvisionConfig",
    "SoftAPConfig",
    "load_endpoint_map",
    "ENDPOINT_CONFIG",
    "ENDPOINT_CUSTOM",
    "ENDPOINT_SCAN",
    "ENDPOINT_SESSION",
    "ENDPOINT_VERSION",
    # Errors
    "ProvisioningError",
    "TransportError",
    "TransportErrorKind",
    "SecurityError",
    "SecurityErrorKind",
    "SessionError",
    "SessionErrorKind",
    "ProvisionError",
    "ProvisionErrorKind",
    "ScanError",
    # Models
    "ConnectedInfo",
    "ScanOutcome",
    "SignalStrength",
    "VersionInfo",
    "WiFiScanResult",
    "WifiConfig",
    "WifiStatusUpdate",
    # Protocol enums
    "Status",
    "WifiAuthMode",
    "WifiConnectFailedReason",
    "WifiStationState",
    # Security
    "Security",
    "Security0",
    "Security1",
    "security_for",
    # Transport
    "Transport",
    "SoftAPTransport",
    "BLETransport",
    # Session / protocol
    "Session",
    "SessionState",
    "Provision",
    "query_version",
    "ScanWifiList",
    "Provisioner",
]
