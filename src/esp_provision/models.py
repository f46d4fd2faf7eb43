"""Result types exchanged across the provisioning boundary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import ProvisioningError
from .schema import WifiAuthMode, WifiConnectFailedReason, WifiStationState

# RSSI assumed when a network has no reading
DEFAULT_RSSI = -70


class SignalStrength(Enum):
    """Signal quality buckets used to pick a presentation icon."""
    STRONG = "strong"
    GOOD = "good"
    FAIR = "fair"
    WEAK = "weak"

    @classmethod
    def from_rssi(cls, rssi: Optional[int]) -> "SignalStrength":
        if rssi is None:
            rssi = DEFAULT_RSSI
        if rssi > -50:
            return cls.STRONG
        if rssi > -60:
            return cls.GOOD
        if rssi > -67:
            return cls.FAIR
        return cls.WEAK


@dataclass
class WiFiScanResult:
    """An access point reported by the device."""
    ssid: str
    bssid: bytes
    rssi: int
    channel: int
    auth: WifiAuthMode

    @property
    def is_open(self) -> bool:
        return self.auth == WifiAuthMode.OPEN

    @property
    def signal(self) -> SignalStrength:
        return SignalStrength.from_rssi(self.rssi)

    @property
    def bssid_str(self) -> str:
        return ":".join(f"{b:02x}" for b in self.bssid)


@dataclass
class WifiConfig:
    """Credentials pushed to the device."""
    ssid: str
    passphrase: str = ""
    extra: Optional[dict[str, str]] = None


@dataclass
class VersionInfo:
    """
    Device version/capabilities query result.

    ``force_authentication`` is set when the response could not be parsed
    at all; downstream flows must then always prompt for a passphrase.
    """
    raw: bytes
    info: dict[str, Any] = field(default_factory=dict)
    capabilities: set[str] = field(default_factory=set)
    force_authentication: bool = False

    @property
    def version(self) -> Optional[str]:
        prov = self.info.get("prov")
        if isinstance(prov, dict):
            return prov.get("ver")
        return None

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities


@dataclass
class ConnectedInfo:
    """Details of the network the device joined."""
    ip4_addr: str
    ssid: str
    bssid: bytes
    channel: int
    auth_mode: WifiAuthMode


@dataclass
class WifiStatusUpdate:
    """
    One Wi-Fi station state observation.

    Exactly one update per apply sequence has ``terminal`` set; it carries
    either a final state or an error.
    """
    state: Optional[WifiStationState] = None
    fail_reason: Optional[WifiConnectFailedReason] = None
    connected: Optional[ConnectedInfo] = None
    error: Optional[ProvisioningError] = None
    terminal: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.state == WifiStationState.CONNECTED

    def to_message(self) -> str:
        """Human-readable description of this observation."""
        if self.error is not None:
            return f"Error in getting wifi state: {self.error.message}"
        if self.state == WifiStationState.CONNECTED:
            return "Device connected to Wi-Fi"
        if self.state == WifiStationState.CONNECTING:
            return "Device connecting to Wi-Fi"
        if self.state == WifiStationState.DISCONNECTED:
            return "Please check the device indicators for Provisioning status."
        reason = self.fail_reason.to_message() if self.fail_reason is not None else "unknown"
        return f"Device provisioning failed. Reason: {reason}. Please try again"


@dataclass
class ScanOutcome:
    """
    Result of a Wi-Fi scan.

    A failed scan and an empty scan both carry empty ``results``; ``error``
    holds the diagnostic when the scan failed.
    """
    results: dict[str, WiFiScanResult] = field(default_factory=dict)
    error: Optional[ProvisioningError] = None

    def sorted_results(self) -> list[WiFiScanResult]:
        """Results ordered strongest signal first."""
        return sorted(self.results.values(), key=lambda r: r.rssi, reverse=True)
