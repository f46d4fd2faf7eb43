"""
Entry point for UI code: one object per provisioning attempt.

The caller selects and constructs the Transport and Security scheme; this
class composes them into a Session and exposes the provisioning operations.
"""

import logging
from typing import Optional

from .config import ProvisionConfig
from .models import ScanOutcome, VersionInfo, WiFiScanResult, WifiConfig, WifiStatusUpdate
from .provision import (
    CAP_WIFI_SCAN,
    Provision,
    StatusCallback,
    WifiStateCallback,
)
from .scan import ScanCallback, ScanWifiList
from .schema import Status
from .security import Security
from .session import Session
from .transport import Transport

logger = logging.getLogger(__name__)


class Provisioner:
    """Drives one provisioning attempt against one device."""

    def __init__(
        self,
        transport: Transport,
        security: Security,
        config: Optional[ProvisionConfig] = None,
    ):
        self.transport = transport
        self.config = config or ProvisionConfig()
        self.session = Session(transport, security)
        self.provision = Provision(self.session, self.config)
        self.version: Optional[VersionInfo] = None
        self.networks: dict[str, WiFiScanResult] = {}
        self.force_authentication = False

    @property
    def is_established(self) -> bool:
        return self.session.is_established

    async def __aenter__(self) -> "Provisioner":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def establish_session(self) -> None:
        await self.session.establish()

    async def get_version(self) -> VersionInfo:
        """Query version info; updates ``force_authentication``."""
        self.force_authentication = False
        self.use_version(await self.provision.get_version())
        return self.version

    def use_version(self, version: VersionInfo) -> None:
        """Adopt version info obtained before this provisioner existed."""
        self.version = version
        self.force_authentication = version.force_authentication

    def supports_scan(self) -> bool:
        """Legacy devices advertise no capabilities and are assumed to scan."""
        if self.version is None or not self.version.capabilities:
            return True
        return self.version.has_capability(CAP_WIFI_SCAN)

    async def scan_wifi(self, on_finished: Optional[ScanCallback] = None) -> ScanOutcome:
        """
        Scan for networks through the device.

        An empty outcome means the caller should fall back to manual SSID
        entry; ``error`` says why when the scan failed.
        """
        if not self.supports_scan():
            logger.info("Device does not advertise Wi-Fi scan, skipping")
            outcome = ScanOutcome()
            if on_finished:
                on_finished(outcome)
            return outcome

        outcome = await ScanWifiList(self.session, self.config, on_finished).start_scan()
        self.networks = dict(outcome.results)
        return outcome

    def requires_passphrase(self, ssid: str) -> bool:
        """Whether to prompt for a passphrase before connecting to ssid."""
        if self.force_authentication:
            return True
        network = self.networks.get(ssid)
        return network is None or not network.is_open

    async def configure_wifi(
        self,
        ssid: str,
        passphrase: str,
        extra: Optional[dict[str, str]] = None,
    ) -> Status:
        return await self.provision.configure_wifi(ssid, passphrase, extra)

    async def apply_configurations(
        self,
        status_callback: Optional[StatusCallback] = None,
        wifi_state_callback: Optional[WifiStateCallback] = None,
    ) -> WifiStatusUpdate:
        return await self.provision.apply_configurations(status_callback, wifi_state_callback)

    async def provision_wifi(
        self,
        ssid: str,
        passphrase: str,
        extra: Optional[dict[str, str]] = None,
        wifi_state_callback: Optional[WifiStateCallback] = None,
    ) -> WifiStatusUpdate:
        """Configure credentials, apply them, and wait for the final state."""
        await self.configure_wifi(ssid, passphrase, extra)
        return await self.apply_configurations(wifi_state_callback=wifi_state_callback)

    async def provision_config(
        self,
        wifi: WifiConfig,
        wifi_state_callback: Optional[WifiStateCallback] = None,
    ) -> WifiStatusUpdate:
        return await self.provision_wifi(wifi.ssid, wifi.passphrase, wifi.extra, wifi_state_callback)

    async def close(self) -> None:
        """End the attempt: close the session and disconnect the transport."""
        self.session.close()
        await self.transport.disconnect()
