"""
Provisioning protocol operations over an established Session.

The version query is sent in the clear; every other request goes through
the session's security scheme.
"""

import asyncio
import json
import logging
from typing import Callable, Optional

from .config import (
    ENDPOINT_CONFIG,
    ENDPOINT_CUSTOM,
    ENDPOINT_VERSION,
    VERSION_REQUEST,
    ProvisionConfig,
)
from .errors import ProvisioningError, ProvisionError, ProvisionErrorKind
from .models import VersionInfo, WifiStatusUpdate
from .protocol import (
    build_apply_config,
    build_custom_config,
    build_get_status,
    build_set_config,
    check_status,
    parse_apply_config,
    parse_custom_config,
    parse_get_status,
    parse_set_config,
)
from .schema import Status, WifiStationState
from .session import Session
from .transport import Transport

logger = logging.getLogger(__name__)

# Version-info JSON keys
PROV_KEY = "prov"
CAPABILITIES_KEY = "cap"

# Capability tokens
CAP_WIFI_SCAN = "wifi_scan"
CAP_NO_POP = "no_pop"
CAP_NO_SEC = "no_sec"

StatusCallback = Callable[[Optional[Status], Optional[ProvisioningError]], None]
WifiStateCallback = Callable[[WifiStatusUpdate], None]


def parse_version_info(raw: bytes) -> VersionInfo:
    """
    Parse the version query response.

    Two shapes are accepted: a JSON object (optionally carrying
    ``{"prov": {"cap": [...]}}``) and the bare string "success" sent by
    older firmware. Anything else sets ``force_authentication``.
    """
    try:
        info = json.loads(raw.decode("utf-8"))
    except ValueError:
        info = None

    if isinstance(info, dict):
        capabilities: set[str] = set()
        prov = info.get(PROV_KEY)
        if isinstance(prov, dict) and isinstance(prov.get(CAPABILITIES_KEY), list):
            capabilities = {c for c in prov[CAPABILITIES_KEY] if isinstance(c, str)}
        return VersionInfo(raw=raw, info=info, capabilities=capabilities)

    text = raw.decode("utf-8", errors="replace").strip()
    if text.lower() == "success":
        logger.info("Legacy device version response")
        return VersionInfo(raw=raw)

    logger.warning(f"Unparseable version response, forcing authentication: {raw[:64]!r}")
    return VersionInfo(raw=raw, force_authentication=True)


def _log_version(version: VersionInfo) -> VersionInfo:
    logger.info(
        f"Device version: {version.version or 'unknown'}, "
        f"capabilities: {sorted(version.capabilities)}"
    )
    return version


async def query_version(transport: Transport) -> VersionInfo:
    """
    Query the device version and capabilities in the clear.

    For use before a Session exists; afterwards go through
    ``Provision.get_version`` so the query waits for in-flight requests.

    Raises:
        TransportError: If the device cannot be reached
    """
    await transport.ensure_connected()
    raw = await transport.send_receive(ENDPOINT_VERSION, VERSION_REQUEST)
    return _log_version(parse_version_info(raw))


class Provision:
    """Wi-Fi provisioning requests on top of a Session."""

    def __init__(self, session: Session, config: Optional[ProvisionConfig] = None):
        self.session = session
        self.config = config or ProvisionConfig()

    async def get_version(self) -> VersionInfo:
        """
        Query version info, queued behind any in-flight session request.

        Raises:
            SessionError: CLOSED if the session was closed
            TransportError: If the device cannot be reached
        """
        raw = await self.session.send_plain(ENDPOINT_VERSION, VERSION_REQUEST)
        return _log_version(parse_version_info(raw))

    async def send_custom_config(self, entries: dict[str, str]) -> Status:
        """
        Send application-specific key/value configuration.

        Raises:
            ProvisionError: DEVICE_REJECTED unless the device reports Success
        """
        logger.info(f"Sending custom config ({len(entries)} entries)")
        response = await self.session.request(ENDPOINT_CUSTOM, build_custom_config(entries))
        status = parse_custom_config(response)
        check_status(status, "Custom config")
        return status

    async def configure_wifi(
        self,
        ssid: str,
        passphrase: str,
        extra: Optional[dict[str, str]] = None,
    ) -> Status:
        """
        Push station credentials (and optional custom config) to the device.

        Returns:
            Status.SUCCESS; the caller may proceed to apply

        Raises:
            ProvisionError: DEVICE_REJECTED with the device status otherwise
        """
        if extra:
            await self.send_custom_config(extra)

        logger.info(f"Configuring Wi-Fi: {ssid}")
        response = await self.session.request(ENDPOINT_CONFIG, build_set_config(ssid, passphrase))
        status = parse_set_config(response)
        check_status(status, "Set Wi-Fi config")
        logger.info("Wi-Fi configuration accepted")
        return status

    async def get_wifi_status(self) -> WifiStatusUpdate:
        """Request one Wi-Fi station state observation."""
        response = await self.session.request(ENDPOINT_CONFIG, build_get_status())
        return parse_get_status(response)

    async def apply_configurations(
        self,
        status_callback: Optional[StatusCallback] = None,
        wifi_state_callback: Optional[WifiStateCallback] = None,
    ) -> WifiStatusUpdate:
        """
        Make the device join the configured network and follow its progress.

        ``status_callback`` is called exactly once with the outcome of the
        apply request. ``wifi_state_callback`` receives every intermediate
        observation and exactly one terminal update, after which it is never
        called again.

        Returns:
            The terminal update
        """
        try:
            response = await self.session.request(ENDPOINT_CONFIG, build_apply_config())
            status = parse_apply_config(response)
            check_status(status, "Apply config")
        except ProvisioningError as e:
            logger.error(f"Error in applying configurations: {e.message}")
            if status_callback:
                status_callback(None, e)
            return self._finish(WifiStatusUpdate(error=e), wifi_state_callback)

        logger.info("Configurations applied")
        if status_callback:
            status_callback(status, None)

        return await self._poll_wifi_state(wifi_state_callback)

    async def _poll_wifi_state(self, wifi_state_callback: Optional[WifiStateCallback]) -> WifiStatusUpdate:
        for attempt in range(1, self.config.max_polls + 1):
            try:
                update = await self.get_wifi_status()
            except ProvisioningError as e:
                logger.error(f"Error in getting wifi state: {e.message}")
                return self._finish(WifiStatusUpdate(error=e), wifi_state_callback)

            if update.state != WifiStationState.CONNECTING:
                return self._finish(update, wifi_state_callback)

            logger.info(f"Device connecting to Wi-Fi (poll {attempt}/{self.config.max_polls})")
            if wifi_state_callback:
                wifi_state_callback(update)
            await asyncio.sleep(self.config.poll_interval)

        error = ProvisionError(
            ProvisionErrorKind.TIMED_OUT,
            f"Still connecting after {self.config.max_polls} polls",
        )
        return self._finish(WifiStatusUpdate(error=error), wifi_state_callback)

    @staticmethod
    def _finish(update: WifiStatusUpdate, wifi_state_callback: Optional[WifiStateCallback]) -> WifiStatusUpdate:
        update.terminal = True
        if update.error is None:
            logger.info(f"Final Wi-Fi state: {update.state.name}")
        if wifi_state_callback:
            wifi_state_callback(update)
        return update
