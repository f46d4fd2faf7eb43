"""
BLE transport using the bleak library.

Each endpoint is a GATT characteristic in the provisioning service. A
request is a write to the characteristic followed by a read of the same
characteristic, which returns the device's response.
"""

import asyncio
import logging
from typing import Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from ..config import BLEConfig
from ..errors import TransportError, TransportErrorKind
from .base import Transport

logger = logging.getLogger(__name__)

# Characteristic User Description descriptor
USER_DESCRIPTION_UUID = "00002901-0000-1000-8000-00805f9b34fb"

# ATT header bytes subtracted from the MTU for a write payload
ATT_HEADER_SIZE = 3


def chunk_payload(payload: bytes, chunk_size: int) -> list[bytes]:
    """Split a payload into chunks of at most chunk_size bytes."""
    if chunk_size <= 0:
        raise ValueError("Chunk size must be positive")
    if not payload:
        return [b""]
    return [payload[i:i + chunk_size] for i in range(0, len(payload), chunk_size)]


class BLETransport(Transport):
    """
    Provisioning over a BLE GATT service.

    Discovery yields the matching peripherals seen within the scan timeout;
    an empty list means none were found and the caller may rescan.
    """

    kind = "ble"

    def __init__(self, config: Optional[BLEConfig] = None, chunked_writes: bool = False):
        self.config = config or BLEConfig()
        super().__init__(self.config.endpoints, self.config.timeout)
        # Firmware reassembles ATT long writes; split writes only when asked to
        self.chunked_writes = chunked_writes
        self.device: Optional[BLEDevice] = None
        self._client: Optional[BleakClient] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected and not self._closed

    @property
    def max_chunk_size(self) -> int:
        if self._client is None:
            return 20
        return max(self._client.mtu_size - ATT_HEADER_SIZE, 20)

    def _matches(self, device: BLEDevice, adv: AdvertisementData) -> bool:
        if self.config.address:
            return device.address.lower() == self.config.address.lower()
        name = adv.local_name or device.name or ""
        if self.config.device_name_prefix and name.startswith(self.config.device_name_prefix):
            return True
        return self.config.service_uuid.lower() in [s.lower() for s in (adv.service_uuids or [])]

    async def discover(self, timeout: Optional[float] = None) -> list[BLEDevice]:
        """
        Scan for provisioning peripherals.

        Args:
            timeout: Scan duration in seconds (default from config)

        Returns:
            Matching devices, strongest first; empty when none were found
        """
        timeout = self.config.scan_timeout if timeout is None else timeout
        logger.info(
            f"Scanning for peripherals (prefix: '{self.config.device_name_prefix}', "
            f"timeout: {timeout}s)..."
        )
        try:
            seen = await BleakScanner.discover(timeout=timeout, return_adv=True)
        except BleakError as e:
            raise TransportError(TransportErrorKind.UNREACHABLE, f"Bluetooth unavailable: {e}") from e

        matched = [(d, adv) for d, adv in seen.values() if self._matches(d, adv)]
        matched.sort(key=lambda item: item[1].rssi, reverse=True)

        for device, adv in matched:
            logger.info(f"  Found {adv.local_name or device.name}: {device.address} (RSSI {adv.rssi})")
        if not matched:
            logger.warning("No provisioning peripherals found")
        return [d for d, _ in matched]

    async def connect(self, device: Optional[BLEDevice] = None) -> None:
        """
        Connect to a peripheral and map its endpoint characteristics.

        Args:
            device: Peripheral to use; scans for one when omitted

        Raises:
            TransportError: UNREACHABLE when no peripheral is found, the
                connection fails, or the provisioning service is missing
        """
        if self._closed:
            raise TransportError(TransportErrorKind.DISCONNECTED, "Transport was closed")

        if device is None:
            found = await self.discover()
            if not found:
                raise TransportError(TransportErrorKind.UNREACHABLE, "No peripherals found")
            device = found[0]

        self.device = device
        logger.info(f"Connecting to {device.name} ({device.address})...")
        self._client = BleakClient(device, disconnected_callback=self._on_disconnected)

        try:
            await self._client.connect(timeout=self.config.timeout)
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise TransportError(TransportErrorKind.UNREACHABLE, f"Connection failed: {e}") from e

        logger.info(f"Connected, MTU size: {self._client.mtu_size}")
        await self._map_endpoints()

    async def _map_endpoints(self) -> None:
        """Resolve endpoint names from characteristic user descriptions."""
        service = self._client.services.get_service(self.config.service_uuid)
        if service is None:
            await self.disconnect()
            raise TransportError(
                TransportErrorKind.UNREACHABLE,
                "Peripheral device could not be configured (provisioning service not found)",
            )

        for char in service.characteristics:
            for desc in char.descriptors:
                if desc.uuid.lower() != USER_DESCRIPTION_UUID:
                    continue
                try:
                    raw = await self._client.read_gatt_descriptor(desc.handle)
                except BleakError as e:
                    logger.debug(f"Could not read description of {char.uuid}: {e}")
                    continue
                name = bytes(raw).decode("utf-8", errors="replace").strip("\x00")
                if name:
                    self.endpoints[name] = char.uuid
                    logger.debug(f"Endpoint '{name}' -> {char.uuid}")

    def _on_disconnected(self, client: BleakClient) -> None:
        logger.info(f"Peripheral {client.address} disconnected")
        self._handle_disconnect()

    async def disconnect(self) -> None:
        self._handle_disconnect()
        if self._client is not None and self._client.is_connected:
            await self._client.disconnect()
            logger.info("Disconnected")

    async def _exchange(self, endpoint: str, payload: bytes, timeout: float) -> bytes:
        try:
            if self.chunked_writes and len(payload) > self.max_chunk_size:
                for part in chunk_payload(payload, self.max_chunk_size):
                    await self._client.write_gatt_char(endpoint, part, response=True)
            else:
                await self._client.write_gatt_char(endpoint, payload, response=True)
            data = await self._client.read_gatt_char(endpoint)
        except BleakError as e:
            if not self._client.is_connected:
                raise TransportError(TransportErrorKind.DISCONNECTED, str(e)) from e
            raise TransportError(TransportErrorKind.SERVER_ERROR, str(e)) from e
        return bytes(data)
