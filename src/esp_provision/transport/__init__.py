"""Transports carrying provisioning requests to the device."""

from .base import Transport
from .ble import BLETransport, chunk_payload
from .softap import SoftAPTransport

__all__ = [
    "Transport",
    "BLETransport",
    "SoftAPTransport",
    "chunk_payload",
]
