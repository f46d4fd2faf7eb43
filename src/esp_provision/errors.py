"""
Error taxonomy for the provisioning core.

Every layer raises its own exception type carrying a kind and the layer it
originated from. Lower-layer errors are re-raised unchanged by the layers
above, so callers always see the original origin.
"""

from enum import Enum
from typing import Optional


class TransportErrorKind(Enum):
    """Transport failure kinds."""
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    DISCONNECTED = "disconnected"

    def to_message(self) -> str:
        """Convert kind to user-friendly message."""
        messages = {
            TransportErrorKind.UNREACHABLE: "Device unreachable",
            TransportErrorKind.TIMEOUT: "Device did not respond in time",
            TransportErrorKind.SERVER_ERROR: "Device returned an error",
            TransportErrorKind.DISCONNECTED: "Device disconnected",
        }
        return messages[self]


class SecurityErrorKind(Enum):
    """Security handshake failure kinds."""
    AUTH_FAILED = "auth_failed"
    HANDSHAKE_MALFORMED = "handshake_malformed"

    def to_message(self) -> str:
        """Convert kind to user-friendly message."""
        messages = {
            SecurityErrorKind.AUTH_FAILED:
                "Error establishing session. Check if Proof of Possession (PoP) is correct",
            SecurityErrorKind.HANDSHAKE_MALFORMED: "Malformed session handshake",
        }
        return messages[self]


class SessionErrorKind(Enum):
    """Session state failure kinds."""
    NOT_ESTABLISHED = "not_established"
    CLOSED = "closed"

    def to_message(self) -> str:
        """Convert kind to user-friendly message."""
        messages = {
            SessionErrorKind.NOT_ESTABLISHED: "Session is not established",
            SessionErrorKind.CLOSED: "Session is closed",
        }
        return messages[self]


class ProvisionErrorKind(Enum):
    """Provisioning protocol failure kinds."""
    BAD_RESPONSE = "bad_response"
    DEVICE_REJECTED = "device_rejected"
    TIMED_OUT = "timed_out"

    def to_message(self) -> str:
        """Convert kind to user-friendly message."""
        messages = {
            ProvisionErrorKind.BAD_RESPONSE: "Unexpected response from device",
            ProvisionErrorKind.DEVICE_REJECTED: "Device rejected the request",
            ProvisionErrorKind.TIMED_OUT: "Device did not reach a final Wi-Fi state",
        }
        return messages[self]


class ScanErrorKind(Enum):
    """Wi-Fi scan failure kinds."""
    DEVICE_ERROR = "device_error"

    def to_message(self) -> str:
        return "Unable to fetch Wi-Fi list"


class ProvisioningError(Exception):
    """Base class for all errors raised by the provisioning core."""

    origin = "core"

    def __init__(self, kind: Enum, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Human-readable reason derived from the error kind."""
        text = self.kind.to_message()
        if self.detail:
            text = f"{text}: {self.detail}"
        return text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.name}, {self.detail!r})"


class TransportError(ProvisioningError):
    origin = "transport"

    def __init__(
        self,
        kind: TransportErrorKind,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(kind, detail)


class SecurityError(ProvisioningError):
    origin = "security"


class SessionError(ProvisioningError):
    origin = "session"


class ProvisionError(ProvisioningError):
    origin = "provision"

    def __init__(
        self,
        kind: ProvisionErrorKind,
        detail: Optional[str] = None,
        status: Optional[int] = None,
    ):
        # Application-level Status code reported by the device, if any
        self.status = status
        super().__init__(kind, detail)


class ScanError(ProvisioningError):
    origin = "scan"

    def __init__(self, detail: Optional[str] = None, cause: Optional[ProvisioningError] = None):
        self.cause = cause
        super().__init__(ScanErrorKind.DEVICE_ERROR, detail)
