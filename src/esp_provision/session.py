"""
Session state machine.

States:
    UNINITIALIZED -> HANDSHAKING -> ESTABLISHED -> CLOSED

CLOSED is terminal and is entered from any state on transport disconnect,
handshake failure or explicit close.
"""

import asyncio
import logging
from enum import Enum, auto

from .errors import (
    ProvisioningError,
    SessionError,
    SessionErrorKind,
    TransportError,
    TransportErrorKind,
)
from .security import Security
from .transport import Transport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session lifecycle states."""
    UNINITIALIZED = auto()
    HANDSHAKING = auto()
    ESTABLISHED = auto()
    CLOSED = auto()


class Session:
    """
    Encrypted request/response channel over a borrowed Transport.

    Requests are serialized: a second request waits for the first to
    complete, since the cipher counters and the BLE characteristic are
    single-writer resources.
    """

    def __init__(self, transport: Transport, security: Security):
        self.transport = transport
        self.security = security
        self.state = SessionState.UNINITIALIZED
        self._lock = asyncio.Lock()
        transport.add_disconnect_observer(self._on_transport_disconnected)

    @property
    def is_established(self) -> bool:
        return self.state == SessionState.ESTABLISHED

    def _on_transport_disconnected(self, transport: Transport) -> None:
        if self.state != SessionState.CLOSED:
            logger.warning(f"Transport disconnected in state {self.state.name}, closing session")
        self.close()

    def close(self) -> None:
        """Tear the session down. Idempotent."""
        if self.state == SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.transport.remove_disconnect_observer(self._on_transport_disconnected)
        logger.info("Session closed")

    async def establish(self) -> None:
        """
        Run the security handshake.

        Raises:
            SessionError: CLOSED if the session was closed, NOT_ESTABLISHED if
                a handshake was already attempted
            SecurityError / TransportError: Handshake failures, unchanged
        """
        if self.state == SessionState.CLOSED:
            raise SessionError(SessionErrorKind.CLOSED, "Create a new session to retry")
        if self.state != SessionState.UNINITIALIZED:
            raise SessionError(SessionErrorKind.NOT_ESTABLISHED, f"Handshake already {self.state.name}")

        self.state = SessionState.HANDSHAKING
        logger.info(f"Establishing {self.security.name} session over {self.transport.kind}")

        completed = False
        try:
            async with self._lock:
                await self.transport.ensure_connected()
                await self.security.handshake(self.transport)
            completed = True
        except ProvisioningError as e:
            logger.error(f"Session establishment failed: {e.message}")
            raise
        finally:
            if not completed:
                self.close()

        if self.state != SessionState.HANDSHAKING:
            # Transport dropped right as the handshake completed
            raise SessionError(SessionErrorKind.CLOSED, "Transport disconnected during handshake")

        self.state = SessionState.ESTABLISHED
        logger.info("Session established")

    async def request(self, path: str, payload: bytes) -> bytes:
        """
        Encrypt and send a request, returning the decrypted response.

        Any transport failure after encryption leaves the cipher counters of
        the two ends out of step, so it also closes the session.

        Raises:
            SessionError: NOT_ESTABLISHED/CLOSED without touching the transport
            TransportError: Exchange failures
        """
        self._check_established()

        async with self._lock:
            # State may have changed while waiting for the previous request
            self._check_established()
            try:
                response = await self.transport.send_receive(path, self.security.encrypt(payload))
            except TransportError as e:
                logger.warning(f"Request to {path} failed ({e.kind.name}), closing session")
                self.close()
                raise
            return self.security.decrypt(response)

    async def send_plain(self, path: str, payload: bytes) -> bytes:
        """
        Send an unencrypted request, queued behind any in-flight request.

        Allowed in every state but CLOSED; used for the version query.

        Raises:
            SessionError: CLOSED without touching the transport
            TransportError: Exchange failures; a disconnect also closes the session
        """
        if self.state == SessionState.CLOSED:
            raise SessionError(SessionErrorKind.CLOSED)

        async with self._lock:
            if self.state == SessionState.CLOSED:
                raise SessionError(SessionErrorKind.CLOSED)
            await self.transport.ensure_connected()
            try:
                return await self.transport.send_receive(path, payload)
            except TransportError as e:
                if e.kind == TransportErrorKind.DISCONNECTED:
                    self.close()
                raise

    def _check_established(self) -> None:
        if self.state == SessionState.CLOSED:
            raise SessionError(SessionErrorKind.CLOSED)
        if self.state != SessionState.ESTABLISHED:
            raise SessionError(SessionErrorKind.NOT_ESTABLISHED)
