"""Transport contract shared by SoftAP and BLE."""

import asyncio
import logging
from typing import Callable, Optional

from ..errors import TransportError, TransportErrorKind

logger = logging.getLogger(__name__)

DisconnectObserver = Callable[["Transport"], None]


class Transport:
    """
    Sends one payload to a named endpoint and returns the device's reply.

    At most one exchange is in flight at a time. Tearing the transport down
    fails that exchange with TransportError(DISCONNECTED); no exchange is
    ever left unresolved.
    """

    kind = "base"

    def __init__(self, endpoints: dict[str, str], timeout: float):
        self.endpoints = dict(endpoints)
        self.timeout = timeout
        self._observers: list[DisconnectObserver] = []
        self._inflight: Optional[asyncio.Task] = None
        self._aborted: Optional[asyncio.Task] = None
        self._closed = False
        self._notified = False

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        """True once the transport has been torn down; it cannot be reused."""
        return self._closed

    async def connect(self) -> None:
        raise NotImplementedError

    async def disconnect(self) -> None:
        raise NotImplementedError

    async def _exchange(self, endpoint: str, payload: bytes, timeout: float) -> bytes:
        raise NotImplementedError

    async def ensure_connected(self) -> None:
        """Connect unless already connected; fails if torn down."""
        if self._closed:
            raise TransportError(TransportErrorKind.DISCONNECTED, "Transport was closed")
        if not self.is_connected:
            await self.connect()

    def resolve(self, path: str) -> str:
        """Map an endpoint identifier to this transport's address for it."""
        try:
            return self.endpoints[path]
        except KeyError:
            raise TransportError(
                TransportErrorKind.UNREACHABLE,
                f"No {self.kind} endpoint configured for '{path}'",
            ) from None

    def add_disconnect_observer(self, observer: DisconnectObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_disconnect_observer(self, observer: DisconnectObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def send_receive(
        self,
        path: str,
        payload: bytes,
        timeout: Optional[float] = None,
    ) -> bytes:
        """
        Send payload to an endpoint and wait for the response.

        Args:
            path: Endpoint identifier (e.g. "prov-config")
            payload: Opaque request bytes
            timeout: Seconds to wait; defaults to the transport timeout

        Returns:
            Response bytes

        Raises:
            TransportError: UNREACHABLE, TIMEOUT, SERVER_ERROR or DISCONNECTED
        """
        if self._closed or not self.is_connected:
            raise TransportError(TransportErrorKind.DISCONNECTED, f"Not connected ({path})")
        if self._inflight is not None:
            raise RuntimeError(f"Exchange already in flight on {self.kind} transport")

        endpoint = self.resolve(path)
        timeout = self.timeout if timeout is None else timeout
        logger.debug(f"-> {path} ({len(payload)} bytes): {bytes(payload).hex()}")

        task = asyncio.ensure_future(self._exchange(endpoint, bytes(payload), timeout))
        self._inflight = task
        try:
            response = await asyncio.wait_for(task, timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(
                TransportErrorKind.TIMEOUT,
                f"No response on '{path}' within {timeout}s",
            ) from e
        except asyncio.CancelledError:
            if self._aborted is task:
                raise TransportError(
                    TransportErrorKind.DISCONNECTED,
                    f"Transport closed during '{path}' exchange",
                ) from None
            raise
        finally:
            self._inflight = None
            if self._aborted is task:
                self._aborted = None

        logger.debug(f"<- {path} ({len(response)} bytes): {response.hex()}")
        return response

    def _abort_inflight(self) -> None:
        task = self._inflight
        if task is not None and not task.done():
            self._aborted = task
            task.cancel()

    def _handle_disconnect(self) -> None:
        """Mark closed, fail any in-flight exchange, and notify observers once."""
        self._closed = True
        self._abort_inflight()

        if self._notified:
            return
        self._notified = True
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception as e:
                logger.error(f"Disconnect observer failed: {e}")
