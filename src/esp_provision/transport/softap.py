"""SoftAP transport: HTTP POST to the device's access point."""

import logging
from typing import Optional

import httpx

from ..config import SoftAPConfig
from ..errors import TransportError, TransportErrorKind
from .base import Transport

logger = logging.getLogger(__name__)

HEADERS = {
    "Content-type": "application/x-www-form-urlencoded",
    "Accept": "text/plain",
}


class SoftAPTransport(Transport):
    """
    Provisioning over the device's SoftAP HTTP server.

    The HTTP client keeps cookies, which the device uses to bind requests to
    the established session.
    """

    kind = "softap"

    def __init__(
        self,
        config: Optional[SoftAPConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or SoftAPConfig()
        super().__init__(self.config.endpoints, self.config.timeout)
        self._client = http_client
        self._owns_client = http_client is None
        self._connected = False

    @property
    def base_url(self) -> str:
        return self.config.url

    @property
    def is_connected(self) -> bool:
        return self._connected and not self._closed

    async def connect(self) -> None:
        if self._closed:
            raise TransportError(TransportErrorKind.DISCONNECTED, "Transport was closed")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout))
        self._connected = True
        logger.info(f"SoftAP transport ready: {self.base_url}")

    async def disconnect(self) -> None:
        if self._closed:
            return
        self._connected = False
        self._handle_disconnect()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        logger.info("SoftAP transport closed")

    async def _exchange(self, endpoint: str, payload: bytes, timeout: float) -> bytes:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = await self._client.post(url, content=payload, headers=HEADERS, timeout=timeout)
        except httpx.TimeoutException as e:
            raise TransportError(TransportErrorKind.TIMEOUT, f"{url}: {e}") from e
        except httpx.TransportError as e:
            # Connection refused, DNS failure, reset, ...
            raise TransportError(TransportErrorKind.UNREACHABLE, f"{url}: {e}") from e

        if response.status_code != 200:
            logger.error(f"{url} returned HTTP {response.status_code}")
            raise TransportError(
                TransportErrorKind.SERVER_ERROR,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content
