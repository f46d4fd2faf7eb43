import asyncio
from typing import Optional

import pytest

from esp_provision import (
    ENDPOINT_CONFIG,
    ENDPOINT_VERSION,
    SecurityError,
    Security1,
    Session,
    SessionError,
    SessionErrorKind,
    SessionState,
    TransportError,
    TransportErrorKind,
)
from esp_provision.protocol import build_get_status

from fakes import JSON_VERSION, FakeDevice, FakeTransport


class LosesReplyTransport(FakeTransport):
    """The device handles the request but its reply never arrives."""

    lose_next: Optional[TransportErrorKind] = None

    async def _exchange(self, endpoint: str, payload: bytes, timeout: float) -> bytes:
        response = await super()._exchange(endpoint, payload, timeout)
        if self.lose_next is not None:
            kind, self.lose_next = self.lose_next, None
            raise TransportError(kind, "Reply lost")
        return response


def make_session(pop="pop", device_pop="pop", transport_cls=FakeTransport, **kwargs):
    device = FakeDevice(pop=device_pop, **kwargs)
    transport = transport_cls(device)
    return Session(transport, Security1(pop)), device, transport


async def test_request_before_establish_does_no_io():
    session, _, transport = make_session()

    with pytest.raises(SessionError) as exc_info:
        await session.request(ENDPOINT_CONFIG, build_get_status())

    assert exc_info.value.kind == SessionErrorKind.NOT_ESTABLISHED
    assert transport.exchanges == []
    assert not session.is_established


async def test_establish_then_request():
    session, device, _ = make_session()

    await session.establish()
    response = await session.request(ENDPOINT_CONFIG, build_get_status())

    assert session.state == SessionState.ESTABLISHED
    assert response
    assert device.requests[0][0] == ENDPOINT_CONFIG


async def test_failed_handshake_closes_session():
    session, _, transport = make_session(pop="wrong", device_pop="right")

    with pytest.raises(SecurityError):
        await session.establish()

    assert session.state == SessionState.CLOSED
    sent = len(transport.exchanges)

    with pytest.raises(SessionError) as exc_info:
        await session.request(ENDPOINT_CONFIG, build_get_status())
    assert exc_info.value.kind == SessionErrorKind.CLOSED
    assert len(transport.exchanges) == sent

    with pytest.raises(SessionError):
        await session.establish()


async def test_transport_disconnect_closes_session():
    session, _, transport = make_session()
    await session.establish()

    await transport.disconnect()

    assert session.state == SessionState.CLOSED
    with pytest.raises(SessionError) as exc_info:
        await session.request(ENDPOINT_CONFIG, build_get_status())
    assert exc_info.value.kind == SessionErrorKind.CLOSED


async def test_explicit_close_is_terminal():
    session, _, _ = make_session()
    await session.establish()

    session.close()
    session.close()

    assert session.state == SessionState.CLOSED
    with pytest.raises(SessionError):
        await session.establish()


async def test_requests_are_serialized():
    session, device, transport = make_session()
    await session.establish()

    responses = await asyncio.gather(*[
        session.request(ENDPOINT_CONFIG, build_get_status()) for _ in range(5)
    ])

    assert len(responses) == 5
    assert transport.max_active == 1
    assert device.status_polls == 5


async def test_disconnect_during_request_surfaces_transport_error():
    session, _, transport = make_session(drop_after_status_polls=0)
    await session.establish()

    with pytest.raises(TransportError) as exc_info:
        await session.request(ENDPOINT_CONFIG, build_get_status())

    assert exc_info.value.kind == TransportErrorKind.DISCONNECTED
    assert exc_info.value.origin == "transport"
    assert session.state == SessionState.CLOSED
    assert transport.closed


@pytest.mark.parametrize("kind", [TransportErrorKind.TIMEOUT, TransportErrorKind.SERVER_ERROR])
async def test_lost_reply_closes_session(kind):
    session, device, transport = make_session(transport_cls=LosesReplyTransport)
    await session.establish()
    transport.lose_next = kind

    with pytest.raises(TransportError) as first:
        await session.request(ENDPOINT_CONFIG, build_get_status())
    assert first.value.kind == kind

    # Cipher counters no longer match the device's
    assert device.status_polls == 1
    assert session.state == SessionState.CLOSED
    sent = len(transport.exchanges)

    with pytest.raises(SessionError) as exc_info:
        await session.request(ENDPOINT_CONFIG, build_get_status())
    assert exc_info.value.kind == SessionErrorKind.CLOSED
    assert len(transport.exchanges) == sent


async def test_plain_request_waits_for_inflight_request():
    session, _, transport = make_session()
    await session.establish()

    status, version = await asyncio.gather(
        session.request(ENDPOINT_CONFIG, build_get_status()),
        session.send_plain(ENDPOINT_VERSION, b"V0.2"),
    )

    assert status
    assert version == JSON_VERSION
    assert transport.max_active == 1


async def test_plain_request_before_establish():
    session, _, transport = make_session()

    version = await session.send_plain(ENDPOINT_VERSION, b"V0.2")

    assert version == JSON_VERSION
    assert session.state == SessionState.UNINITIALIZED
    assert transport.is_connected


async def test_plain_request_on_closed_session():
    session, _, transport = make_session()
    session.close()

    with pytest.raises(SessionError) as exc_info:
        await session.send_plain(ENDPOINT_VERSION, b"V0.2")

    assert exc_info.value.kind == SessionErrorKind.CLOSED
    assert transport.exchanges == []
