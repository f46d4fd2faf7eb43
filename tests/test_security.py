import pytest

from esp_provision import (
    SecurityError,
    SecurityErrorKind,
    Security0,
    Security1,
    security_for,
)
from esp_provision.security import derive_session_key, pop_digest, public_bytes

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from fakes import FakeDevice, FakeTransport


async def established_sec1(pop="abcd1234"):
    device = FakeDevice(pop=pop)
    transport = FakeTransport(device)
    await transport.connect()
    security = Security1(pop)
    await security.handshake(transport)
    return security, device, transport


async def test_sec1_handshake_establishes():
    security, _, transport = await established_sec1()

    assert security.established
    assert [path for path, _ in transport.exchanges] == ["prov-session", "prov-session"]


async def test_encrypt_decrypt_round_trip():
    security, _, _ = await established_sec1()

    for message in [b"", b"x", b"hello world" * 10, bytes(range(256))]:
        assert security.decrypt(security.encrypt(message)) == message


async def test_identical_plaintexts_encrypt_differently():
    security, _, _ = await established_sec1()

    first = security.encrypt(b"same payload")
    second = security.encrypt(b"same payload")

    assert first != second
    assert first != b"same payload"


async def test_device_decrypts_client_traffic():
    security, device, _ = await established_sec1()

    assert device.decrypt(security.encrypt(b"ping")) == b"ping"
    assert security.decrypt(device.encrypt(b"pong")) == b"pong"


@pytest.mark.parametrize("verify_client,http_error", [
    (True, False),   # device reports a non-success status
    (True, True),    # device fails the HTTP exchange
    (False, False),  # device answers; client detects the mismatch
])
async def test_wrong_pop_fails_authentication(verify_client, http_error):
    device = FakeDevice(pop="correct-pop", verify_client=verify_client, reject_with_http_error=http_error)
    transport = FakeTransport(device)
    await transport.connect()
    security = Security1("wrong-pop")

    with pytest.raises(SecurityError) as exc_info:
        await security.handshake(transport)

    assert exc_info.value.kind == SecurityErrorKind.AUTH_FAILED
    assert exc_info.value.origin == "security"
    assert not security.established


async def test_missing_pop_fails_when_device_requires_one():
    device = FakeDevice(pop="device-pop")
    transport = FakeTransport(device)
    await transport.connect()

    with pytest.raises(SecurityError) as exc_info:
        await Security1().handshake(transport)

    assert exc_info.value.kind == SecurityErrorKind.AUTH_FAILED


async def test_second_handshake_is_refused():
    security, _, transport = await established_sec1()

    with pytest.raises(SecurityError):
        await security.handshake(transport)


async def test_sec0_passes_payloads_through():
    device = FakeDevice(sec=0)
    transport = FakeTransport(device)
    await transport.connect()
    security = Security0()

    await security.handshake(transport)

    assert security.established
    assert security.encrypt(b"plain") == b"plain"
    assert security.decrypt(b"plain") == b"plain"


def test_encrypt_requires_handshake():
    with pytest.raises(SecurityError):
        Security1("pop").encrypt(b"data")


def test_derived_keys_match_on_both_sides():
    client = X25519PrivateKey.generate()
    device = X25519PrivateKey.generate()

    client_key = derive_session_key(client, public_bytes(device), b"pop")
    device_key = derive_session_key(device, public_bytes(client), b"pop")

    assert client_key == device_key
    assert len(client_key) == 32
    assert client_key != derive_session_key(client, public_bytes(device))


def test_derive_rejects_short_public_key():
    with pytest.raises(ValueError):
        derive_session_key(X25519PrivateKey.generate(), b"short")


def test_pop_digest_is_sha256():
    assert pop_digest(b"abc").hex() == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_security_for():
    assert isinstance(security_for(0), Security0)
    assert isinstance(security_for(1, "pop"), Security1)
    assert security_for(1, "pop").pop == b"pop"
    with pytest.raises(ValueError):
        security_for(2)
