"""
Session security schemes.

Security0 sends everything in the clear. Security1 performs an X25519 key
exchange mixed with a proof-of-possession (PoP) digest and then encrypts
each payload with AES-256-CTR. Each direction keeps its own CTR stream, both
seeded with the device random, so the counter advances monotonically per
direction.

Because both streams start from the same counter, the n-th request and the
n-th response share a keystream; XORing the two ciphertexts yields the XOR
of the plaintexts. The device firmware derives its streams the same way.
"""

import logging
from typing import Optional, Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .config import ENDPOINT_SESSION
from .errors import (
    SecurityError,
    SecurityErrorKind,
    TransportError,
    TransportErrorKind,
)
from .protocol import (
    build_sec0_command,
    build_sec1_command0,
    build_sec1_command1,
    parse_sec0_response,
    parse_sec1_response0,
    parse_sec1_response1,
)

logger = logging.getLogger(__name__)

# Constants
KEY_SIZE = 32         # X25519 shared secret / AES-256 key
PUBLIC_KEY_SIZE = 32
RANDOM_SIZE = 16      # Device random, used as the initial CTR block


class Exchanger(Protocol):
    """Anything that can carry one request/response round trip."""

    async def send_receive(self, path: str, payload: bytes, timeout: Optional[float] = None) -> bytes:
        ...


def public_bytes(private_key: X25519PrivateKey) -> bytes:
    """Raw 32-byte public key for a private key."""
    return private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def pop_digest(pop: bytes) -> bytes:
    """SHA-256 of the proof of possession."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(pop)
    return digest.finalize()


def derive_session_key(
    private_key: X25519PrivateKey,
    peer_public_key: bytes,
    pop: Optional[bytes] = None,
) -> bytes:
    """
    Derive the symmetric session key.

    Args:
        private_key: Our ephemeral X25519 key
        peer_public_key: The peer's raw 32-byte public key
        pop: Optional proof of possession

    Returns:
        32-byte key: shared secret, XORed with SHA-256(pop) when a PoP is used

    Raises:
        ValueError: If the peer key is invalid
    """
    if len(peer_public_key) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes")

    shared = private_key.exchange(X25519PublicKey.from_public_bytes(peer_public_key))
    if pop:
        shared = bytes(a ^ b for a, b in zip(shared, pop_digest(pop)))
    return shared


def new_stream(key: bytes, initial_counter: bytes):
    """AES-256-CTR keystream context starting at the given counter block."""
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes")
    if len(initial_counter) != RANDOM_SIZE:
        raise ValueError(f"Counter block must be {RANDOM_SIZE} bytes")
    return Cipher(algorithms.AES(key), modes.CTR(initial_counter)).encryptor()


class Security:
    """Base class for session security schemes."""

    name = "base"

    def __init__(self):
        self._established = False

    @property
    def established(self) -> bool:
        return self._established

    async def handshake(self, transport: Exchanger) -> None:
        raise NotImplementedError

    def encrypt(self, plaintext: bytes) -> bytes:
        raise NotImplementedError

    def decrypt(self, ciphertext: bytes) -> bytes:
        raise NotImplementedError

    def _ensure_not_established(self) -> None:
        if self._established:
            raise SecurityError(
                SecurityErrorKind.HANDSHAKE_MALFORMED,
                "Session key already established; start a new session",
            )

    def _ensure_established(self) -> None:
        if not self._established:
            raise SecurityError(SecurityErrorKind.HANDSHAKE_MALFORMED, "Handshake not completed")


class Security0(Security):
    """No encryption; a single round trip announces the scheme."""

    name = "sec0"

    async def handshake(self, transport: Exchanger) -> None:
        self._ensure_not_established()
        logger.info("Starting Sec0 session handshake")
        response = await transport.send_receive(ENDPOINT_SESSION, build_sec0_command())
        parse_sec0_response(response)
        self._established = True
        logger.info("Sec0 session established")

    def encrypt(self, plaintext: bytes) -> bytes:
        self._ensure_established()
        return bytes(plaintext)

    def decrypt(self, ciphertext: bytes) -> bytes:
        self._ensure_established()
        return bytes(ciphertext)


class Security1(Security):
    """
    X25519 + PoP + AES-256-CTR.

    Handshake:
        1. -> Session_Command0{client_pubkey}
           <- Session_Response0{device_pubkey, device_random}
        2. key = X25519(client, device) XOR SHA256(pop)
        3. -> Session_Command1{Enc(device_pubkey)}
           <- Session_Response1{Enc(client_pubkey)}
        4. The decrypted device verify data must equal client_pubkey.
    """

    name = "sec1"

    def __init__(self, pop: Optional[str | bytes] = None):
        super().__init__()
        if isinstance(pop, str):
            pop = pop.encode("utf-8")
        self.pop = pop or None
        self._tx = None
        self._rx = None

    async def handshake(self, transport: Exchanger) -> None:
        self._ensure_not_established()
        logger.info(f"Starting Sec1 session handshake (PoP: {'yes' if self.pop else 'no'})")

        private_key = X25519PrivateKey.generate()
        client_pubkey = public_bytes(private_key)
        logger.debug(f"Client public key: {client_pubkey.hex()}")

        # Step 1: exchange public keys
        response = await transport.send_receive(ENDPOINT_SESSION, build_sec1_command0(client_pubkey))
        device_pubkey, device_random = parse_sec1_response0(response)
        logger.debug(f"Device public key: {device_pubkey.hex()}")
        logger.debug(f"Device random: {device_random.hex()}")

        if len(device_random) != RANDOM_SIZE:
            raise SecurityError(
                SecurityErrorKind.HANDSHAKE_MALFORMED,
                f"Device random must be {RANDOM_SIZE} bytes, got {len(device_random)}",
            )

        # Step 2: derive key
        try:
            key = derive_session_key(private_key, device_pubkey, self.pop)
        except ValueError as e:
            raise SecurityError(SecurityErrorKind.HANDSHAKE_MALFORMED, str(e)) from e

        tx = new_stream(key, device_random)
        rx = new_stream(key, device_random)

        # Step 3: prove we hold the key
        client_verify = tx.update(device_pubkey)
        try:
            response = await transport.send_receive(ENDPOINT_SESSION, build_sec1_command1(client_verify))
        except TransportError as e:
            # Devices reject a bad verify by failing the exchange itself
            if e.kind == TransportErrorKind.SERVER_ERROR:
                raise SecurityError(SecurityErrorKind.AUTH_FAILED, e.message) from e
            raise
        device_verify = parse_sec1_response1(response)

        # Step 4: check the device proved the same key
        if rx.update(device_verify) != client_pubkey:
            logger.error("Device verification mismatch - wrong proof of possession?")
            raise SecurityError(SecurityErrorKind.AUTH_FAILED, "Verification data mismatch")

        self._tx = tx
        self._rx = rx
        self._established = True
        logger.info("Sec1 session established")

    def encrypt(self, plaintext: bytes) -> bytes:
        self._ensure_established()
        return self._tx.update(plaintext)

    def decrypt(self, ciphertext: bytes) -> bytes:
        self._ensure_established()
        return self._rx.update(ciphertext)


def security_for(version: int, pop: Optional[str] = None) -> Security:
    """
    Create the security scheme for a version number.

    Raises:
        ValueError: For unsupported versions
    """
    if version == 0:
        return Security0()
    if version == 1:
        return Security1(pop)
    raise ValueError(f"Unsupported security version: {version}")
