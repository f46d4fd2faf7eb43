"""
Provisioning protocol message builders and parsers.

Each request is a serialized protobuf message (see ``schema``); each
response carries an application ``Status``. Builders return raw bytes,
parsers take raw bytes and raise the layer's error on anything unexpected.
"""

from enum import IntEnum
from typing import Optional

from google.protobuf.message import DecodeError

from . import schema
from .errors import (
    ProvisionError,
    ProvisionErrorKind,
    SecurityError,
    SecurityErrorKind,
)
from .models import ConnectedInfo, WiFiScanResult, WifiStatusUpdate
from .schema import (
    Sec0MsgType,
    Sec1MsgType,
    SecSchemeVersion,
    Status,
    WifiAuthMode,
    WifiConnectFailedReason,
    WiFiConfigMsgType,
    WiFiScanMsgType,
    WifiStationState,
)


def _decode(message_cls, data: bytes, what: str):
    message = message_cls()
    try:
        message.ParseFromString(bytes(data))
    except DecodeError as e:
        raise ProvisionError(ProvisionErrorKind.BAD_RESPONSE, f"{what}: {e}") from e
    return message


def _expect(actual: int, expected: IntEnum, what: str) -> None:
    if actual != expected:
        raise ProvisionError(
            ProvisionErrorKind.BAD_RESPONSE,
            f"{what}: unexpected message type {actual}",
        )


def check_status(status: int, what: str) -> None:
    """Raise DEVICE_REJECTED unless the device reported Success."""
    if status == Status.SUCCESS:
        return
    try:
        text = Status(status).to_message()
    except ValueError:
        text = f"status {status}"
    raise ProvisionError(ProvisionErrorKind.DEVICE_REJECTED, f"{what}: {text}", status=status)


def _to_enum(enum_cls: type[IntEnum], value: int, what: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ProvisionError(ProvisionErrorKind.BAD_RESPONSE, f"{what}: {e}") from e


# =============================================================================
# Session establishment
# =============================================================================

def _decode_session(data: bytes, what: str):
    message = schema.SessionData()
    try:
        message.ParseFromString(bytes(data))
    except DecodeError as e:
        raise SecurityError(SecurityErrorKind.HANDSHAKE_MALFORMED, f"{what}: {e}") from e
    return message


def build_sec0_command() -> bytes:
    """Build the security-0 session command."""
    message = schema.SessionData()
    message.sec_ver = int(SecSchemeVersion.SEC_SCHEME_0)
    message.sec0.msg = int(Sec0MsgType.SESSION_COMMAND)
    message.sec0.sc.SetInParent()
    return message.SerializeToString()


def parse_sec0_response(data: bytes) -> None:
    """Verify the security-0 session response."""
    message = _decode_session(data, "Sec0 response")
    if (
        message.WhichOneof("proto") != "sec0"
        or message.sec0.msg != Sec0MsgType.SESSION_RESPONSE
    ):
        raise SecurityError(SecurityErrorKind.HANDSHAKE_MALFORMED, "Expected Sec0 session response")
    if message.sec0.sr.status != Status.SUCCESS:
        raise SecurityError(
            SecurityErrorKind.HANDSHAKE_MALFORMED,
            f"Device refused session: status {message.sec0.sr.status}",
        )


def build_sec1_command0(client_pubkey: bytes) -> bytes:
    """
    Build Session_Command0 carrying the client's public key.

    Format: SessionData{sec_ver=1, sec1{msg=Session_Command0, sc0{client_pubkey}}}
    """
    message = schema.SessionData()
    message.sec_ver = int(SecSchemeVersion.SEC_SCHEME_1)
    message.sec1.msg = int(Sec1MsgType.SESSION_COMMAND0)
    message.sec1.sc0.client_pubkey = client_pubkey
    return message.SerializeToString()


def parse_sec1_response0(data: bytes) -> tuple[bytes, bytes]:
    """
    Parse Session_Response0.

    Returns:
        Tuple of (device_pubkey, device_random)
    """
    message = _decode_session(data, "Session_Response0")
    if (
        message.WhichOneof("proto") != "sec1"
        or message.sec1.msg != Sec1MsgType.SESSION_RESPONSE0
    ):
        raise SecurityError(SecurityErrorKind.HANDSHAKE_MALFORMED, "Expected Session_Response0")

    resp = message.sec1.sr0
    if resp.status != Status.SUCCESS:
        raise SecurityError(
            SecurityErrorKind.HANDSHAKE_MALFORMED,
            f"Device refused session: status {resp.status}",
        )
    return bytes(resp.device_pubkey), bytes(resp.device_random)


def build_sec1_command1(client_verify: bytes) -> bytes:
    """Build Session_Command1 carrying the encrypted device public key."""
    message = schema.SessionData()
    message.sec_ver = int(SecSchemeVersion.SEC_SCHEME_1)
    message.sec1.msg = int(Sec1MsgType.SESSION_COMMAND1)
    message.sec1.sc1.client_verify_data = client_verify
    return message.SerializeToString()


def parse_sec1_response1(data: bytes) -> bytes:
    """
    Parse Session_Response1.

    Returns:
        The encrypted device verify data

    Raises:
        SecurityError: AUTH_FAILED when the device rejected our verify data
    """
    message = _decode_session(data, "Session_Response1")
    if (
        message.WhichOneof("proto") != "sec1"
        or message.sec1.msg != Sec1MsgType.SESSION_RESPONSE1
    ):
        raise SecurityError(SecurityErrorKind.HANDSHAKE_MALFORMED, "Expected Session_Response1")

    resp = message.sec1.sr1
    if resp.status != Status.SUCCESS:
        raise SecurityError(
            SecurityErrorKind.AUTH_FAILED,
            f"Device rejected verification: status {resp.status}",
        )
    return bytes(resp.device_verify_data)


# =============================================================================
# Wi-Fi configuration
# =============================================================================

def build_get_status() -> bytes:
    message = schema.WiFiConfigPayload()
    message.msg = int(WiFiConfigMsgType.CMD_GET_STATUS)
    message.cmd_get_status.SetInParent()
    return message.SerializeToString()


def parse_get_status(data: bytes) -> WifiStatusUpdate:
    """
    Parse RespGetStatus into a (non-terminal) status observation.

    The caller decides whether the observed state ends polling.
    """
    message = _decode(schema.WiFiConfigPayload, data, "RespGetStatus")
    _expect(message.msg, WiFiConfigMsgType.RESP_GET_STATUS, "RespGetStatus")

    resp = message.resp_get_status
    check_status(resp.status, "Get Wi-Fi status")

    update = WifiStatusUpdate(state=_to_enum(WifiStationState, resp.sta_state, "sta_state"))
    which = resp.WhichOneof("state")
    if which == "fail_reason":
        update.fail_reason = _to_enum(WifiConnectFailedReason, resp.fail_reason, "fail_reason")
    elif which == "connected":
        conn = resp.connected
        update.connected = ConnectedInfo(
            ip4_addr=conn.ip4_addr,
            ssid=bytes(conn.ssid).decode("utf-8", errors="replace"),
            bssid=bytes(conn.bssid),
            channel=conn.channel,
            auth_mode=_to_enum(WifiAuthMode, conn.auth_mode, "auth_mode"),
        )
    return update


def build_set_config(
    ssid: str,
    passphrase: str,
    bssid: Optional[bytes] = None,
    channel: int = 0,
) -> bytes:
    """Build CmdSetConfig with the station credentials."""
    message = schema.WiFiConfigPayload()
    message.msg = int(WiFiConfigMsgType.CMD_SET_CONFIG)
    cmd = message.cmd_set_config
    cmd.ssid = ssid.encode("utf-8")
    cmd.passphrase = passphrase.encode("utf-8")
    if bssid:
        cmd.bssid = bssid
    cmd.channel = channel
    return message.SerializeToString()


def parse_set_config(data: bytes) -> Status:
    """Parse RespSetConfig and return its status (any value)."""
    message = _decode(schema.WiFiConfigPayload, data, "RespSetConfig")
    _expect(message.msg, WiFiConfigMsgType.RESP_SET_CONFIG, "RespSetConfig")
    return _to_enum(Status, message.resp_set_config.status, "status")


def build_apply_config() -> bytes:
    message = schema.WiFiConfigPayload()
    message.msg = int(WiFiConfigMsgType.CMD_APPLY_CONFIG)
    message.cmd_apply_config.SetInParent()
    return message.SerializeToString()


def parse_apply_config(data: bytes) -> Status:
    """Parse RespApplyConfig and return its status (any value)."""
    message = _decode(schema.WiFiConfigPayload, data, "RespApplyConfig")
    _expect(message.msg, WiFiConfigMsgType.RESP_APPLY_CONFIG, "RespApplyConfig")
    return _to_enum(Status, message.resp_apply_config.status, "status")


# =============================================================================
# Custom application data
# =============================================================================

def build_custom_config(entries: dict[str, str]) -> bytes:
    """Build CustomConfigRequest from a string mapping."""
    message = schema.CustomConfigRequest()
    for key, value in entries.items():
        entry = message.entries.add()
        entry.key = key
        entry.value = value
    return message.SerializeToString()


def parse_custom_config(data: bytes) -> Status:
    message = _decode(schema.CustomConfigResponse, data, "CustomConfigResponse")
    return _to_enum(Status, message.status, "status")


# =============================================================================
# Wi-Fi scan
# =============================================================================

def _decode_scan(data: bytes, expected: WiFiScanMsgType, what: str):
    message = _decode(schema.WiFiScanPayload, data, what)
    _expect(message.msg, expected, what)
    check_status(message.status, what)
    return message


def build_scan_start(
    blocking: bool = True,
    passive: bool = False,
    group_channels: int = 0,
    period_ms: int = 120,
) -> bytes:
    message = schema.WiFiScanPayload()
    message.msg = int(WiFiScanMsgType.CMD_SCAN_START)
    cmd = message.cmd_scan_start
    cmd.blocking = blocking
    cmd.passive = passive
    cmd.group_channels = group_channels
    cmd.period_ms = period_ms
    return message.SerializeToString()


def parse_scan_start(data: bytes) -> None:
    _decode_scan(data, WiFiScanMsgType.RESP_SCAN_START, "RespScanStart")


def build_scan_status() -> bytes:
    message = schema.WiFiScanPayload()
    message.msg = int(WiFiScanMsgType.CMD_SCAN_STATUS)
    message.cmd_scan_status.SetInParent()
    return message.SerializeToString()


def parse_scan_status(data: bytes) -> tuple[bool, int]:
    """
    Parse RespScanStatus.

    Returns:
        Tuple of (scan_finished, result_count)
    """
    message = _decode_scan(data, WiFiScanMsgType.RESP_SCAN_STATUS, "RespScanStatus")
    resp = message.resp_scan_status
    return resp.scan_finished, resp.result_count


def build_scan_result(start_index: int, count: int) -> bytes:
    message = schema.WiFiScanPayload()
    message.msg = int(WiFiScanMsgType.CMD_SCAN_RESULT)
    message.cmd_scan_result.start_index = start_index
    message.cmd_scan_result.count = count
    return message.SerializeToString()


def parse_scan_result(data: bytes) -> list[WiFiScanResult]:
    """Parse one page of RespScanResult entries."""
    message = _decode_scan(data, WiFiScanMsgType.RESP_SCAN_RESULT, "RespScanResult")

    results = []
    for entry in message.resp_scan_result.entries:
        # RSSI is a signed 8-bit reading on the device
        rssi = max(-128, min(0, entry.rssi))
        results.append(WiFiScanResult(
            ssid=bytes(entry.ssid).decode("utf-8", errors="replace"),
            bssid=bytes(entry.bssid),
            rssi=rssi,
            channel=entry.channel & 0xFF,
            auth=_to_enum(WifiAuthMode, entry.auth, "auth"),
        ))
    return results
