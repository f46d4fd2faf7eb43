"""
Protocol message schema shared with the device firmware.

The messages are protobuf messages in the ``espressif`` package. Instead of
shipping generated modules, the file descriptor is assembled here at import
time and message classes are produced from it by the protobuf runtime.
Only field numbers and types matter on the wire.

Enums are declared once as Python ``IntEnum`` classes and the matching
protobuf enums are generated from them.
"""

from enum import IntEnum
from typing import Optional

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "espressif"

_F = descriptor_pb2.FieldDescriptorProto


# =============================================================================
# Enums
# =============================================================================

class Status(IntEnum):
    """Application-level status present in every device response."""
    SUCCESS = 0
    INVALID_SEC_SCHEME = 1
    INVALID_PROTO = 2
    TOO_MANY_SESSIONS = 3
    INVALID_ARGUMENT = 4
    INTERNAL_ERROR = 5
    CRYPTO_ERROR = 6
    INVALID_SESSION = 7

    def to_message(self) -> str:
        """Convert status to user-friendly message."""
        messages = {
            Status.SUCCESS: "Success",
            Status.INVALID_SEC_SCHEME: "Unsupported security scheme",
            Status.INVALID_PROTO: "Invalid protocol message",
            Status.TOO_MANY_SESSIONS: "Device is busy with another session",
            Status.INVALID_ARGUMENT: "Invalid argument",
            Status.INTERNAL_ERROR: "Device internal error",
            Status.CRYPTO_ERROR: "Device crypto error",
            Status.INVALID_SESSION: "Invalid session",
        }
        return messages.get(self, f"Unknown status: {self}")


class WifiStationState(IntEnum):
    CONNECTED = 0
    CONNECTING = 1
    DISCONNECTED = 2
    CONNECTION_FAILED = 3


class WifiConnectFailedReason(IntEnum):
    AUTH_ERROR = 0
    NETWORK_NOT_FOUND = 1

    def to_message(self) -> str:
        """Convert reason to user-friendly message."""
        messages = {
            WifiConnectFailedReason.AUTH_ERROR: "Wi-Fi authentication failed",
            WifiConnectFailedReason.NETWORK_NOT_FOUND: "Wi-Fi network not found",
        }
        return messages.get(self, f"Unknown reason: {self}")


class WifiAuthMode(IntEnum):
    OPEN = 0
    WEP = 1
    WPA_PSK = 2
    WPA2_PSK = 3
    WPA_WPA2_PSK = 4
    WPA2_ENTERPRISE = 5
    WPA3_PSK = 6
    WPA2_WPA3_PSK = 7


class SecSchemeVersion(IntEnum):
    SEC_SCHEME_0 = 0
    SEC_SCHEME_1 = 1


class Sec0MsgType(IntEnum):
    SESSION_COMMAND = 0
    SESSION_RESPONSE = 1


class Sec1MsgType(IntEnum):
    SESSION_COMMAND0 = 0
    SESSION_RESPONSE0 = 1
    SESSION_COMMAND1 = 2
    SESSION_RESPONSE1 = 3


class WiFiConfigMsgType(IntEnum):
    CMD_GET_STATUS = 0
    RESP_GET_STATUS = 1
    CMD_SET_CONFIG = 2
    RESP_SET_CONFIG = 3
    CMD_APPLY_CONFIG = 4
    RESP_APPLY_CONFIG = 5


class WiFiScanMsgType(IntEnum):
    CMD_SCAN_START = 0
    RESP_SCAN_START = 1
    CMD_SCAN_STATUS = 2
    RESP_SCAN_STATUS = 3
    CMD_SCAN_RESULT = 4
    RESP_SCAN_RESULT = 5


# =============================================================================
# Descriptor assembly
# =============================================================================

_FILE = descriptor_pb2.FileDescriptorProto(
    name="esp_provision.proto",
    package=PACKAGE,
    syntax="proto3",
)


def _add_enum(enum_cls: type[IntEnum]) -> None:
    proto_enum = _FILE.enum_type.add(name=enum_cls.__name__)
    for member in enum_cls:
        # Value names share the package scope, so qualify them with the enum
        proto_enum.value.add(name=f"{enum_cls.__name__}_{member.name}", number=int(member))


def _field(
    name: str,
    number: int,
    kind: int,
    type_name: Optional[str] = None,
    repeated: bool = False,
    oneof: Optional[str] = None,
) -> dict:
    return {
        "name": name,
        "number": number,
        "kind": kind,
        "type_name": type_name,
        "repeated": repeated,
        "oneof": oneof,
    }


def _enum_field(name: str, number: int, enum_cls: type[IntEnum], **kwargs) -> dict:
    return _field(name, number, _F.TYPE_ENUM, type_name=enum_cls.__name__, **kwargs)


def _msg_field(name: str, number: int, message_name: str, **kwargs) -> dict:
    return _field(name, number, _F.TYPE_MESSAGE, type_name=message_name, **kwargs)


def _add_message(name: str, *fields: dict) -> None:
    message = _FILE.message_type.add(name=name)
    oneofs: list[str] = []

    for field_def in fields:
        proto_field = message.field.add(
            name=field_def["name"],
            number=field_def["number"],
            type=field_def["kind"],
            label=_F.LABEL_REPEATED if field_def["repeated"] else _F.LABEL_OPTIONAL,
        )
        if field_def["type_name"]:
            proto_field.type_name = f".{PACKAGE}.{field_def['type_name']}"
        if field_def["oneof"]:
            if field_def["oneof"] not in oneofs:
                oneofs.append(field_def["oneof"])
                message.oneof_decl.add(name=field_def["oneof"])
            proto_field.oneof_index = oneofs.index(field_def["oneof"])


for _enum_cls in (
    Status,
    WifiStationState,
    WifiConnectFailedReason,
    WifiAuthMode,
    SecSchemeVersion,
    Sec0MsgType,
    Sec1MsgType,
    WiFiConfigMsgType,
    WiFiScanMsgType,
):
    _add_enum(_enum_cls)

# Shared
_add_message(
    "WifiConnectedState",
    _field("ip4_addr", 1, _F.TYPE_STRING),
    _enum_field("auth_mode", 2, WifiAuthMode),
    _field("ssid", 3, _F.TYPE_BYTES),
    _field("bssid", 4, _F.TYPE_BYTES),
    _field("channel", 5, _F.TYPE_INT32),
)

# Security 0
_add_message("S0SessionCmd")
_add_message("S0SessionResp", _enum_field("status", 1, Status))
_add_message(
    "Sec0Payload",
    _enum_field("msg", 1, Sec0MsgType),
    _msg_field("sc", 20, "S0SessionCmd", oneof="payload"),
    _msg_field("sr", 21, "S0SessionResp", oneof="payload"),
)

# Security 1
_add_message("SessionCmd0", _field("client_pubkey", 1, _F.TYPE_BYTES))
_add_message(
    "SessionResp0",
    _enum_field("status", 1, Status),
    _field("device_pubkey", 2, _F.TYPE_BYTES),
    _field("device_random", 3, _F.TYPE_BYTES),
)
_add_message("SessionCmd1", _field("client_verify_data", 2, _F.TYPE_BYTES))
_add_message(
    "SessionResp1",
    _enum_field("status", 1, Status),
    _field("device_verify_data", 3, _F.TYPE_BYTES),
)
_add_message(
    "Sec1Payload",
    _enum_field("msg", 1, Sec1MsgType),
    _msg_field("sc0", 20, "SessionCmd0", oneof="payload"),
    _msg_field("sr0", 21, "SessionResp0", oneof="payload"),
    _msg_field("sc1", 22, "SessionCmd1", oneof="payload"),
    _msg_field("sr1", 23, "SessionResp1", oneof="payload"),
)

_add_message(
    "SessionData",
    _enum_field("sec_ver", 2, SecSchemeVersion),
    _msg_field("sec0", 10, "Sec0Payload", oneof="proto"),
    _msg_field("sec1", 11, "Sec1Payload", oneof="proto"),
)

# Wi-Fi configuration
_add_message("CmdGetStatus")
_add_message(
    "RespGetStatus",
    _enum_field("status", 1, Status),
    _enum_field("sta_state", 2, WifiStationState),
    _enum_field("fail_reason", 10, WifiConnectFailedReason, oneof="state"),
    _msg_field("connected", 11, "WifiConnectedState", oneof="state"),
)
_add_message(
    "CmdSetConfig",
    _field("ssid", 1, _F.TYPE_BYTES),
    _field("passphrase", 2, _F.TYPE_BYTES),
    _field("bssid", 3, _F.TYPE_BYTES),
    _field("channel", 4, _F.TYPE_INT32),
)
_add_message("RespSetConfig", _enum_field("status", 1, Status))
_add_message("CmdApplyConfig")
_add_message("RespApplyConfig", _enum_field("status", 1, Status))
_add_message(
    "WiFiConfigPayload",
    _enum_field("msg", 1, WiFiConfigMsgType),
    _msg_field("cmd_get_status", 10, "CmdGetStatus", oneof="payload"),
    _msg_field("resp_get_status", 11, "RespGetStatus", oneof="payload"),
    _msg_field("cmd_set_config", 12, "CmdSetConfig", oneof="payload"),
    _msg_field("resp_set_config", 13, "RespSetConfig", oneof="payload"),
    _msg_field("cmd_apply_config", 14, "CmdApplyConfig", oneof="payload"),
    _msg_field("resp_apply_config", 15, "RespApplyConfig", oneof="payload"),
)

# Wi-Fi scan
_add_message(
    "CmdScanStart",
    _field("blocking", 1, _F.TYPE_BOOL),
    _field("passive", 2, _F.TYPE_BOOL),
    _field("group_channels", 3, _F.TYPE_UINT32),
    _field("period_ms", 4, _F.TYPE_UINT32),
)
_add_message("RespScanStart")
_add_message("CmdScanStatus")
_add_message(
    "RespScanStatus",
    _field("scan_finished", 1, _F.TYPE_BOOL),
    _field("result_count", 2, _F.TYPE_UINT32),
)
_add_message(
    "CmdScanResult",
    _field("start_index", 1, _F.TYPE_UINT32),
    _field("count", 2, _F.TYPE_UINT32),
)
_add_message(
    "WiFiScanResult",
    _field("ssid", 1, _F.TYPE_BYTES),
    _field("channel", 2, _F.TYPE_UINT32),
    _field("rssi", 3, _F.TYPE_INT32),
    _field("bssid", 4, _F.TYPE_BYTES),
    _enum_field("auth", 5, WifiAuthMode),
)
_add_message("RespScanResult", _msg_field("entries", 1, "WiFiScanResult", repeated=True))
_add_message(
    "WiFiScanPayload",
    _enum_field("msg", 1, WiFiScanMsgType),
    _enum_field("status", 2, Status),
    _msg_field("cmd_scan_start", 10, "CmdScanStart", oneof="payload"),
    _msg_field("resp_scan_start", 11, "RespScanStart", oneof="payload"),
    _msg_field("cmd_scan_status", 12, "CmdScanStatus", oneof="payload"),
    _msg_field("resp_scan_status", 13, "RespScanStatus", oneof="payload"),
    _msg_field("cmd_scan_result", 14, "CmdScanResult", oneof="payload"),
    _msg_field("resp_scan_result", 15, "RespScanResult", oneof="payload"),
)

# Custom application data
_add_message(
    "CustomConfigEntry",
    _field("key", 1, _F.TYPE_STRING),
    _field("value", 2, _F.TYPE_STRING),
)
_add_message(
    "CustomConfigRequest",
    _msg_field("entries", 1, "CustomConfigEntry", repeated=True),
)
_add_message("CustomConfigResponse", _enum_field("status", 1, Status))

_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_FILE.SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


# =============================================================================
# Message classes
# =============================================================================

WifiConnectedState = _message_class("WifiConnectedState")

SessionData = _message_class("SessionData")
Sec0Payload = _message_class("Sec0Payload")
Sec1Payload = _message_class("Sec1Payload")

WiFiConfigPayload = _message_class("WiFiConfigPayload")

WiFiScanPayload = _message_class("WiFiScanPayload")
WiFiScanResult = _message_class("WiFiScanResult")

CustomConfigRequest = _message_class("CustomConfigRequest")
CustomConfigResponse = _message_class("CustomConfigResponse")
