import pytest

from esp_provision import BLETransport, SoftAPTransport
from esp_provision.cli import build_parser, build_transport, parse_extra


def test_parse_extra():
    assert parse_extra(None) is None
    assert parse_extra(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}
    with pytest.raises(ValueError):
        parse_extra(["novalue"])


def test_build_softap_transport():
    args = build_parser().parse_args(["softap", "--base-url", "10.0.0.1:8080", "--timeout", "3"])

    transport = build_transport(args)

    assert isinstance(transport, SoftAPTransport)
    assert transport.base_url == "http://10.0.0.1:8080"
    assert transport.timeout == 3.0


def test_build_ble_transport():
    args = build_parser().parse_args(["ble", "--name-prefix", "DEV_", "--sec", "1", "--pop", "abc"])

    transport = build_transport(args)

    assert isinstance(transport, BLETransport)
    assert transport.config.device_name_prefix == "DEV_"
    assert transport.config.scan_timeout == 2.0
    assert args.pop == "abc"
