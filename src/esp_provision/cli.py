"""
Command-line provisioning client.

Queries the device version, establishes a session, optionally lists the
networks the device can see, and provisions Wi-Fi credentials.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from .config import (
    DEFAULT_BASE_URL,
    DEFAULT_BLE_ENDPOINTS,
    DEFAULT_BLE_SCAN_TIMEOUT,
    DEFAULT_DEVICE_NAME_PREFIX,
    DEFAULT_SOFTAP_ENDPOINTS,
    BLEConfig,
    ProvisionConfig,
    SoftAPConfig,
    load_endpoint_map,
)
from .errors import ProvisioningError
from .models import WifiConfig, WifiStatusUpdate
from .provision import CAP_NO_SEC, query_version
from .provisioner import Provisioner
from .security import security_for
from .transport import BLETransport, SoftAPTransport, Transport

logger = logging.getLogger(__name__)


@dataclass
class Result:
    """Operation result."""
    success: bool
    message: str


def parse_extra(pairs: Optional[list[str]]) -> Optional[dict[str, str]]:
    """Parse key=value arguments into a mapping."""
    if not pairs:
        return None
    extra = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{pair}'")
        extra[key] = value
    return extra


def build_transport(args: argparse.Namespace) -> Transport:
    if args.transport == "softap":
        endpoints = dict(DEFAULT_SOFTAP_ENDPOINTS)
        if args.endpoints:
            endpoints = load_endpoint_map(args.endpoints, endpoints)
        return SoftAPTransport(SoftAPConfig(
            base_url=args.base_url,
            timeout=args.timeout,
            endpoints=endpoints,
        ))

    endpoints = dict(DEFAULT_BLE_ENDPOINTS)
    if args.endpoints:
        endpoints = load_endpoint_map(args.endpoints, endpoints)
    return BLETransport(BLEConfig(
        device_name_prefix=args.name_prefix,
        scan_timeout=args.scan_timeout,
        timeout=args.timeout,
        address=args.address,
        endpoints=endpoints,
    ))


def print_networks(provisioner: Provisioner, outcome) -> None:
    if not outcome.results:
        print("No networks found, enter the SSID manually with --ssid")
        return
    print(f"\nFound {len(outcome.results)} network(s):")
    for network in outcome.sorted_results():
        lock = " " if network.is_open and not provisioner.force_authentication else "*"
        print(
            f"  {lock} {network.ssid:<32} {network.rssi:>4} dBm  ch {network.channel:<3}"
            f" {network.signal.value:<6} {network.auth.name}"
        )


async def run_provisioning(args: argparse.Namespace) -> Result:
    transport = build_transport(args)
    provisioner: Optional[Provisioner] = None

    try:
        await transport.ensure_connected()

        # Version query goes out before the session so it can pick the scheme
        version = await query_version(transport)

        sec = args.sec
        if sec is None:
            sec = 0 if version.has_capability(CAP_NO_SEC) else 1
        logger.info(f"Using security scheme {sec}")

        provisioner = Provisioner(transport, security_for(sec, args.pop), ProvisionConfig(
            poll_interval=args.poll_interval,
        ))
        provisioner.use_version(version)

        await provisioner.establish_session()

        if args.scan or not args.ssid:
            outcome = await provisioner.scan_wifi()
            if outcome.error is not None:
                logger.warning(f"Scan failed: {outcome.error.message}")
            print_networks(provisioner, outcome)
            if not args.ssid:
                return Result(success=True, message="Scan complete")

        passphrase = args.passphrase or ""
        if not passphrase and provisioner.requires_passphrase(args.ssid):
            return Result(success=False, message=f"A passphrase is required for '{args.ssid}'")

        def on_update(update: WifiStatusUpdate) -> None:
            if not update.terminal:
                print(f"  ... {update.to_message()}")

        wifi = WifiConfig(ssid=args.ssid, passphrase=passphrase, extra=parse_extra(args.extra))
        final = await provisioner.provision_config(wifi, wifi_state_callback=on_update)
        if final.succeeded and final.connected is not None:
            return Result(success=True, message=f"Device connected to {args.ssid} ({final.connected.ip4_addr})")
        return Result(success=final.succeeded, message=final.to_message())

    except ProvisioningError as e:
        logger.error(f"[{e.origin}] {e.message}")
        return Result(success=False, message=e.message)
    finally:
        if provisioner is not None:
            await provisioner.close()
        else:
            await transport.disconnect()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provision Wi-Fi credentials to a device")
    parser.add_argument(
        "transport",
        choices=["softap", "ble"],
        help="How to reach the device",
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"SoftAP host:port of the device (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--name-prefix",
        default=DEFAULT_DEVICE_NAME_PREFIX,
        help=f"BLE device name prefix (default: {DEFAULT_DEVICE_NAME_PREFIX})",
    )
    parser.add_argument("--address", help="BLE address to connect to directly")
    parser.add_argument(
        "--scan-timeout",
        type=float,
        default=DEFAULT_BLE_SCAN_TIMEOUT,
        help="BLE discovery timeout in seconds",
    )
    parser.add_argument("--timeout", type=float, default=5.0, help="Request timeout in seconds")
    parser.add_argument("--endpoints", help="JSON file mapping endpoint names to paths/UUIDs")
    parser.add_argument(
        "--sec",
        type=int,
        choices=[0, 1],
        help="Security scheme (default: chosen from device capabilities)",
    )
    parser.add_argument("--pop", help="Proof of possession")
    parser.add_argument("--scan", action="store_true", help="List networks seen by the device")
    parser.add_argument("--ssid", help="Network to join")
    parser.add_argument("--passphrase", help="Network passphrase")
    parser.add_argument(
        "--extra",
        nargs="*",
        metavar="KEY=VALUE",
        help="Custom configuration entries sent before the credentials",
    )
    parser.add_argument("--poll-interval", type=float, default=2.0, help="Wi-Fi status poll interval")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


async def main(args: argparse.Namespace) -> int:
    """
    Main entry point for the client.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        parse_extra(args.extra)
    except ValueError as e:
        logger.error(str(e))
        return 1

    result = await run_provisioning(args)

    print()
    if result.success:
        print(f"✓ {result.message}")
        return 0
    else:
        print(f"✗ {result.message}")
        return 1


def run() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(main(args)))
