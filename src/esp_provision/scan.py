"""
Wi-Fi access point scan performed by the device.

Flow:
    1. CmdScanStart
    2. CmdScanStatus until the scan is finished
    3. CmdScanResult pages until result_count entries were fetched
"""

import asyncio
import logging
from typing import Callable, Optional

from .config import ENDPOINT_SCAN, ProvisionConfig
from .errors import ProvisionError, ProvisioningError, ScanError
from .models import ScanOutcome, WiFiScanResult
from .protocol import (
    build_scan_result,
    build_scan_start,
    build_scan_status,
    parse_scan_result,
    parse_scan_start,
    parse_scan_status,
)
from .session import Session

logger = logging.getLogger(__name__)

ScanCallback = Callable[[ScanOutcome], None]


def accumulate_results(
    results: dict[str, WiFiScanResult],
    page: list[WiFiScanResult],
) -> dict[str, WiFiScanResult]:
    """Merge a page into results keyed by SSID; later entries win."""
    for entry in page:
        if entry.ssid in results:
            logger.debug(f"Duplicate SSID '{entry.ssid}', keeping latest entry")
        results[entry.ssid] = entry
    return results


class ScanWifiList:
    """
    Fetches the device's view of nearby access points.

    The outcome is delivered once, both as the return value of
    ``start_scan`` and to ``on_finished`` when given. A failed scan is
    reported as empty results with a diagnostic error.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[ProvisionConfig] = None,
        on_finished: Optional[ScanCallback] = None,
    ):
        self.session = session
        self.config = config or ProvisionConfig()
        self.on_finished = on_finished

    async def start_scan(self) -> ScanOutcome:
        logger.info("Scanning for Wi-Fi")
        try:
            outcome = ScanOutcome(results=await self._scan())
            logger.info(f"Scan finished: {len(outcome.results)} network(s)")
        except ProvisionError as e:
            logger.error(f"Unable to fetch wifi list: {e.message}")
            outcome = ScanOutcome(error=ScanError(e.message, cause=e))
        except ProvisioningError as e:
            logger.error(f"Unable to fetch wifi list: {e.message}")
            outcome = ScanOutcome(error=e)

        if self.on_finished:
            self.on_finished(outcome)
        return outcome

    async def _request(self, payload: bytes) -> bytes:
        return await self.session.request(ENDPOINT_SCAN, payload)

    async def _scan(self) -> dict[str, WiFiScanResult]:
        parse_scan_start(await self._request(
            build_scan_start(blocking=True, period_ms=self.config.scan_period_ms)
        ))

        finished, count = parse_scan_status(await self._request(build_scan_status()))
        polls = 0
        while not finished:
            if polls >= self.config.scan_status_polls:
                raise ScanError("Scan did not finish")
            polls += 1
            await asyncio.sleep(self.config.scan_status_interval)
            finished, count = parse_scan_status(await self._request(build_scan_status()))

        logger.debug(f"Device reports {count} scan result(s)")

        results: dict[str, WiFiScanResult] = {}
        start = 0
        while start < count:
            size = min(self.config.scan_page_size, count - start)
            page = parse_scan_result(await self._request(build_scan_result(start, size)))
            if not page:
                break
            accumulate_results(results, page)
            start += len(page)
        return results
