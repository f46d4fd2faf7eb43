from esp_provision import (
    ScanError,
    ScanOutcome,
    ScanWifiList,
    Security1,
    Session,
    SignalStrength,
    Status,
    WiFiScanResult,
    WifiAuthMode,
)
from esp_provision.scan import accumulate_results

from fakes import FakeDevice, FakeTransport, scan_entry


def result(ssid, rssi):
    return WiFiScanResult(ssid=ssid, bssid=bytes(6), rssi=rssi, channel=1, auth=WifiAuthMode.WPA2_PSK)


def test_accumulate_later_pages_win():
    results = {}
    accumulate_results(results, [result("A", -40), result("B", -60)])
    accumulate_results(results, [result("A", -45)])

    assert {ssid: r.rssi for ssid, r in results.items()} == {"A": -45, "B": -60}


async def test_scan_paginates_and_merges_duplicates(make_provisioner):
    provisioner, device, _ = make_provisioner(
        pop="pop",
        scan_entries=[scan_entry("A", -40), scan_entry("B", -60), scan_entry("A", -45)],
    )
    await provisioner.establish_session()

    outcome = await provisioner.scan_wifi()

    assert outcome.error is None
    assert {ssid: r.rssi for ssid, r in outcome.results.items()} == {"A": -45, "B": -60}
    result_requests = [p for p, _ in device.requests if p == "prov-scan"]
    # start, status, two result pages (page size 2)
    assert len(result_requests) == 4


async def test_scan_decodes_metadata(make_provisioner):
    provisioner, _, _ = make_provisioner(
        pop="pop",
        scan_entries=[scan_entry("Cafe", -55, WifiAuthMode.OPEN, channel=11)],
    )
    await provisioner.establish_session()

    outcome = await provisioner.scan_wifi()
    cafe = outcome.results["Cafe"]

    assert cafe.auth == WifiAuthMode.OPEN
    assert cafe.is_open
    assert cafe.channel == 11
    assert cafe.signal == SignalStrength.GOOD
    assert cafe.bssid_str == "00:00:00:00:00:00"


async def test_scan_waits_for_device_to_finish(make_provisioner):
    provisioner, device, _ = make_provisioner(
        pop="pop",
        scan_entries=[scan_entry("A", -40)],
        scan_status_pending=2,
    )
    await provisioner.establish_session()

    outcome = await provisioner.scan_wifi()

    assert list(outcome.results) == ["A"]
    assert device.scan_status_pending < 0


async def test_scan_with_no_networks_is_empty_without_error(make_provisioner):
    provisioner, _, _ = make_provisioner(pop="pop", scan_entries=[])
    await provisioner.establish_session()

    outcome = await provisioner.scan_wifi()

    assert outcome.results == {}
    assert outcome.error is None


async def test_scan_device_error_reports_empty_with_diagnostic(make_provisioner):
    provisioner, _, _ = make_provisioner(pop="pop", scan_status=Status.INTERNAL_ERROR)
    await provisioner.establish_session()
    delivered = []

    outcome = await provisioner.scan_wifi(on_finished=delivered.append)

    assert outcome.results == {}
    assert isinstance(outcome.error, ScanError)
    assert outcome.error.origin == "scan"
    assert delivered == [outcome]


async def test_scan_on_closed_session_keeps_session_error():
    device = FakeDevice(pop="pop", scan_entries=[scan_entry("A", -40)])
    transport = FakeTransport(device)
    session = Session(transport, Security1("pop"))
    await session.establish()
    await transport.disconnect()

    outcome = await ScanWifiList(session).start_scan()

    assert outcome.results == {}
    assert outcome.error.origin == "session"


async def test_scan_skipped_without_capability(make_provisioner):
    provisioner, device, _ = make_provisioner(
        pop="pop",
        version_response=b'{"prov": {"ver": "v1.1", "cap": ["no_pop"]}}',
        scan_entries=[scan_entry("A", -40)],
    )
    await provisioner.get_version()
    await provisioner.establish_session()

    outcome = await provisioner.scan_wifi()

    assert outcome.results == {}
    assert outcome.error is None
    assert device.requests == []


async def test_scan_stalled_device_gives_up(make_provisioner, fast_config):
    provisioner, _, _ = make_provisioner(pop="pop", scan_status_pending=100)
    await provisioner.establish_session()

    outcome = await provisioner.scan_wifi()

    assert outcome.results == {}
    assert isinstance(outcome.error, ScanError)


def test_sorted_results_strongest_first():
    outcome = ScanOutcome(results={"A": result("A", -70), "B": result("B", -30), "C": result("C", -50)})

    assert [r.ssid for r in outcome.sorted_results()] == ["B", "C", "A"]


def test_signal_strength_buckets():
    assert SignalStrength.from_rssi(-40) == SignalStrength.STRONG
    assert SignalStrength.from_rssi(-50) == SignalStrength.GOOD
    assert SignalStrength.from_rssi(-60) == SignalStrength.FAIR
    assert SignalStrength.from_rssi(-67) == SignalStrength.WEAK
    assert SignalStrength.from_rssi(None) == SignalStrength.WEAK
