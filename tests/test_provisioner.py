"""End-to-end flows through the Provisioner boundary."""

import asyncio

from esp_provision import WifiAuthMode, WifiConfig, WifiStationState

from fakes import LEGACY_VERSION, scan_entry


async def test_legacy_version_then_scan_and_provision(make_provisioner):
    provisioner, device, _ = make_provisioner(
        pop="abcd1234",
        version_response=LEGACY_VERSION,
        scan_entries=[scan_entry("Cafe", -50, WifiAuthMode.OPEN), scan_entry("Home", -60)],
        wifi_states=[WifiStationState.CONNECTING, WifiStationState.CONNECTED],
    )

    version = await provisioner.get_version()
    assert not provisioner.force_authentication
    assert version.capabilities == set()

    await provisioner.establish_session()
    outcome = await provisioner.scan_wifi()
    assert set(outcome.results) == {"Cafe", "Home"}

    assert not provisioner.requires_passphrase("Cafe")
    assert provisioner.requires_passphrase("Home")
    assert provisioner.requires_passphrase("Manually entered")

    final = await provisioner.provision_wifi("Cafe", "")
    assert final.succeeded
    assert device.configured == ("Cafe", "")


async def test_garbage_version_forces_authentication(make_provisioner):
    provisioner, _, _ = make_provisioner(
        pop="abcd1234",
        version_response=b"\x00\x01garbage",
        scan_entries=[scan_entry("Cafe", -50, WifiAuthMode.OPEN)],
    )

    await provisioner.get_version()
    assert provisioner.force_authentication

    await provisioner.establish_session()
    outcome = await provisioner.scan_wifi()

    assert outcome.results["Cafe"].is_open
    assert provisioner.requires_passphrase("Cafe")


async def test_get_version_resets_force_authentication(make_provisioner):
    provisioner, device, _ = make_provisioner(pop="pop", version_response=b"garbage")

    await provisioner.get_version()
    assert provisioner.force_authentication

    device.version_response = LEGACY_VERSION
    await provisioner.get_version()
    assert not provisioner.force_authentication


async def test_context_manager_closes_everything(make_provisioner):
    provisioner, _, transport = make_provisioner(pop="pop")

    async with provisioner:
        await provisioner.establish_session()
        assert provisioner.is_established

    assert not provisioner.is_established
    assert transport.closed


async def test_sec0_device(make_provisioner):
    provisioner, device, _ = make_provisioner(sec=0, scan_entries=[scan_entry("Home", -40)])

    await provisioner.establish_session()
    outcome = await provisioner.scan_wifi()
    final = await provisioner.provision_wifi("Home", "pw", {"region": "EU"})

    assert "Home" in outcome.results
    assert final.succeeded
    assert device.custom_config == {"region": "EU"}


async def test_version_query_waits_for_scan(make_provisioner):
    provisioner, _, transport = make_provisioner(
        pop="pop",
        scan_entries=[scan_entry("Home", -40), scan_entry("Cafe", -70), scan_entry("Shop", -55)],
        scan_status_pending=2,
    )
    await provisioner.establish_session()

    outcome, version = await asyncio.gather(provisioner.scan_wifi(), provisioner.get_version())

    assert outcome.error is None
    assert set(outcome.results) == {"Home", "Cafe", "Shop"}
    assert "wifi_scan" in version.capabilities
    assert transport.max_active == 1


async def test_provision_from_wifi_config(make_provisioner):
    provisioner, device, _ = make_provisioner(pop="pop")
    await provisioner.establish_session()

    final = await provisioner.provision_config(
        WifiConfig(ssid="Home", passphrase="secret", extra={"token": "abc"})
    )

    assert final.succeeded
    assert device.configured == ("Home", "secret")
    assert device.custom_config == {"token": "abc"}
