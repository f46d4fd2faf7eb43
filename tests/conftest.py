import pytest

from esp_provision import ProvisionConfig, Provisioner, Security0, Security1

from fakes import FakeDevice, FakeTransport


@pytest.fixture
def fast_config():
    return ProvisionConfig(poll_interval=0, max_polls=5, scan_page_size=2, scan_status_interval=0)


@pytest.fixture
def make_provisioner(fast_config):
    """Build a Provisioner wired to a FakeDevice."""

    def _make(device=None, pop=None, **kwargs):
        device = device or FakeDevice(pop=pop, **kwargs)
        transport = FakeTransport(device)
        if device.sec == 0:
            security = Security0()
        else:
            security = Security1(pop if pop is not None else device.pop)
        return Provisioner(transport, security, fast_config), device, transport

    return _make
