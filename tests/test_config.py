import pytest

from excess import ExcessThresholds
from heartbeat import HeartbeatSettings
from network import LocalGateway, SshGateway, get_gateway
from pv_waker import load_config
from wake import WakeSettings

SETTINGS = """
[general]
network_backend = "{backend}"

[heartbeat]
interval_seconds = 300
stale_minutes = 5

[excess]
sun_levels = [5.0, 20.0]
maybe_voltage = [12.6, 12.4]
yes_voltage = [13.1, 12.9]

[wake]
pacing_ms = 20

[network]
neigh_timeout = 3.0
ping_timeout = 2

[ssh_router]
router_ip = "10.0.0.1"
router_user = "admin"
"""


@pytest.fixture
def settings_file(tmp_path):
    def write(backend="local"):
        path = tmp_path / "settings.toml"
        path.write_text(SETTINGS.format(backend=backend))
        return str(path)
    return write


def test_sections(settings_file):
    config = load_config([settings_file()])
    assert HeartbeatSettings.from_config(config.get("heartbeat")) == \
        HeartbeatSettings(interval_seconds=300, stale_minutes=5)
    thresholds = ExcessThresholds.from_config(config.get("excess"))
    assert thresholds.sun_levels == (5.0, 20.0)
    assert thresholds.yes_voltage == (13.1, 12.9)
    assert WakeSettings.from_config(config.get("wake")).pacing == pytest.approx(0.02)


def test_environment_override(settings_file, monkeypatch):
    monkeypatch.setenv("PVWAKE_HEARTBEAT__interval_seconds", "120")
    config = load_config([settings_file()])
    assert HeartbeatSettings.from_config(config.get("heartbeat")).interval_seconds == 120


def test_local_gateway(settings_file):
    gateway = get_gateway(load_config([settings_file()]))
    assert isinstance(gateway, LocalGateway)
    assert gateway.neigh_timeout == 3.0
    assert gateway.ping_timeout == 2


def test_ssh_gateway(settings_file):
    gateway = get_gateway(load_config([settings_file("ssh")]))
    assert isinstance(gateway, SshGateway)
    assert gateway.router_ip == "10.0.0.1"
    assert gateway.ping_timeout == 2


def test_unknown_backend(settings_file):
    with pytest.raises(ValueError):
        get_gateway(load_config([settings_file("carrier-pigeon")]))


def test_waker_wiring(settings_file):
    from pv_waker import Waker

    waker = Waker(load_config([settings_file()]))
    assert waker.heartbeat.just_woke is waker.reports.just_woke
    assert waker.heartbeat.thresholds.sun_levels == (5.0, 20.0)
    assert waker.heartbeat.dispatcher.settings.pacing == pytest.approx(0.02)
    assert waker.store.workerstatus == "workerstatus"
    assert waker.service.settings.interval_seconds == 300


def test_disabled_heartbeat_does_not_block(tmp_path):
    from pv_waker import run

    path = tmp_path / "disabled.toml"
    path.write_text("[heartbeat]\nenabled = false\n")
    assert run(load_config([str(path)])) is None
