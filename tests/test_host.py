import subprocess
from typing import List

import pytest

import pihotspot.system.host as host_mod
from pihotspot.core.errors import CommandError, ConfigWriteError, PackageInstallError, ServiceStartError
from pihotspot.system.host import HostSystem


def _done(cmd, rc=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr=stderr)


@pytest.fixture
def calls(monkeypatch):
    """(recorded commands, {command prefix: (rc, stdout, stderr) or exception})"""
    recorded: List[List[str]] = []
    results = {}

    def fake_run(cmd, **kwargs):
        recorded.append(list(cmd))
        for prefix, res in results.items():
            if tuple(cmd[: len(prefix)]) == prefix:
                if isinstance(res, BaseException):
                    raise res
                return _done(cmd, *res)
        return _done(cmd)

    monkeypatch.setattr(host_mod.subprocess, "run", fake_run)
    return recorded, results


def test_failed_start_is_service_start_error(calls):
    recorded, results = calls
    results[("systemctl", "start")] = (1, "", "Job for hostapd.service failed.")
    with pytest.raises(ServiceStartError) as ei:
        HostSystem().systemctl("start", "hostapd")
    assert ei.value.cmd == ["systemctl", "start", "hostapd"]
    assert "Job for hostapd.service failed." in ei.value.output


def test_failed_enable_is_plain_command_error(calls):
    _, results = calls
    results[("systemctl", "enable")] = (1, "", "Unit not found.")
    with pytest.raises(CommandError) as ei:
        HostSystem().systemctl("enable", "dnsmasq")
    assert not isinstance(ei.value, ServiceStartError)


def test_unchecked_stop_reports_false(calls):
    _, results = calls
    results[("systemctl", "stop")] = (5, "", "not loaded")
    assert HostSystem().systemctl("stop", "dnsmasq", check=False) is False


def test_install_failure_carries_apt_output(calls):
    recorded, results = calls
    results[("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install")] = (
        100, "", "E: Unable to locate package hostapd\n"
    )
    with pytest.raises(PackageInstallError) as ei:
        HostSystem().install_packages(["hostapd", "dnsmasq"])
    assert ei.value.cmd == ["apt-get", "install", "-y", "hostapd", "dnsmasq"]
    assert ei.value.returncode == 100
    assert "Unable to locate package" in ei.value.output


def test_update_runs_upgrade_and_wraps_failure(calls):
    recorded, results = calls
    results[("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "upgrade")] = (100, "dpkg was interrupted", "")
    with pytest.raises(PackageInstallError) as ei:
        HostSystem().update_packages(upgrade=True)
    assert ei.value.cmd == ["apt-get", "upgrade", "-y"]
    assert [c[2:4] for c in recorded] == [["apt-get", "update"], ["apt-get", "upgrade"]]


def test_update_without_upgrade(calls):
    recorded, _ = calls
    HostSystem().update_packages(upgrade=False)
    assert recorded == [["env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "update"]]


def test_interface_addresses_parses_ip_oneline(calls):
    recorded, results = calls
    results[("ip", "-4", "-o", "addr")] = (
        0,
        "3: wlan0    inet 192.168.4.1/24 brd 192.168.4.255 scope global wlan0\\       valid_lft forever\n"
        "3: wlan0    inet 10.9.0.5/16 scope global secondary wlan0\\       valid_lft forever\n",
        "",
    )
    assert HostSystem().interface_addresses("wlan0") == ["192.168.4.1", "10.9.0.5"]
    assert recorded[-1] == ["ip", "-4", "-o", "addr", "show", "dev", "wlan0"]


def test_interface_addresses_empty_when_device_missing(calls):
    _, results = calls
    results[("ip", "-4", "-o", "addr")] = (1, "", 'Device "wlan9" does not exist.')
    assert HostSystem().interface_addresses("wlan9") == []


def test_interface_exists_follows_ip_link(calls):
    _, results = calls
    results[("ip", "link", "show", "wlan9")] = (1, "", 'Device "wlan9" does not exist.')
    h = HostSystem()
    assert h.interface_exists("wlan0")
    assert not h.interface_exists("wlan9")


def test_missing_binary_is_command_error(calls):
    _, results = calls
    results[("iptables",)] = FileNotFoundError(2, "No such file or directory", "iptables")
    with pytest.raises(CommandError) as ei:
        HostSystem().iptables(["-F"])
    assert ei.value.returncode == 127


def test_timeout_is_command_error(calls):
    _, results = calls
    results[("sysctl",)] = subprocess.TimeoutExpired(["sysctl", "-p"], 5)
    with pytest.raises(CommandError) as ei:
        HostSystem().sysctl_reload()
    assert ei.value.returncode == 124


def test_can_reach_swallows_timeout_and_missing_ping(calls):
    _, results = calls
    h = HostSystem()
    assert h.can_reach("8.8.8.8")
    results[("ping",)] = subprocess.TimeoutExpired(["ping"], 5)
    assert h.can_reach("8.8.8.8") is False
    results[("ping",)] = FileNotFoundError(2, "No such file or directory", "ping")
    assert h.can_reach("8.8.8.8") is False
    results[("ping",)] = (1, "", "")
    assert h.can_reach("8.8.8.8") is False


def test_iptables_save_returns_stdout(calls):
    _, results = calls
    results[("iptables-save",)] = (0, "*nat\n-A POSTROUTING -o eth0 -j MASQUERADE\nCOMMIT\n", "")
    assert "MASQUERADE" in HostSystem().iptables_save()


def test_write_file_creates_parents(tmp_path):
    path = tmp_path / "etc" / "hostapd" / "hostapd.conf"
    HostSystem().write_file(str(path), "ssid=TestNet\n")
    assert path.read_text(encoding="utf-8") == "ssid=TestNet\n"


def test_write_file_failure_is_config_write_error(tmp_path):
    blocker = tmp_path / "etc"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(ConfigWriteError) as ei:
        HostSystem().write_file(str(blocker / "hostapd.conf"), "x")
    assert ei.value.path == str(blocker / "hostapd.conf")


def test_read_missing_file_is_none(tmp_path):
    assert HostSystem().read_file(str(tmp_path / "absent")) is None


def test_copy_and_make_dir(tmp_path):
    src = tmp_path / "dnsmasq.conf"
    src.write_text("interface=wlan0\n", encoding="utf-8")
    snap = tmp_path / "backup" / "20261019_101500"
    h = HostSystem()
    h.make_dir(str(snap))
    dst = h.copy_file(str(src), str(snap))
    assert dst == str(snap / "dnsmasq.conf")
    assert (snap / "dnsmasq.conf").read_text(encoding="utf-8") == "interface=wlan0\n"
    with pytest.raises(ConfigWriteError):
        h.make_dir(str(snap))
