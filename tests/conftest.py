import os
from typing import Dict, List, Optional, Sequence

import pytest

from pihotspot.core.errors import ConfigWriteError, PackageInstallError, ServiceStartError
from pihotspot.core.models import HotspotConfig, SetupOptions


class FakeHost:
    """In-memory SystemState: files, units, kernel flag and iptables live in dicts."""

    def __init__(self, root=True, interfaces=("wlan0", "eth0"), online=True, pi=True):
        self.root = root
        self.links = set(interfaces)
        self.online = online
        self.pi = pi
        self.files: Dict[str, str] = {}
        self.dirs = set()
        self.units: Dict[str, Dict[str, bool]] = {}
        self.forward = "0"
        self.addresses: Dict[str, List[str]] = {}
        self.rules: List[List[str]] = []
        self.calls: List[tuple] = []
        self.clock = 0.0
        self.fail_install = False
        self.fail_start: set = set()
        self.never_active: set = set()
        self.readonly: set = set()
        self.pending_address: Dict[str, str] = {}

    def _unit(self, name):
        return self.units.setdefault(name, {"active": False, "enabled": False, "masked": name == "hostapd"})

    def is_root(self):
        return self.root

    def interface_exists(self, iface):
        return iface in self.links

    def interface_addresses(self, iface):
        return list(self.addresses.get(iface, []))

    def can_reach(self, host):
        return self.online

    def is_raspberry_pi(self):
        return self.pi

    def update_packages(self, upgrade):
        self.calls.append(("update", upgrade))

    def install_packages(self, packages: Sequence[str]):
        self.calls.append(("install", tuple(packages)))
        if self.fail_install:
            raise PackageInstallError(["apt-get", "install", "-y", *packages], "E: Unable to locate package", 100)

    def read_file(self, path) -> Optional[str]:
        return self.files.get(path)

    def write_file(self, path, content):
        if os.path.dirname(path) in self.readonly:
            raise ConfigWriteError(path, "Read-only file system")
        self.calls.append(("write", path))
        self.files[path] = content

    def copy_file(self, src, dst_dir):
        dst = os.path.join(dst_dir, os.path.basename(src))
        self.files[dst] = self.files[src]
        return dst

    def make_dir(self, path):
        self.calls.append(("mkdir", path))
        self.dirs.add(path)

    def exists(self, path):
        return path in self.files or path in self.dirs

    def sysctl_reload(self):
        self.calls.append(("sysctl",))
        for ln in self.files.get("/etc/sysctl.conf", "").splitlines():
            if ln.replace(" ", "").startswith("net.ipv4.ip_forward="):
                self.forward = ln.split("=", 1)[1].strip()

    def ip_forward(self):
        return self.forward

    def iptables(self, args):
        args = list(args)
        self.calls.append(("iptables", tuple(args)))
        if args in (["-F"], ["-t", "nat", "-F"]):
            table = "nat" if "nat" in args else "filter"
            self.rules = [r for r in self.rules if (("nat" in r) != (table == "nat"))]
            return
        self.rules.append(args)

    def iptables_save(self):
        return "".join(" ".join(r) + "\n" for r in self.rules)

    def systemctl(self, action, unit, check=True):
        self.calls.append(("systemctl", action, unit))
        u = self._unit(unit)
        if action == "stop":
            u["active"] = False
        elif action == "disable":
            u["enabled"] = False
        elif action == "enable":
            u["enabled"] = True
        elif action == "unmask":
            u["masked"] = False
        elif action == "start":
            if unit in self.fail_start or u["masked"]:
                raise ServiceStartError(["systemctl", "start", unit], "Job failed", 1)
            u["active"] = unit not in self.never_active
            if unit == "hostapd":
                for iface, addr in self.pending_address.items():
                    self.addresses.setdefault(iface, []).append(addr)
        return True

    def is_active(self, unit):
        return self._unit(unit)["active"]

    def monotonic(self):
        return self.clock

    def sleep(self, seconds):
        self.clock += seconds

    def systemctl_calls(self):
        return [c[1:] for c in self.calls if c[0] == "systemctl"]


@pytest.fixture
def host():
    h = FakeHost()
    # ifupdown brings the static address up with the AP
    h.pending_address["wlan0"] = "192.168.4.1"
    return h


@pytest.fixture
def cfg():
    return HotspotConfig(ssid="TestNet", passphrase="testpass1", interface="wlan0", channel=6)


@pytest.fixture
def opts():
    return SetupOptions(settle_timeout=2.0, poll_interval=0.5)
