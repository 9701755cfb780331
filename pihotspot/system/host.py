import logging
import os
import shutil
import subprocess
import time
from typing import List, Optional, Protocol, Sequence

from pihotspot.core.errors import CommandError, ConfigWriteError, PackageInstallError, ServiceStartError

log = logging.getLogger(__name__)

IP_FORWARD_PROC = "/proc/sys/net/ipv4/ip_forward"
CPUINFO_PATH = "/proc/cpuinfo"


class SystemState(Protocol):
    """Everything the setup reads from or writes to the host."""

    def is_root(self) -> bool: ...
    def interface_exists(self, iface: str) -> bool: ...
    def interface_addresses(self, iface: str) -> List[str]: ...
    def can_reach(self, host: str) -> bool: ...
    def is_raspberry_pi(self) -> bool: ...

    def update_packages(self, upgrade: bool) -> None: ...
    def install_packages(self, packages: Sequence[str]) -> None: ...

    def read_file(self, path: str) -> Optional[str]: ...
    def write_file(self, path: str, content: str) -> None: ...
    def copy_file(self, src: str, dst_dir: str) -> str: ...
    def make_dir(self, path: str) -> None: ...
    def exists(self, path: str) -> bool: ...

    def sysctl_reload(self) -> None: ...
    def ip_forward(self) -> str: ...

    def iptables(self, args: Sequence[str]) -> None: ...
    def iptables_save(self) -> str: ...

    def systemctl(self, action: str, unit: str, check: bool = True) -> bool: ...
    def is_active(self, unit: str) -> bool: ...

    def monotonic(self) -> float: ...
    def sleep(self, seconds: float) -> None: ...


def _run(cmd: List[str], check: bool = True, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    log.debug("run: %s", " ".join(cmd))
    try:
        p = subprocess.run(cmd, check=False, text=True, capture_output=True, timeout=timeout)
    except FileNotFoundError as e:
        raise CommandError(cmd, str(e), 127) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(cmd, "timed out", 124) from e
    if check and p.returncode != 0:
        raise CommandError(cmd, (p.stdout or "") + (p.stderr or ""), p.returncode)
    return p


class HostSystem:
    """SystemState backed by the real filesystem, apt, iproute2, iptables and systemd."""

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def interface_exists(self, iface: str) -> bool:
        return _run(["ip", "link", "show", iface], check=False).returncode == 0

    def interface_addresses(self, iface: str) -> List[str]:
        p = _run(["ip", "-4", "-o", "addr", "show", "dev", iface], check=False)
        out = []
        for ln in p.stdout.splitlines():
            parts = ln.split()
            if "inet" in parts:
                out.append(parts[parts.index("inet") + 1].split("/")[0])
        return out

    def can_reach(self, host: str) -> bool:
        try:
            return _run(["ping", "-c", "1", "-W", "2", host], check=False, timeout=5).returncode == 0
        except CommandError:
            return False

    def is_raspberry_pi(self) -> bool:
        return "Raspberry Pi" in (self.read_file(CPUINFO_PATH) or "")

    def update_packages(self, upgrade: bool) -> None:
        env_cmd = ["env", "DEBIAN_FRONTEND=noninteractive"]
        steps = [["apt-get", "update"]]
        if upgrade:
            steps.append(["apt-get", "upgrade", "-y"])
        for cmd in steps:
            try:
                _run(env_cmd + cmd)
            except CommandError as e:
                raise PackageInstallError(cmd, e.output, e.returncode) from e

    def install_packages(self, packages: Sequence[str]) -> None:
        cmd = ["apt-get", "install", "-y", *packages]
        try:
            _run(["env", "DEBIAN_FRONTEND=noninteractive"] + cmd)
        except CommandError as e:
            raise PackageInstallError(cmd, e.output, e.returncode) from e

    def read_file(self, path: str) -> Optional[str]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def write_file(self, path: str, content: str) -> None:
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ConfigWriteError(path, e.strerror or str(e)) from e

    def copy_file(self, src: str, dst_dir: str) -> str:
        dst = os.path.join(dst_dir, os.path.basename(src))
        try:
            shutil.copy2(src, dst)
        except OSError as e:
            raise ConfigWriteError(dst, e.strerror or str(e)) from e
        return dst

    def make_dir(self, path: str) -> None:
        try:
            os.makedirs(path)
        except OSError as e:
            raise ConfigWriteError(path, e.strerror or str(e)) from e

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def sysctl_reload(self) -> None:
        _run(["sysctl", "-p"])

    def ip_forward(self) -> str:
        return (self.read_file(IP_FORWARD_PROC) or "").strip()

    def iptables(self, args: Sequence[str]) -> None:
        _run(["iptables", *args])

    def iptables_save(self) -> str:
        return _run(["iptables-save"]).stdout

    def systemctl(self, action: str, unit: str, check: bool = True) -> bool:
        cmd = ["systemctl", action, unit]
        try:
            p = _run(cmd, check=check)
        except CommandError as e:
            if action in ("start", "restart"):
                raise ServiceStartError(cmd, e.output, e.returncode) from e
            raise
        return p.returncode == 0

    def is_active(self, unit: str) -> bool:
        return _run(["systemctl", "is-active", "--quiet", unit], check=False).returncode == 0

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)
