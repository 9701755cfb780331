import logging
from typing import Callable, List, Tuple

from pihotspot.core.errors import ConnectivityWarning, InterfaceNotFoundError, PrivilegeError
from pihotspot.core.models import CheckResult, HotspotConfig, SetupOptions, VerificationReport
from pihotspot.system.host import SystemState

log = logging.getLogger(__name__)

HOSTAPD = "hostapd"
DNSMASQ = "dnsmasq"
SERVICES = (HOSTAPD, DNSMASQ)


def check_preconditions(cfg: HotspotConfig, opts: SetupOptions, host: SystemState) -> List[Warning]:
    """
    Privilege, interface, connectivity, in that order. The first two raise;
    the rest only come back as warnings (already logged).
    """
    if not host.is_root():
        raise PrivilegeError("Please run this script as root (use sudo)")

    log.info("Checking system requirements...")
    warnings: List[Warning] = []

    if not host.is_raspberry_pi():
        msg = "This script is designed for Raspberry Pi. It may work on other systems but is not tested."
        log.warning(msg)
        warnings.append(UserWarning(msg))

    if not host.interface_exists(cfg.interface):
        raise InterfaceNotFoundError(cfg.interface)

    if host.can_reach(opts.connectivity_probe):
        log.info("Internet connection confirmed")
    else:
        w = ConnectivityWarning("No internet connection detected. Some features may not work.")
        log.warning(str(w))
        warnings.append(w)
    return warnings


def _service_check(host: SystemState, unit: str) -> Tuple[CheckResult, str]:
    active = host.is_active(unit)
    res = CheckResult(name=unit, passed=active, expected="active", actual="active" if active else "inactive")
    return res, f"{unit} is running" if active else f"{unit} is not running"


def _forwarding_check(host: SystemState) -> Tuple[CheckResult, str]:
    value = host.ip_forward()
    res = CheckResult(name="ip_forward", passed=value == "1", expected="1", actual=value)
    return res, "IP forwarding is enabled" if res.passed else "IP forwarding is not enabled"


def _address_check(cfg: HotspotConfig, host: SystemState) -> Tuple[CheckResult, str]:
    addrs = host.interface_addresses(cfg.interface)
    res = CheckResult(
        name=f"{cfg.interface}_address",
        passed=cfg.ip_address in addrs,
        expected=cfg.ip_address,
        actual=",".join(addrs),
    )
    return res, "Network interface configured correctly" if res.passed else "Network interface not configured correctly"


def verify(cfg: HotspotConfig, host: SystemState) -> VerificationReport:
    log.info("Verifying setup...")
    checks: List[Callable[[], Tuple[CheckResult, str]]] = [
        lambda: _service_check(host, HOSTAPD),
        lambda: _service_check(host, DNSMASQ),
        lambda: _forwarding_check(host),
        lambda: _address_check(cfg, host),
    ]

    report = VerificationReport()
    for check in checks:
        res, msg = check()
        report.checks.append(res)
        if res.passed:
            log.info("✓ %s", msg)
        else:
            log.error("✗ %s", msg)

    if report.ok:
        log.info("✓ All checks passed!")
    else:
        log.warning("%d issue(s) detected. Check the logs for details.", report.issues)
    return report
