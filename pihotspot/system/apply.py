import logging
import os
import time
from typing import Callable, List, Optional

from pihotspot.core.models import HotspotConfig, SetupOptions, Stage, VerificationReport
from pihotspot.core.status import DNSMASQ, HOSTAPD, SERVICES, check_preconditions, verify
from pihotspot.system.host import SystemState
from pihotspot.system.render import (
    DNSMASQ_PATH,
    HOSTAPD_PATH,
    INTERFACES_PATH,
    IPTABLES_RULES_PATHS,
    SYSCTL_PATH,
    flush_rules,
    interfaces_path,
    merge_sysctl,
    nat_rules,
    render_dnsmasq,
    render_hostapd,
    render_interfaces,
)
from pihotspot.system.reset import teardown

log = logging.getLogger(__name__)

PERSIST_SERVICE = "netfilter-persistent"


class HotspotSetup:
    """
    Runs the whole setup against a SystemState. ``stage`` follows the linear
    flow; once preconditions pass any failure tears the services down and
    re-raises.
    """

    def __init__(self, cfg: HotspotConfig, host: SystemState, opts: Optional[SetupOptions] = None,
                 now: Callable[[], float] = time.time):
        self.cfg = cfg
        self.host = host
        self.opts = opts or SetupOptions()
        self.now = now
        self.stage = Stage.INIT
        self.stages: List[Stage] = [Stage.INIT]
        self.backup_dir: Optional[str] = None
        self.warnings: List[Warning] = []
        self.report: Optional[VerificationReport] = None

    def _advance(self, stage: Stage) -> None:
        self.stage = stage
        self.stages.append(stage)
        log.debug("stage: %s", stage.value)

    def run(self) -> VerificationReport:
        self.warnings = check_preconditions(self.cfg, self.opts, self.host)
        self._advance(Stage.PRECONDITIONS_CHECKED)

        try:
            self.install_packages()
            self._advance(Stage.PACKAGES_INSTALLED)
            self.backup_configs()
            self._advance(Stage.CONFIGS_BACKED_UP)
            self.write_configs()
            self._advance(Stage.CONFIGS_RENDERED)
            self.enable_ip_forwarding()
            self._advance(Stage.FORWARDING_ENABLED)
            self.configure_nat()
            self._advance(Stage.NAT_CONFIGURED)
            self.start_services()
            self._advance(Stage.SERVICES_RUNNING)
        except BaseException:
            self._advance(Stage.FAILED)
            log.error("Setup failed. Cleaning up...")
            teardown(self.host)
            self._advance(Stage.CLEANED_UP)
            raise

        self.report = verify(self.cfg, self.host)
        self._advance(Stage.VERIFIED)
        return self.report

    def install_packages(self) -> None:
        if self.opts.update_packages:
            log.info("Updating system packages...")
            self.host.update_packages(upgrade=self.opts.upgrade_packages)
        log.info("Installing required packages...")
        self.host.install_packages(self.opts.packages)

    def _snapshot_dir(self) -> str:
        stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime(self.now()))
        base = os.path.join(self.opts.backup_root, stamp)
        path, n = base, 1
        while self.host.exists(path):
            path = f"{base}_{n}"
            n += 1
        return path

    def backup_configs(self) -> str:
        log.info("Backing up original configurations...")
        path = self._snapshot_dir()
        self.host.make_dir(path)
        for src in (DNSMASQ_PATH, HOSTAPD_PATH, INTERFACES_PATH, interfaces_path(self.cfg.interface)):
            if self.host.exists(src):
                self.host.copy_file(src, path)
        self.backup_dir = path
        log.info("Backups saved to %s", path)
        return path

    def write_configs(self) -> None:
        log.info("Configuring network interface...")
        self.host.write_file(interfaces_path(self.cfg.interface), render_interfaces(self.cfg))
        log.info("Configuring hostapd...")
        self.host.write_file(HOSTAPD_PATH, render_hostapd(self.cfg))
        log.info("Configuring dnsmasq...")
        self.host.write_file(DNSMASQ_PATH, render_dnsmasq(self.cfg))

    def enable_ip_forwarding(self) -> None:
        log.info("Enabling IP forwarding...")
        merged = merge_sysctl(self.host.read_file(SYSCTL_PATH))
        if merged is not None:
            self.host.write_file(SYSCTL_PATH, merged)
        self.host.sysctl_reload()

    def configure_nat(self) -> None:
        log.info("Configuring NAT rules...")
        for args in flush_rules() + nat_rules(self.cfg):
            self.host.iptables(args)

        saved = self.host.iptables_save()
        for path in IPTABLES_RULES_PATHS:
            self.host.write_file(path, saved)
        self.host.systemctl("enable", PERSIST_SERVICE)

    def start_services(self) -> None:
        log.info("Starting services...")
        for unit in SERVICES:
            self.host.systemctl("stop", unit, check=False)

        self.host.systemctl("unmask", HOSTAPD)
        self.host.systemctl("enable", HOSTAPD)
        self.host.systemctl("enable", DNSMASQ)
        self.host.systemctl("start", HOSTAPD)
        self.host.systemctl("start", DNSMASQ)
        self.wait_for_services()

    def wait_for_services(self) -> bool:
        deadline = self.host.monotonic() + self.opts.settle_timeout
        while True:
            pending = [u for u in SERVICES if not self.host.is_active(u)]
            if not pending:
                return True
            if self.host.monotonic() >= deadline:
                log.warning("Still waiting on %s after %.0fs", ", ".join(pending), self.opts.settle_timeout)
                return False
            self.host.sleep(self.opts.poll_interval)


def apply(cfg: HotspotConfig, host: SystemState, opts: Optional[SetupOptions] = None) -> HotspotSetup:
    setup = HotspotSetup(cfg, host, opts)
    setup.run()
    return setup
