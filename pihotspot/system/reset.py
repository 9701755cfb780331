import logging

from pihotspot.core.errors import HotspotError
from pihotspot.core.status import SERVICES
from pihotspot.system.host import SystemState

log = logging.getLogger(__name__)


def teardown(host: SystemState) -> None:
    # Best effort: never leave a half-configured AP running.
    for action in ("stop", "disable"):
        for unit in SERVICES:
            try:
                host.systemctl(action, unit, check=False)
            except HotspotError as e:
                log.debug("%s %s failed during cleanup: %s", action, unit, e)
