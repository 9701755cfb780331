import argparse
import logging
import sys
from typing import List, Optional

from pihotspot.core.config import load_config
from pihotspot.core.errors import ConfigError, HotspotError
from pihotspot.core.log import header, setup_logging
from pihotspot.system.apply import HotspotSetup
from pihotspot.system.host import HostSystem, SystemState
from pihotspot.system.render import render_summary

log = logging.getLogger("pihotspot")

EPILOG = """Examples:
  %(prog)s                                    # Use default settings
  %(prog)s -s MyNetwork -p MyPass123          # Custom SSID and password
  %(prog)s --ssid Office --password Secure123 # Long option names
"""


class UsageError(Exception):
    pass


class ParserExit(Exception):
    def __init__(self, status: int = 0):
        super().__init__(status)
        self.status = status


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise UsageError(message)

    def exit(self, status: int = 0, message: Optional[str] = None) -> None:
        # --help ends here once usage is printed
        if message:
            sys.stdout.write(message)
        raise ParserExit(status)


def build_parser() -> argparse.ArgumentParser:
    ap = _Parser(
        prog="pihotspot",
        description="Turn a Raspberry Pi WiFi adapter into a NAT'ed access point (hostapd + dnsmasq).",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    ap.add_argument("-s", "--ssid", metavar="SSID", help="WiFi network name (default: MyHotspot)")
    ap.add_argument("-p", "--password", metavar="PASSWORD", help="WiFi password (default: MySecurePassword123)")
    ap.add_argument("-i", "--interface", metavar="IFACE", help="WiFi interface (default: wlan0)")
    ap.add_argument("-c", "--channel", metavar="CHANNEL", type=int, help="WiFi channel (default: 7)")
    return ap


def main(argv: Optional[List[str]] = None, host: Optional[SystemState] = None) -> int:
    setup_logging()
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        log.error(str(e))
        parser.print_help(sys.stdout)
        return 1
    except ParserExit as e:
        return e.status

    print(header("Raspberry Pi WiFi Hotspot Setup"))
    print(header("================================"))
    print()

    try:
        app = load_config(overrides={
            "ssid": args.ssid,
            "passphrase": args.password,
            "interface": args.interface,
            "channel": args.channel,
        })
    except ConfigError as e:
        for problem in e.problems:
            log.error(problem)
        return 1

    setup = HotspotSetup(app.hotspot, host or HostSystem(), app.setup)
    try:
        setup.run()
    except HotspotError as e:
        log.error(str(e))
        return 1

    print()
    print(header("=========================================="))
    print(header("WiFi Hotspot Setup Complete!"))
    print(header("=========================================="))
    print()
    print(render_summary(app.hotspot, setup.backup_dir))
    log.info("Setup completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
