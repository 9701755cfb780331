import ipaddress
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pihotspot.core.errors import VerificationMismatch

NETMASK = "255.255.255.0"

# Highest legal 2.4 GHz channel per regulatory domain; anything unlisted gets 13.
MAX_CHANNEL = {"US": 11, "CA": 11, "TW": 11, "JP": 14}
DEFAULT_MAX_CHANNEL = 13


def _ipv4(value: str) -> str:
    return str(ipaddress.IPv4Address(value.strip()))


class HotspotConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str = "MyHotspot"
    passphrase: str = "MySecurePassword123"
    interface: str = "wlan0"
    ip_address: str = "192.168.4.1"
    dhcp_range_start: str = "192.168.4.2"
    dhcp_range_end: str = "192.168.4.20"
    channel: int = 7
    country_code: str = "US"
    # wired side that gets masqueraded
    uplink: str = "eth0"

    @field_validator("ssid")
    @classmethod
    def _ssid(cls, v: str) -> str:
        if not v or len(v.encode("utf-8")) > 32:
            raise ValueError("SSID must be 1-32 bytes")
        if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in v):
            raise ValueError("SSID must not contain control characters")
        return v

    @field_validator("passphrase")
    @classmethod
    def _passphrase(cls, v: str) -> str:
        # hostapd only takes printable ASCII for wpa_passphrase
        if any(not 0x20 <= ord(ch) <= 0x7E for ch in v):
            raise ValueError("WPA2 passphrase must be printable ASCII")
        if not 8 <= len(v) <= 63:
            raise ValueError("WPA2 passphrase must be 8-63 characters")
        return v

    @field_validator("interface", "uplink")
    @classmethod
    def _ifname(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v or " " in v:
            raise ValueError(f"invalid interface name: {v!r}")
        return v

    @field_validator("ip_address", "dhcp_range_start", "dhcp_range_end")
    @classmethod
    def _address(cls, v: str) -> str:
        return _ipv4(v)

    @field_validator("country_code")
    @classmethod
    def _country(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("country code must be ISO 3166-1 alpha-2")
        return v

    @model_validator(mode="after")
    def _check_ranges(self) -> "HotspotConfig":
        limit = MAX_CHANNEL.get(self.country_code, DEFAULT_MAX_CHANNEL)
        if not 1 <= self.channel <= limit:
            raise ValueError(f"channel {self.channel} is not allowed in {self.country_code} (1-{limit})")

        net = self.subnet
        ip = ipaddress.IPv4Address(self.ip_address)
        start = ipaddress.IPv4Address(self.dhcp_range_start)
        end = ipaddress.IPv4Address(self.dhcp_range_end)
        for addr in (start, end):
            if addr not in net or addr in (net.network_address, net.broadcast_address):
                raise ValueError(f"DHCP address {addr} is outside {net}")
        if not start < end:
            raise ValueError("DHCP range start must be below range end")
        if start <= ip <= end:
            raise ValueError(f"DHCP range must not include {ip}")
        if ip in (net.network_address, net.broadcast_address):
            raise ValueError(f"{ip} is not a usable host address")
        return self

    @property
    def subnet(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Interface(f"{self.ip_address}/24").network

    @property
    def network(self) -> str:
        return str(self.subnet.network_address)

    @property
    def broadcast(self) -> str:
        return str(self.subnet.broadcast_address)

    @property
    def netmask(self) -> str:
        return NETMASK


class SetupOptions(BaseModel):
    update_packages: bool = True
    upgrade_packages: bool = True
    packages: List[str] = Field(
        default_factory=lambda: ["hostapd", "dnsmasq", "iptables-persistent", "netfilter-persistent"]
    )
    backup_root: str = "/etc/hotspot-backup"
    settle_timeout: float = 10.0
    poll_interval: float = 0.5
    connectivity_probe: str = "8.8.8.8"


class AppConfig(BaseModel):
    hotspot: HotspotConfig = Field(default_factory=HotspotConfig)
    setup: SetupOptions = Field(default_factory=SetupOptions)


class Stage(str, Enum):
    INIT = "init"
    PRECONDITIONS_CHECKED = "preconditions_checked"
    PACKAGES_INSTALLED = "packages_installed"
    CONFIGS_BACKED_UP = "configs_backed_up"
    CONFIGS_RENDERED = "configs_rendered"
    FORWARDING_ENABLED = "forwarding_enabled"
    NAT_CONFIGURED = "nat_configured"
    SERVICES_RUNNING = "services_running"
    VERIFIED = "verified"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


class CheckResult(BaseModel):
    name: str
    passed: bool
    expected: str = ""
    actual: str = ""


class VerificationReport(BaseModel):
    checks: List[CheckResult] = Field(default_factory=list)

    @property
    def issues(self) -> int:
        return sum(1 for c in self.checks if not c.passed)

    @property
    def ok(self) -> bool:
        return self.issues == 0

    @property
    def mismatches(self) -> List[VerificationMismatch]:
        return [VerificationMismatch(c.name, c.expected, c.actual) for c in self.checks if not c.passed]
