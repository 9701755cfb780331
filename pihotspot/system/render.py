import re
from typing import List, Optional

from pihotspot.core.models import HotspotConfig

HOSTAPD_PATH = "/etc/hostapd/hostapd.conf"
DNSMASQ_PATH = "/etc/dnsmasq.conf"
INTERFACES_DIR = "/etc/network/interfaces.d"
INTERFACES_PATH = "/etc/network/interfaces"
SYSCTL_PATH = "/etc/sysctl.conf"
IPTABLES_RULES_PATHS = ("/etc/iptables.rules", "/etc/iptables/rules.v4")
DHCP_LEASES_PATH = "/var/lib/misc/dnsmasq.leases"

UPSTREAM_DNS = ("8.8.8.8", "8.8.4.4", "1.1.1.1")
FORWARD_KEY = "net.ipv4.ip_forward"

_SYSCTL_LINE = re.compile(r"^\s*net\.ipv4\.ip_forward\s*=\s*(\S*)\s*$")


def interfaces_path(iface: str) -> str:
    return f"{INTERFACES_DIR}/{iface}"


def render_interfaces(cfg: HotspotConfig) -> str:
    return f"""allow-hotplug {cfg.interface}
iface {cfg.interface} inet static
    address {cfg.ip_address}
    netmask {cfg.netmask}
    network {cfg.network}
    broadcast {cfg.broadcast}
"""


def render_hostapd(cfg: HotspotConfig) -> str:
    # 2.4 GHz only; TKIP stays advertised next to CCMP for older clients.
    return f"""# WiFi Hotspot Configuration
interface={cfg.interface}
driver=nl80211
ssid={cfg.ssid}
hw_mode=g
channel={cfg.channel}
country_code={cfg.country_code}
wmm_enabled=0
macaddr_acl=0
auth_algs=1
ignore_broadcast_ssid=0

# Security settings
wpa=2
wpa_passphrase={cfg.passphrase}
wpa_key_mgmt=WPA-PSK
wpa_pairwise=TKIP
rsn_pairwise=CCMP

# Additional settings
beacon_int=100
dtim_period=2
max_num_sta=50
"""


def render_dnsmasq(cfg: HotspotConfig) -> str:
    servers = "".join(f"server={s}\n" for s in UPSTREAM_DNS)
    return f"""# DHCP and DNS Configuration
interface={cfg.interface}
dhcp-range={cfg.dhcp_range_start},{cfg.dhcp_range_end},{cfg.netmask},24h

# DNS settings
{servers}
# Additional settings
domain-needed
bogus-priv
no-resolv
no-poll
cache-size=1000
"""


def merge_sysctl(text: Optional[str]) -> Optional[str]:
    """
    Return sysctl.conf content with forwarding enabled exactly once,
    or None when the file already has it and nothing else for the key.
    """
    lines = (text or "").splitlines()
    values = [m.group(1) for m in (_SYSCTL_LINE.match(ln) for ln in lines) if m]
    if values == ["1"]:
        return None

    kept = [ln for ln in lines if not _SYSCTL_LINE.match(ln)]
    kept.append(f"{FORWARD_KEY}=1")
    return "\n".join(kept) + "\n"


def flush_rules() -> List[List[str]]:
    return [["-F"], ["-t", "nat", "-F"]]


def nat_rules(cfg: HotspotConfig) -> List[List[str]]:
    wlan, wan = cfg.interface, cfg.uplink
    return [
        ["-t", "nat", "-A", "POSTROUTING", "-o", wan, "-j", "MASQUERADE"],
        ["-A", "FORWARD", "-i", wlan, "-o", wan, "-j", "ACCEPT"],
        ["-A", "FORWARD", "-i", wan, "-o", wlan, "-m", "state", "--state", "RELATED,ESTABLISHED", "-j", "ACCEPT"],
    ]


def render_summary(cfg: HotspotConfig, backup_dir: Optional[str] = None) -> str:
    backup = f"Backups: {backup_dir}\n\n" if backup_dir else ""
    return f"""SSID: {cfg.ssid}
Password: {cfg.passphrase}
IP Address: {cfg.ip_address}
DHCP Range: {cfg.dhcp_range_start} - {cfg.dhcp_range_end}
Channel: {cfg.channel}

To connect to your hotspot:
1. Look for '{cfg.ssid}' in your WiFi networks
2. Enter password: {cfg.passphrase}
3. Your device will get an IP from {cfg.dhcp_range_start} to {cfg.dhcp_range_end}

{backup}Useful commands:
- Check connected devices: sudo arp -a
- View DHCP leases: sudo cat {DHCP_LEASES_PATH}
- Monitor logs: sudo journalctl -u hostapd -f
- Check service status: sudo systemctl status hostapd dnsmasq

To stop the hotspot:
sudo systemctl stop hostapd dnsmasq

To restart the hotspot:
sudo systemctl restart hostapd dnsmasq
"""
