"""Port to service-name classification."""

from typing import Dict, Optional

UNKNOWN_SERVICE = "unknown"

SERVICE_PORTS: Dict[int, str] = {
    20: "ftp-data",
    21: "ftp",
    22: "ssh",
    23: "telnet",
    25: "smtp",
    53: "dns",
    67: "dhcp",
    68: "dhcp",
    80: "http",
    110: "pop3",
    143: "imap",
    443: "https",
    445: "smb",
    3306: "mysql",
    3389: "rdp",
    5432: "postgresql",
}

TORRENT_PORT_RANGE = range(6881, 6890)
TORRENT_TRACKER_PORT = 6969


def classify(port: Optional[int]) -> str:
    """Return the well-known service name for a port, or "unknown"."""
    if port is None:
        return UNKNOWN_SERVICE
    service = SERVICE_PORTS.get(port)
    if service is not None:
        return service
    if port in TORRENT_PORT_RANGE or port == TORRENT_TRACKER_PORT:
        return "torrent"
    return UNKNOWN_SERVICE
