"""Public/private address classification."""

import ipaddress
from typing import Tuple, Union

from ..models.asset import TargetLabel

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

PRIVATE_RANGES: Tuple[Network, ...] = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",      # loopback
        "169.254.0.0/16",   # link-local
        "::1/128",
        "fc00::/7",         # unique local
        "fe80::/10",        # link-local
    )
)


def is_public(address: str) -> bool:
    """
    Check whether an address lies outside every private/reserved range.

    Unparseable input is never public.
    """
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False

    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    for network in PRIVATE_RANGES:
        if ip.version == network.version and ip in network:
            return False
    return True


def classify_target(address: str) -> TargetLabel:
    """Label a destination address public or local."""
    return TargetLabel.PUBLIC if is_public(address) else TargetLabel.LOCAL
