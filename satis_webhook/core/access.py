"""Caller IP allow-listing.

Patterns are literal addresses or CIDR ranges, IPv4 or IPv6. A literal
address is treated as a host-length network.
"""

import ipaddress
import logging

from .models import AuthorizedIps

logger = logging.getLogger(__name__)


def ip_matches(client_ip: str, pattern: str) -> bool:
    """Check whether an address falls inside a pattern.

    Malformed addresses or patterns never match.
    """
    try:
        address = ipaddress.ip_address(client_ip.strip())
    except ValueError:
        logger.warning(f"Unparseable client IP: {client_ip!r}")
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped

    try:
        network = ipaddress.ip_network(str(pattern).strip(), strict=False)
    except ValueError:
        logger.warning(f"Ignoring malformed authorized_ips pattern: {pattern!r}")
        return False

    # IPv4 and IPv6 never match each other
    if address.version != network.version:
        return False
    return address in network


def is_authorized(client_ip: str, authorized_ips: AuthorizedIps) -> bool:
    """Decide whether a caller may trigger a build.

    Args:
        client_ip: Caller's source address.
        authorized_ips: None (everyone allowed), a single pattern,
            or an ordered sequence of patterns.

    Returns:
        True if no allow-list is configured or any pattern matches.
    """
    if authorized_ips is None:
        return True

    if isinstance(authorized_ips, str):
        return ip_matches(client_ip, authorized_ips)

    return any(ip_matches(client_ip, pattern) for pattern in authorized_ips)
