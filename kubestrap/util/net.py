"""Contains utility functions for network stuff"""
import re

from netaddr import IPNetwork, valid_ipv4, valid_ipv6
from netaddr.core import AddrFormatError

HOSTNAME_LABEL = re.compile(r"^(?!-)[a-zA-Z\d-]{1,63}(?<!-)$")


def is_port(port):
    """Checks if a port is valid"""

    return isinstance(port, int) and 0 <= port <= 65535


def is_ip(ip):
    """Checks if an IP is a valid IPv4 or IPv6 address"""

    return valid_ipv4(ip) or valid_ipv6(ip)


def is_hostname(name):
    """Checks if name is a valid RFC 1123 host name"""

    if not name or len(name) > 253:
        return False

    return all(HOSTNAME_LABEL.match(label)
               for label in name.rstrip(".").split("."))


def is_cidr(cidr):
    """Checks if cidr is a network in CIDR notation, e.g. 192.168.0.0/16"""

    if not isinstance(cidr, str) or "/" not in cidr:
        return False

    try:
        IPNetwork(cidr)
    except (AddrFormatError, ValueError):
        return False

    return True
