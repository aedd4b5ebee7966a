import os
import socket

import netaddr

from udprobe.core.errors import InvalidTarget
from udprobe.core.models import ScanTarget

ICMP_PROTO = socket.IPPROTO_ICMP


def is_single_ipv4(ip):
    """
    to check a value if its IPv4 address

    Args:
        ip: the value to check if its IPv4

    Returns:
         True if it's IPv4 otherwise False
    """
    ip = str(ip)
    return ip.count(".") == 3 and netaddr.valid_ipv4(ip)


def is_single_ipv6(ip):
    return netaddr.valid_ipv6(str(ip))


def parse_target(address):
    """
    Build a ScanTarget from a literal IPv4 address. Hostnames, ranges and
    IPv6 literals are rejected.
    """
    address = str(address).strip()
    if not is_single_ipv4(address):
        if is_single_ipv6(address):
            raise InvalidTarget(f"IPv6 targets are not supported: {address}")
        raise InvalidTarget(f"not an IPv4 address: {address}")
    return ScanTarget(address=address)


def address_family(target):
    return socket.AF_INET


def is_privileged():
    """Raw ICMP sockets need root on POSIX systems."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None:
        return False
    return geteuid() == 0
