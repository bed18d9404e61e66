"""Parsers for comma-separated option values."""

from __future__ import annotations

import ipaddress
import re
from typing import Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_INT_RE = re.compile(r"[+-]?[0-9]+")


def parse_strings(text: str) -> list[str]:
    """Split on commas and trim each item."""
    if not text:
        raise ValueError("String parsing failed")
    return [part.strip() for part in text.split(",")]


def parse_ints(text: str) -> list[int]:
    """Split on commas and parse each item as a decimal integer."""
    if not text:
        raise ValueError("Integer parsing failed")
    numbers = []
    for part in text.split(","):
        token = part.strip()
        if not _INT_RE.fullmatch(token):
            raise ValueError(f"invalid integer: {token!r}")
        numbers.append(int(token))
    return numbers


def _parse_ip(text: str) -> IPAddress | None:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def range_hosts(start: IPAddress | str, end: IPAddress | str) -> list[IPAddress]:
    """Return every address from start to end, inclusive."""
    first = ipaddress.ip_address(start)
    last = ipaddress.ip_address(end)
    if first.version != last.version or int(first) > int(last):
        return []
    kind = type(first)
    return [kind(n) for n in range(int(first), int(last) + 1)]


def parse_ip_range(text: str) -> list[IPAddress]:
    """Parse 'start-end' or 'start-N', where N replaces the last byte of start."""
    first, sep, rest = text.partition("-")
    if not sep:
        raise ValueError(f"{text} is not a valid IP range")
    second = rest.split("-")[0]
    start = _parse_ip(first)
    end = _parse_ip(second)
    if end is None and start is not None and _INT_RE.fullmatch(second):
        end = type(start)((int(start) & ~0xFF) | (int(second) & 0xFF))
    if start is None or end is None:
        raise ValueError(f"{text} is not a valid IP range")
    hosts = range_hosts(start, end)
    if not hosts:
        raise ValueError(f"{text} is not a valid IP range")
    return hosts


def parse_ips(text: str) -> list[IPAddress]:
    """Parse comma-separated addresses and address ranges."""
    if not text:
        raise ValueError("IP address parsing failed")
    addresses: list[IPAddress] = []
    for item in text.split(","):
        try:
            addresses.extend(parse_ip_range(item))
            continue
        except ValueError:
            pass
        addr = _parse_ip(item)
        if addr is None:
            raise ValueError(f"{item} is not a valid IP address or range")
        addresses.append(addr)
    return addresses


def parse_cidrs(text: str) -> list[IPNetwork]:
    """Parse comma-separated CIDR blocks; host bits are masked off."""
    if not text:
        raise ValueError(f"{text} is not a valid CIDR")
    networks: list[IPNetwork] = []
    for cidr in text.split(","):
        _, slash, prefix = cidr.partition("/")
        if not slash or not prefix.isdigit():
            raise ValueError(f"Failed to parse {cidr} as a CIDR")
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError as exc:
            raise ValueError(f"Failed to parse {cidr} as a CIDR") from exc
    return networks