"""Summaries, banners and output lines for the command-line tools."""

from __future__ import annotations

import ipaddress
import os
import sys
from dataclasses import dataclass, field
from typing import IO, Iterable

from surfacemap.output import AddressInfo, Output

VERSION = "v0.1.0"
AUTHOR = "surfacemap project"
DESCRIPTION = "In-depth Attack Surface Mapping and Asset Discovery"
TITLE = "surfacemap "
TAGLINE = "attack surface mapping"

BANNER = r"""
   _____ _   _ ____  _____ _    ____ _____ __  __    _    ____
  / ____| | | |  _ \|  ___/ \  / ___| ____|  \/  |  / \  |  _ \
  \___ \| | | | |_) | |_ / _ \| |   |  _| | |\/| | / _ \ | |_) |
   ___) | |_| |  _ <|  _/ ___ \ |___| |___| |  | |/ ___ \|  __/
  |____/ \___/|_| \_\_|/_/   \_\____|_____|_|  |_/_/   \_\_|
"""

_RULE = "----------" * 8
_RIGHTMOST = 76
_LINE_WIDTH = 80
_KEEP = frozenset(".-/ ")

_RED = "91"
_GREEN = "92"
_YELLOW = "93"
_BLUE = "94"


@dataclass
class ASNSummaryData:
    """An autonomous system and how many addresses fell into each of its netblocks."""

    name: str
    netblocks: dict[str, int] = field(default_factory=dict)


class _Painter:
    """Wraps text in terminal colour codes when writing to a terminal."""

    def __init__(self, out: IO[str]) -> None:
        isatty = getattr(out, "isatty", None)
        self.enabled = (
            callable(isatty)
            and bool(isatty())
            and "NO_COLOR" not in os.environ
            and os.environ.get("TERM") != "dumb"
        )

    def __call__(self, text: str, code: str) -> str:
        if not self.enabled:
            return text
        return f"\x1b[{code}m{text}\x1b[0m"


def update_summary_data(
    output: Output, tags: dict[str, int], asns: dict[int, ASNSummaryData]
) -> None:
    """Count the output's tag and the netblocks of its addresses."""
    tags[output.tag] = tags.get(output.tag, 0) + 1

    for addr in output.addresses:
        if not addr.cidr_str:
            continue
        data = asns.setdefault(addr.asn, ASNSummaryData(name=addr.description))
        data.netblocks[addr.cidr_str] = data.netblocks.get(addr.cidr_str, 0) + 1


def print_enumeration_summary(
    total: int,
    tags: dict[str, int],
    asns: dict[int, ASNSummaryData],
    demo: bool = False,
    out: IO[str] | None = None,
) -> None:
    """Write the summary of an enumeration, by default to standard error."""
    if out is None:
        out = sys.stderr
    paint = _Painter(out)

    out.write("\n")
    header = TITLE + VERSION
    out.write(paint(header, _BLUE))
    out.write(paint(" " * (_LINE_WIDTH - (len(header) + len(TAGLINE))), _BLUE))
    out.write(paint(TAGLINE + "\n", _BLUE))
    out.write(paint(_RULE, _BLUE))
    out.write(f"\n{paint(str(total), _YELLOW)}{paint(' names discovered - ', _GREEN)}")

    stats = [f"{paint(tag, _GREEN)}: {paint(str(count), _YELLOW)}" for tag, count in tags.items()]
    out.write(paint(", ", _GREEN).join(stats))
    out.write("\n")

    if not asns:
        return

    out.write(paint(_RULE, _BLUE))
    out.write("\n")
    for asn, data in asns.items():
        asnstr = str(asn)
        datastr = data.name
        if demo and asn > 0:
            asnstr = censor_string(asnstr, 0, len(asnstr))
            datastr = censor_string(datastr, 0, len(datastr))
        out.write(
            f"{paint('ASN: ', _BLUE)}{paint(asnstr, _YELLOW)} "
            f"{paint('-', _GREEN)} {paint(datastr, _GREEN)}\n"
        )

        for cidr, ips in data.netblocks.items():
            cidrstr = _censor_netblock(cidr) if demo else cidr
            countstr = f"\t{str(ips):<4}"
            cidrstr = f"\t{cidrstr:<18}"
            out.write(
                f"{paint(cidrstr, _YELLOW)}{paint(countstr, _YELLOW)} "
                f"{paint('Subdomain Name(s)', _BLUE)}\n"
            )


def print_banner(out: IO[str] | None = None) -> None:
    """Write the banner shared by all tools, by default to standard error."""
    if out is None:
        out = sys.stderr
    paint = _Painter(out)

    out.write(paint(BANNER, _RED) + "\n")
    out.write(" " * (_RIGHTMOST - len(VERSION)) + paint(VERSION, _YELLOW) + "\n")
    out.write(" " * (_RIGHTMOST - len(AUTHOR)) + paint(AUTHOR, _YELLOW) + "\n")
    out.write(" " * (_RIGHTMOST - len(DESCRIPTION)) + paint(f"{DESCRIPTION}\n\n\n", _YELLOW))


def censor_string(text: str, start: int, end: int) -> str:
    """Replace the characters in [start, end) with 'x', keeping separators.

    Raises IndexError when a non-empty range falls outside the text.
    """
    chars = list(text)
    if start < end and (start < 0 or end > len(chars)):
        raise IndexError(f"censor range {start}:{end} is outside a text of length {len(chars)}")
    for i in range(start, end):
        if chars[i] not in _KEEP:
            chars[i] = "x"
    return "".join(chars)


def _censor_domain(text: str) -> str:
    return censor_string(text, text.find("."), len(text))


def _censor_ip(text: str) -> str:
    return censor_string(text, 0, text.rfind("."))


def _censor_netblock(text: str) -> str:
    return censor_string(text, 0, text.find("/"))


def output_line_parts(out: Output, src: bool, addrs: bool, demo: bool) -> tuple[str, str, str]:
    """Return the source, name and address parts of the line printed for an output."""
    source = ""
    ips = ""
    if src:
        source = f"{'[' + out.sources[0] + '] ':<18}"
    if addrs:
        shown = [str(a.address) for a in out.addresses]
        if demo:
            shown = [_censor_ip(a) for a in shown]
        ips = ",".join(shown) or "N/A"
    name = _censor_domain(out.name) if demo else out.name
    return source, name, ips


def desired_addr_types(
    addrs: Iterable[AddressInfo], ipv4: bool, ipv6: bool
) -> list[AddressInfo]:
    """Keep only the address families asked for; asking for neither keeps all."""
    addrs = list(addrs)
    if not ipv4 and not ipv6:
        return addrs

    keep = []
    for addr in addrs:
        version = ipaddress.ip_address(addr.address).version
        if version == 4 and not ipv4:
            continue
        if version == 6 and not ipv6:
            continue
        keep.append(addr)
    return keep