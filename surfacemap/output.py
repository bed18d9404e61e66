"""Building the findings of an event from the graph."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Union

from surfacemap.domains import effective_tld_plus_one
from surfacemap.graphdb import GraphDatabase, GraphError
from surfacemap.infrastructure import ASNCache
from surfacemap.quadstore import IRI, Literal, value_to_str

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

NOT_DATA_SOURCES = frozenset(
    {
        "tld",
        "root",
        "domain",
        "cname_record",
        "ptr_record",
        "mx_record",
        "ns_record",
        "srv_record",
        "service",
    }
)

_TRUSTED_TAGS = frozenset({"none", "archive", "axfr", "cert", "dns"})
_TYPE = IRI("type")
_FQDN = Literal("fqdn")


def trusted_tag(tag: str) -> bool:
    """Report whether data carrying this tag is taken as reliable."""
    return tag in _TRUSTED_TAGS


@dataclass
class AddressInfo:
    """An address of a discovered name, with what is known of its network."""

    address: IPAddress
    asn: int = 0
    cidr_str: str = ""
    netblock: IPNetwork | None = None
    description: str = ""


@dataclass
class Output:
    """A discovered name with its sources and addresses."""

    name: str
    domain: str = ""
    addresses: list[AddressInfo] = field(default_factory=list)
    tag: str = ""
    sources: list[str] = field(default_factory=list)


def _duplicate(seen: set[str], name: str) -> bool:
    if name in seen:
        return True
    seen.add(name)
    return False


class OutputMixin:
    """Graph operations that report the findings of an event.

    The host class provides ``db``, ``event_fqdns``, ``names_to_addrs``
    and ``source_tag``.
    """

    db: GraphDatabase

    def event_output(
        self,
        uuid: str,
        seen: set[str] | None = None,
        asninfo: bool = False,
        cache: ASNCache | None = None,
    ) -> list[Output]:
        """Return the event's names with addresses that are not yet in ``seen``.

        The names returned are added to ``seen``.
        """
        if seen is None:
            seen = set()

        names = [name for name in self.event_fqdns(uuid) if name not in seen]
        lookup = {o.name: o for o in self._build_name_info(uuid, names)}

        try:
            pairs = self.names_to_addrs(uuid, *names)
        except GraphError:
            return []

        for pair in pairs:
            if not pair.name or not pair.addr:
                continue
            out = lookup.get(pair.name)
            if out is None:
                continue
            try:
                out.addresses.append(AddressInfo(ipaddress.ip_address(pair.addr)))
            except ValueError:
                continue

        if not asninfo or cache is None:
            return [o for o in lookup.values() if not _duplicate(seen, o.name)]

        results = []
        for out in lookup.values():
            enriched = []
            for info in out.addresses:
                record = cache.addr_search(str(info.address))
                if record is None:
                    continue
                try:
                    netblock = ipaddress.ip_network(record.prefix, strict=False)
                except ValueError:
                    netblock = None
                enriched.append(
                    AddressInfo(
                        address=info.address,
                        asn=record.asn,
                        cidr_str=record.prefix,
                        netblock=netblock,
                        description=record.description,
                    )
                )
            out.addresses = enriched
            if out.addresses and not _duplicate(seen, out.name):
                results.append(out)
        return results

    def event_names(self, uuid: str, seen: set[str] | None = None) -> list[Output]:
        """Return the event's names not yet in ``seen``, adding them to it."""
        if seen is None:
            seen = set()
        names = [name for name in self.event_fqdns(uuid) if name not in seen]
        return [o for o in self._build_name_info(uuid, names) if not _duplicate(seen, o.name)]

    def _build_name_info(self, uuid: str, names: list[str]) -> list[Output]:
        store = self.db.store
        event = IRI(uuid)
        results: dict[str, Output] = {}

        with self.db.lock:
            if names:
                candidates = list(dict.fromkeys(names))
            else:
                candidates = list(
                    dict.fromkeys(
                        value_to_str(q.subject) for q in store.match(predicate=_TYPE, obj=_FQDN)
                    )
                )
            for name in candidates:
                node = IRI(name)
                if not store.contains(node, _TYPE, _FQDN):
                    continue
                for quad in store.match(subject=event, obj=node):
                    pred = value_to_str(quad.predicate)
                    if pred in NOT_DATA_SOURCES:
                        continue
                    out = results.setdefault(name, Output(name=name))
                    if pred not in out.sources:
                        out.sources.append(pred)

        source_tags: dict[str, str] = {}
        final = []
        for out in results.values():
            try:
                out.domain = effective_tld_plus_one(out.name)
            except ValueError:
                continue
            if not out.sources:
                continue
            out.tag = self._select_tag(out.sources, source_tags)
            final.append(out)
        return final

    def _select_tag(self, sources: list[str], source_tags: dict[str, str]) -> str:
        tag = ""
        for source in sources:
            if source not in source_tags:
                source_tags[source] = self.source_tag(source)
            tag = source_tags[source]
            if trusted_tag(tag):
                break
        return tag