"""Addresses, netblocks and autonomous systems in the graph."""

from __future__ import annotations

import ipaddress
import threading
from dataclasses import dataclass, replace
from typing import Iterator, Union

from surfacemap.graphdb import Edge, GraphDatabase, GraphError, Node
from surfacemap.quadstore import IRI, Literal, QuadStore, is_iri, value_to_str

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

DNS_TAG = "dns"
RIR_TAG = "rir"

_TYPE = IRI("type")
_DNS = IRI("DNS")
_A_RECORD = IRI("a_record")
_AAAA_RECORD = IRI("aaaa_record")
_CNAME_RECORD = IRI("cname_record")
_SRV_RECORD = IRI("srv_record")
_FQDN = Literal("fqdn")
_IPADDR = Literal("ipaddr")
_MAX_ALIAS_HOPS = 10


@dataclass(frozen=True)
class NameAddrPair:
    """A DNS name and an IP address it eventually resolves to."""

    name: str
    addr: str


@dataclass(frozen=True)
class ASNRecord:
    """What is known about the autonomous system announcing a prefix."""

    asn: int
    prefix: str
    address: str = ""
    description: str = ""
    tag: str = ""
    source: str = ""


class ASNCache:
    """Prefix announcements, searched by the most specific prefix holding an address."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[IPNetwork, ASNRecord] = {}

    def update(self, record: ASNRecord) -> None:
        """Add or replace the record for its prefix; raise ValueError on a bad prefix."""
        network = ipaddress.ip_network(record.prefix, strict=False)
        with self._lock:
            self._records[network] = record

    def addr_search(self, addr: str) -> ASNRecord | None:
        """Return the record of the narrowest prefix containing the address."""
        try:
            ip = ipaddress.ip_address(addr)
        except ValueError:
            return None
        with self._lock:
            matches = [
                (network, record)
                for network, record in self._records.items()
                if network.version == ip.version and ip in network
            ]
        if not matches:
            return None
        _, record = max(matches, key=lambda item: item[0].prefixlen)
        return replace(record, address=str(ip))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _out_targets(store: QuadStore, node: str, predicates: tuple[IRI, ...]) -> Iterator[str]:
    for predicate in predicates:
        for quad in store.match(IRI(node), predicate):
            if is_iri(quad.obj):
                yield quad.obj.value


class InfrastructureMixin:
    """Graph operations for addresses and autonomous systems.

    The host class provides ``db``, ``insert_node_if_not_exist``,
    ``add_node_to_event``, ``insert_fqdn``, ``insert_netblock``,
    ``insert_edge`` and ``all_nodes_of_type``.
    """

    db: GraphDatabase
    already_closed: bool = False

    def insert_address(self, addr: str, source: str, tag: str, event_id: str) -> Node:
        """Create an IP address node and tie it to a source and event."""
        node = self.insert_node_if_not_exist(addr, "ipaddr")
        self.add_node_to_event(node, source, tag, event_id)
        return node

    def _event_addresses(self, node: str, event: IRI) -> Iterator[str]:
        store = self.db.store
        for addr in _out_targets(store, node, (_A_RECORD, _AAAA_RECORD)):
            if store.contains(IRI(addr), _TYPE, _IPADDR) and store.contains(event, _DNS, IRI(addr)):
                yield addr

    def names_to_addrs(self, uuid: str, *names: str) -> list[NameAddrPair]:
        """Pair each name with the addresses it resolves to, following SRV and CNAME records."""
        store = self.db.store
        event = IRI(uuid)
        wanted = set(names)
        found: dict[str, dict[str, None]] = {}

        with self.db.lock:
            if names:
                starts = list(dict.fromkeys(names))
            else:
                starts = list(
                    dict.fromkeys(
                        quad.obj.value
                        for quad in store.match(subject=event)
                        if is_iri(quad.obj) and store.contains(quad.obj, _TYPE, _FQDN)
                    )
                )

            def collect(frontier: list[tuple[str, str]]) -> None:
                for name, node in frontier:
                    if wanted and name not in wanted:
                        continue
                    for addr in self._event_addresses(node, event):
                        found.setdefault(name, {}).setdefault(addr)

            frontier = [(name, name) for name in starts]
            collect(frontier)
            for hop in range(1, _MAX_ALIAS_HOPS + 1):
                predicates = (_SRV_RECORD, _CNAME_RECORD) if hop == 1 else (_CNAME_RECORD,)
                frontier = list(
                    dict.fromkeys(
                        (name, target)
                        for name, node in frontier
                        for target in _out_targets(store, node, predicates)
                    )
                )
                if not frontier:
                    break
                collect(frontier)

        if not found:
            raise GraphError(f"{self}: NamesToAddrs: No addresses were discovered")
        return [NameAddrPair(name, addr) for name, addrs in found.items() for addr in addrs]

    def _insert_address_record(
        self, predicate: str, fqdn: str, addr: str, source: str, tag: str, event_id: str
    ) -> None:
        fqdn_node = self.insert_fqdn(fqdn, source, tag, event_id)
        ip_node = self.insert_address(addr, "DNS", DNS_TAG, event_id)
        self.insert_edge(Edge(predicate, fqdn_node, ip_node))

    def insert_a(self, fqdn: str, addr: str, source: str, tag: str, event_id: str) -> None:
        """Create the name, the address and the A record between them."""
        self._insert_address_record("a_record", fqdn, addr, source, tag, event_id)

    def insert_aaaa(self, fqdn: str, addr: str, source: str, tag: str, event_id: str) -> None:
        """Create the name, the address and the AAAA record between them."""
        self._insert_address_record("aaaa_record", fqdn, addr, source, tag, event_id)

    def heal_address_nodes(self, cache: ASNCache | None, uuid: str) -> None:
        """Link address nodes of the event to the netblocks that contain them."""
        if cache is None:
            cache = ASNCache()
            self.asn_cache_fill(cache)

        cidr_nodes: dict[str, Node] = {}
        for node in self.all_nodes_of_type("ipaddr", uuid):
            addr = self.db.node_to_id(node)
            record = cache.addr_search(addr)
            if record is None:
                continue

            cidr = cidr_nodes.get(record.prefix)
            if cidr is None:
                try:
                    cidr = self.db.read_node(record.prefix, "netblock")
                except GraphError:
                    try:
                        self.insert_infrastructure(
                            record.asn,
                            record.description,
                            addr,
                            record.prefix,
                            record.source,
                            record.tag,
                            uuid,
                        )
                        cidr = self.db.read_node(record.prefix, "netblock")
                    except GraphError:
                        continue
                cidr_nodes[record.prefix] = cidr

            self.insert_edge(Edge("contains", cidr, node))

    def insert_as(self, asn: str, desc: str, source: str, tag: str, event_id: str) -> Node:
        """Add or update an autonomous system and its description."""
        node = self.insert_node_if_not_exist(asn, "as")
        try:
            props = self.db.read_properties(node, "description")
        except GraphError:
            props = []

        insert = True
        if props:
            insert = False
            if props[0].value != desc:
                try:
                    self.db.delete_property(node, props[0].predicate, props[0].value)
                    insert = True
                except GraphError:
                    pass
        if insert:
            self.db.insert_property(node, "description", desc)

        self.add_node_to_event(node, source, tag, event_id)
        return node

    def insert_infrastructure(
        self, asn: int, desc: str, addr: str, cidr: str, source: str, tag: str, event_id: str
    ) -> None:
        """Add an address, the netblock holding it and the system announcing it."""
        ip_node = self.insert_address(addr, "DNS", DNS_TAG, event_id)
        cidr_node = self.insert_netblock(cidr, source, tag, event_id)
        self.insert_edge(Edge("contains", cidr_node, ip_node))
        as_node = self.insert_as(str(asn), desc, source, tag, event_id)
        self.insert_edge(Edge("prefix", as_node, cidr_node))

    def _node_description(self, node: Node) -> str:
        try:
            props = self.db.read_properties(node, "description")
        except GraphError:
            return ""
        return props[0].value if props else ""

    def read_as_description(self, asn: str) -> str:
        """Return the description of an autonomous system, or '' if unknown."""
        try:
            node = self.db.read_node(asn, "as")
        except GraphError:
            return ""
        return self._node_description(node)

    def asn_cache_fill(self, cache: ASNCache) -> None:
        """Load every announced prefix in the graph into the cache."""
        for as_node in self.all_nodes_of_type("as"):
            try:
                asn = int(self.db.node_to_id(as_node))
            except ValueError:
                continue
            if asn <= 0:
                continue

            desc = self._node_description(as_node)
            if self.already_closed:
                return
            try:
                edges = self.db.read_out_edges(as_node, "prefix")
            except GraphError:
                continue

            for edge in edges:
                if self.already_closed:
                    return
                try:
                    network = ipaddress.ip_network(value_to_str(edge.to_node), strict=False)
                except ValueError:
                    continue
                cache.update(
                    ASNRecord(
                        asn=asn,
                        prefix=str(network),
                        address=str(network.network_address),
                        description=desc,
                        tag=RIR_TAG,
                        source=str(self),
                    )
                )