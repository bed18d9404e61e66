"""The discovery data model: events, names, netblocks and their links."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from surfacemap.domains import effective_tld_plus_one, public_suffix
from surfacemap.graphdb import Edge, GraphDatabase, GraphError, Node
from surfacemap.infrastructure import InfrastructureMixin
from surfacemap.migrate import MigrateMixin
from surfacemap.output import OutputMixin
from surfacemap.quadstore import IRI, Literal, is_iri, value_to_str
from surfacemap.sources import SourceMixin
from surfacemap.viz import VizMixin

_TYPE = IRI("type")
_EVENT = Literal("event")
_FQDN = Literal("fqdn")
_ROOT = IRI("root")
_DOMAIN = IRI("domain")
_FINISH_DELTA = timedelta(seconds=5)


def _now() -> datetime:
    return datetime.now().astimezone().replace(microsecond=0)


def _format(moment: datetime) -> str:
    return moment.isoformat()


def _parse(text: str) -> datetime | None:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.astimezone()


class Graph(InfrastructureMixin, OutputMixin, SourceMixin, MigrateMixin, VizMixin):
    """The network infrastructure data model kept in a graph database."""

    def __init__(self, database: GraphDatabase) -> None:
        if database is None:
            raise GraphError("Graph: a graph database is required")
        self.db = database
        self.already_closed = False
        # Latest finish time written for each event, to save round trips
        self._event_finishes: dict[str, str] = {}
        self._event_finish_lock = threading.Lock()

    def close(self) -> None:
        """Close the graph database, once."""
        if not self.already_closed:
            self.already_closed = True
            self.db.close()

    def __str__(self) -> str:
        return str(self.db)

    def insert_node_if_not_exist(self, node_id: str, ntype: str) -> Node:
        try:
            return self.db.read_node(node_id, ntype)
        except GraphError:
            return self.db.insert_node(node_id, ntype)

    def insert_edge(self, edge: Edge) -> None:
        self.db.insert_edge(edge)

    def read_node(self, node_id: str, ntype: str) -> Node:
        return self.db.read_node(node_id, ntype)

    def all_nodes_of_type(self, ntype: str, *events: str) -> list[Node]:
        """Return the nodes of the type, limited to those linked from the events if given."""
        nodes = []
        for node_id in self._node_ids_of_type(ntype, events):
            try:
                nodes.append(self.db.read_node(node_id, ntype))
            except GraphError:
                continue
        if not nodes:
            raise GraphError("Graph: AllNodesOfType: No nodes found")
        return nodes

    def _node_ids_of_type(self, ntype: str, events: tuple[str, ...]) -> list[str]:
        store = self.db.store
        wanted = Literal(ntype)
        with self.db.lock:
            if events:
                starts = list(dict.fromkeys(events))
                if ntype == "event":
                    candidates = starts
                else:
                    candidates = [
                        q.obj.value
                        for start in starts
                        for q in store.match(subject=IRI(start))
                        if is_iri(q.obj)
                    ]
            elif ntype == "event":
                candidates = [value_to_str(q.subject) for q in store.match(predicate=_TYPE)]
            else:
                candidates = [q.obj.value for q in store.match() if is_iri(q.obj)]
            return [
                c for c in dict.fromkeys(candidates) if store.contains(IRI(c), _TYPE, wanted)
            ]

    def dump_graph(self) -> str:
        return self.db.dump_graph()

    # Events

    def insert_event(self, event_id: str) -> Node:
        """Create the event node if needed and refresh its finish time every few seconds."""
        with self._event_finish_lock:
            try:
                node = self.db.read_node(event_id, "event")
            except GraphError:
                node = self.db.insert_node(event_id, "event")
                self.db.insert_property(node, "start", _format(_now()))

            now = _now()
            finish = self._event_finishes.get(event_id)
            stale = True
            if finish is not None:
                finish_time = _parse(finish)
                stale = finish_time is None or now - finish_time > _FINISH_DELTA
                if stale:
                    self.db.delete_property(node, "finish", finish)

            if stale:
                finish = _format(now)
                self.db.insert_property(node, "finish", finish)
                self._event_finishes[event_id] = finish
            return node

    def add_node_to_event(self, node: Node, source: str, tag: str, event_id: str) -> None:
        """Link the node to the event through the data source that found it."""
        if not source or not tag or not event_id:
            raise GraphError("Graph: AddNodeToEvent: Invalid arguments provided")
        event_node = self.insert_event(event_id)
        source_node = self.insert_source(source, tag)
        self.insert_edge(Edge("used", event_node, source_node))
        self.insert_edge(Edge(source, event_node, node))

    def in_event_scope(self, node: Node, uuid: str, *predicates: str) -> bool:
        """Report whether the event has an edge into the node."""
        try:
            edges = self.db.read_in_edges(node, *predicates)
        except GraphError:
            return False
        return any(self.db.node_to_id(e.from_node) == uuid for e in edges)

    def events_in_scope(self, *domains: str) -> list[str]:
        """Return the events that involved any of the domains."""
        store = self.db.store
        targets = [IRI(d) for d in domains]
        with self.db.lock:
            events = dict.fromkeys(
                value_to_str(q.subject) for q in store.match(predicate=_TYPE, obj=_EVENT)
            )
            return [
                e for e in events if any(store.contains(IRI(e), _DOMAIN, t) for t in targets)
            ]

    def event_list(self) -> list[str]:
        """Return the identifiers of every event in the graph."""
        try:
            nodes = self.all_nodes_of_type("event")
        except GraphError:
            return []
        return list(dict.fromkeys(self.db.node_to_id(n) for n in nodes))

    def event_fqdns(self, uuid: str) -> list[str]:
        """Return the names whose root domain belongs to the event."""
        store = self.db.store
        event = IRI(uuid)
        with self.db.lock:
            names: dict[str, None] = {}
            for quad in store.match(predicate=_TYPE, obj=_FQDN):
                name = value_to_str(quad.subject)
                for root in store.match(IRI(name), _ROOT):
                    if is_iri(root.obj) and store.contains(event, _DOMAIN, root.obj):
                        names.setdefault(name)
                        break
            return list(names)

    def event_domains(self, uuid: str) -> list[str]:
        """Return the domains that were involved in the event."""
        try:
            event = self.db.read_node(uuid, "event")
            edges = self.db.read_out_edges(event, "domain")
        except GraphError:
            return []
        return list(dict.fromkeys(d for d in (self.db.node_to_id(e.to_node) for e in edges) if d))

    def event_subdomains(self, *events: str) -> list[str]:
        """Return the names below a registered domain discovered during the events."""
        try:
            nodes = self.all_nodes_of_type("fqdn", *events)
        except GraphError:
            return []
        names = []
        for node in nodes:
            name = self.db.node_to_id(node)
            try:
                etld = effective_tld_plus_one(name)
            except ValueError:
                continue
            if etld != name:
                names.append(name)
        return names

    def event_date_range(self, uuid: str) -> tuple[datetime | None, datetime | None]:
        """Return the start and finish times of the event, None where unknown."""
        start = finish = None
        try:
            event = self.db.read_node(uuid, "event")
            props = self.db.read_properties(event, "start", "finish")
        except GraphError:
            return start, finish
        for prop in props:
            if prop.predicate == "start":
                start = _parse(prop.value)
            else:
                finish = _parse(prop.value)
        return start, finish

    # Names

    def insert_fqdn(self, name: str, source: str, tag: str, event_id: str) -> Node:
        """Add a name with its registered domain and top-level domain."""
        error = f"InsertFQDN: Failed to obtain a valid domain name for {name}"
        if not name:
            raise GraphError(error)
        tld = public_suffix(name)
        try:
            domain = effective_tld_plus_one(name)
        except ValueError as exc:
            raise GraphError(error) from exc
        if not tld or not domain:
            raise GraphError(error)

        try:
            return self.db.read_node(name, "fqdn")
        except GraphError:
            pass

        fqdn_node = self.db.insert_node(name, "fqdn")
        domain_node = self.insert_node_if_not_exist(domain, "fqdn")
        tld_node = self.insert_node_if_not_exist(tld, "fqdn")

        self.insert_edge(Edge("root", fqdn_node, domain_node))
        self.insert_edge(Edge("tld", domain_node, tld_node))

        self.add_node_to_event(fqdn_node, source, tag, event_id)
        self.add_node_to_event(domain_node, source, tag, event_id)
        self._add_domain_edge(domain_node, event_id)
        self.add_node_to_event(tld_node, source, tag, event_id)
        return fqdn_node

    def _add_domain_edge(self, node: Node, event_id: str) -> None:
        event = self.db.read_node(event_id, "event")
        self.insert_edge(Edge("domain", event, node))

    def _insert_alias(
        self, fqdn: str, target: str, predicate: str, source: str, tag: str, event_id: str
    ) -> None:
        fqdn_node = self.insert_fqdn(fqdn, source, tag, event_id)
        target_node = self.insert_fqdn(target, source, tag, event_id)
        self.insert_edge(Edge(predicate, fqdn_node, target_node))

    def insert_cname(self, fqdn: str, target: str, source: str, tag: str, event_id: str) -> None:
        self._insert_alias(fqdn, target, "cname_record", source, tag, event_id)

    def is_cname_node(self, fqdn: str) -> bool:
        return self._check_for_out_edge(fqdn, "cname_record")

    def insert_ptr(self, fqdn: str, target: str, source: str, tag: str, event_id: str) -> None:
        self._insert_alias(fqdn, target, "ptr_record", source, tag, event_id)

    def is_ptr_node(self, fqdn: str) -> bool:
        return self._check_for_out_edge(fqdn, "ptr_record")

    def insert_srv(
        self, fqdn: str, service: str, target: str, source: str, tag: str, event_id: str
    ) -> None:
        """Link the service name to the subdomain and to the target of the record."""
        self._insert_alias(service, fqdn, "service", source, tag, event_id)
        self._insert_alias(service, target, "srv_record", source, tag, event_id)

    def insert_ns(self, fqdn: str, target: str, source: str, tag: str, event_id: str) -> None:
        self._insert_alias(fqdn, target, "ns_record", source, tag, event_id)

    def is_ns_node(self, fqdn: str) -> bool:
        return self._check_for_in_edge(fqdn, "ns_record")

    def insert_mx(self, fqdn: str, target: str, source: str, tag: str, event_id: str) -> None:
        self._insert_alias(fqdn, target, "mx_record", source, tag, event_id)

    def is_mx_node(self, fqdn: str) -> bool:
        return self._check_for_in_edge(fqdn, "mx_record")

    def is_root_domain_node(self, fqdn: str) -> bool:
        return self._check_for_in_edge(fqdn, "root")

    def is_tld_node(self, fqdn: str) -> bool:
        return self._check_for_in_edge(fqdn, "tld")

    def _check_for_in_edge(self, node_id: str, predicate: str) -> bool:
        try:
            node = self.db.read_node(node_id, "fqdn")
            return self.db.count_in_edges(node, predicate) > 0
        except GraphError:
            return False

    def _check_for_out_edge(self, node_id: str, predicate: str) -> bool:
        try:
            node = self.db.read_node(node_id, "fqdn")
            return self.db.count_out_edges(node, predicate) > 0
        except GraphError:
            return False

    # Netblocks

    def insert_netblock(self, cidr: str, source: str, tag: str, event_id: str) -> Node:
        """Add a netblock and tie it to a source and event."""
        node = self.insert_node_if_not_exist(cidr, "netblock")
        self.add_node_to_event(node, source, tag, event_id)
        return node