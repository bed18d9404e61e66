"""Nodes and edges of the graph prepared for visualisation."""

from __future__ import annotations

import random
from dataclasses import dataclass

from surfacemap.graphdb import Edge, GraphDatabase, GraphError, Node

_HIDDEN_TYPES = frozenset({"source", "event", "response"})
_VIZ_PREDICATES = (
    "root",
    "cname_record",
    "a_record",
    "aaaa_record",
    "ptr_record",
    "service",
    "srv_record",
    "ns_record",
    "mx_record",
    "contains",
    "prefix",
)
_ADDRESS_RECORDS = ("a_record", "aaaa_record")


@dataclass
class VizNode:
    """A node as shown in a visualisation."""

    id: int
    type: str
    label: str
    title: str
    source: str
    actual_type: str


@dataclass(frozen=True)
class VizEdge:
    """An edge between two visualised nodes, by their ids."""

    from_id: int
    to_id: int
    title: str


def _random_index(length: int) -> int:
    if length == 1:
        return 0
    return random.randrange(length - 1)


class VizMixin:
    """Graph operations for visualisation.

    The host class provides ``db``, ``is_tld_node``, ``is_ptr_node``
    and ``read_as_description``.
    """

    db: GraphDatabase

    def viz_data(self, uuids: list[str]) -> tuple[list[VizNode], list[VizEdge]]:
        """Return the nodes and edges discovered by the events, newest event first."""
        nodes: list[VizNode] = []
        seen: set[str] = set()
        node_to_idx: dict[str, int] = {}

        for uuid in reversed(uuids):
            try:
                event = self.db.read_node(uuid, "event")
                discovered = self.db.read_out_edges(event)
            except GraphError:
                continue
            nodes.extend(self._viz_nodes(uuid, seen, node_to_idx, discovered))

        return nodes, self._viz_edges(uuids, nodes, node_to_idx)

    def _viz_nodes(
        self, uuid: str, seen: set[str], node_to_idx: dict[str, int], edges: list[Edge]
    ) -> list[VizNode]:
        nodes = []
        for edge in edges:
            node_id = self.db.node_to_id(edge.to_node)
            if not node_id or node_id in seen:
                continue
            seen.add(node_id)

            try:
                props = self.db.read_properties(edge.to_node, "type")
            except GraphError:
                continue
            if not props or props[0].value in _HIDDEN_TYPES:
                continue
            if self.is_tld_node(node_id):
                continue

            viz_node = self._build_viz_node(edge.to_node, props[0].value, uuid)
            if viz_node is not None:
                viz_node.id = len(node_to_idx)
                node_to_idx[node_id] = viz_node.id
                nodes.append(viz_node)
        return nodes

    def _event_indices(self, node: Node, uuid_idx: dict[str, int]) -> list[int]:
        try:
            events = self.db.read_in_edges(node, "DNS")
        except GraphError:
            return []
        return [uuid_idx.get(self.db.node_to_id(e.from_node), 0) for e in events]

    def _viz_edges(
        self, uuids: list[str], nodes: list[VizNode], node_to_idx: dict[str, int]
    ) -> list[VizEdge]:
        uuid_idx = {uuid: idx for idx, uuid in enumerate(uuids)}
        result = []

        for viz_node in nodes:
            try:
                node = self.db.read_node(viz_node.label, viz_node.actual_type)
                out_edges = self.db.read_out_edges(node, *_VIZ_PREDICATES)
            except GraphError:
                continue

            newest = 0
            for edge in out_edges:
                if edge.predicate in _ADDRESS_RECORDS:
                    newest = max([newest, *self._event_indices(edge.to_node, uuid_idx)])

            for edge in out_edges:
                if edge.predicate in _ADDRESS_RECORDS and newest not in self._event_indices(
                    edge.to_node, uuid_idx
                ):
                    continue
                to_id = node_to_idx.get(self.db.node_to_id(edge.to_node))
                if to_id is not None:
                    result.append(VizEdge(viz_node.id, to_id, edge.predicate))
        return result

    def _build_viz_node(self, node: Node, ntype: str, uuid: str) -> VizNode | None:
        node_id = self.db.node_to_id(node)
        try:
            edges = self.db.read_in_edges(node)
        except GraphError:
            return None

        sources = [e.predicate for e in edges if self.db.node_to_id(e.from_node) == uuid]
        if not sources:
            return None
        source = sources[_random_index(len(sources))]

        newtype = self._convert_node_type(node_id, ntype, edges)
        title = f"{newtype}: {node_id}"
        if newtype == "as":
            title += ", Desc: " + self.read_as_description(node_id)

        return VizNode(
            id=0,
            type=newtype,
            label=node_id,
            title=title,
            source=source,
            actual_type=ntype,
        )

    def _convert_node_type(self, node_id: str, ntype: str, edges: list[Edge]) -> str:
        if ntype == "ipaddr":
            return "address"
        if ntype != "fqdn":
            return ntype

        for edge in edges:
            if edge.predicate == "root":
                return "domain"
            if edge.predicate == "ns_record":
                return "ns"
            if edge.predicate == "mx_record":
                return "mx"
        if self.is_ptr_node(node_id):
            return "ptr"
        return "subdomain"