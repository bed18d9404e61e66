"""A node, edge and property graph kept on top of a quad store."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from surfacemap.quadstore import IRI, Literal, QuadStore, Value, is_iri, value_to_str

Node = str

_TYPE = IRI("type")
_DATA_FILE = "quads.json"


class GraphError(Exception):
    """Raised when a graph operation cannot be carried out."""


@dataclass(frozen=True)
class Edge:
    """A named link from one node to another."""

    predicate: str
    from_node: Node
    to_node: Node


@dataclass(frozen=True)
class Property:
    """A named literal value attached to a node."""

    predicate: str
    value: str


def _parse_options(options: str) -> dict[str, object]:
    parsed: dict[str, object] = {}
    for opt in options.split(","):
        pieces = opt.split("=")
        if len(pieces) != 2:
            continue
        name, value = pieces
        if value == "true":
            parsed[name] = True
        elif value == "false":
            parsed[name] = False
        else:
            parsed[name] = value
    return parsed


def _encode(value: Value) -> list[str]:
    return ["iri" if is_iri(value) else "lit", value.value]


def _decode(pair: list[str]) -> Value:
    kind, text = pair
    return IRI(text) if kind == "iri" else Literal(text)


class GraphDatabase:
    """Nodes are IRIs with a 'type' literal; edges link IRIs; properties hold literals."""

    def __init__(
        self,
        store: QuadStore | None = None,
        name: str = "memory",
        path: Path | None = None,
        no_sync: bool = False,
    ) -> None:
        self.lock = threading.RLock()
        self._store = store if store is not None else QuadStore()
        self._name = name
        self._path = path
        self._is_local = path is not None
        self._no_sync = no_sync

    @classmethod
    def memory(cls) -> "GraphDatabase":
        """Create a temporary graph held only in memory."""
        return cls()

    @classmethod
    def open(cls, system: str, path: str, options: str = "") -> "GraphDatabase":
        """Open a graph of the named system kept at the given path."""
        if system not in ("local", "mysql", "postgres"):
            raise GraphError(f"unknown graph database system: {system!r}")
        opts = _parse_options(options)
        if not path:
            raise GraphError("a path is required to open a graph database")
        if system != "local":
            raise GraphError(f"no driver is available for the {system} graph database")

        no_sync = bool(opts.get("nosync", False))
        directory = Path(path)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise GraphError(f"failed to create the graph directory {path}: {exc}") from exc
        store = QuadStore()
        data_file = directory / _DATA_FILE
        if data_file.exists():
            try:
                records = json.loads(data_file.read_text(encoding="utf-8"))
                store.add_quads((_decode(s), _decode(p), _decode(o)) for s, p, o in records)
            except (OSError, ValueError, TypeError) as exc:
                raise GraphError(f"failed to load the graph at {path}: {exc}") from exc
        return cls(store, name=system, path=directory, no_sync=no_sync)

    @property
    def store(self) -> QuadStore:
        return self._store

    def _save(self) -> None:
        if self._path is None or self._store.closed:
            return
        records = [[_encode(q.subject), _encode(q.predicate), _encode(q.obj)] for q in self._store]
        fd, tmp = tempfile.mkstemp(dir=self._path, prefix=".quads-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(records, handle)
            os.replace(tmp, self._path / _DATA_FILE)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise GraphError(f"{self}: failed to write the graph: {exc}") from exc

    def _changed(self) -> None:
        if self._path is not None and not self._no_sync:
            self._save()

    @property
    def _check_existing(self) -> bool:
        return not (self._is_local and self._no_sync)

    def close(self) -> None:
        """Write out a stored graph and release it."""
        with self.lock:
            if self._store.closed:
                return
            self._save()
            self._store.close()

    def __str__(self) -> str:
        return self._name

    def dump_graph(self) -> str:
        """Return every quad in the graph, one per line."""
        with self.lock:
            return "".join(f"{q.subject} -> {q.predicate} -> {q.obj}\n" for q in self._store)

    def node_to_id(self, node: Node) -> str:
        if not isinstance(node, str):
            raise TypeError(f"graph nodes are strings, not {type(node).__name__}")
        return node

    def _node_exists(self, node_id: str, ntype: str = "") -> bool:
        obj = Literal(ntype) if ntype else None
        return next(self._store.match(IRI(node_id), _TYPE, obj), None) is not None

    def _valid_id(self, node: Node, operation: str) -> str:
        nstr = self.node_to_id(node)
        if not nstr or not self._node_exists(nstr):
            raise GraphError(f"{self}: {operation}: Invalid node reference argument")
        return nstr

    def all_nodes_of_type(self, *ntypes: str) -> list[Node]:
        """Return the distinct nodes having any of the types, or any type at all."""
        with self.lock:
            wanted = {Literal(t) for t in ntypes}
            nodes: dict[str, None] = {}
            for quad in self._store.match(predicate=_TYPE):
                if wanted and quad.obj not in wanted:
                    continue
                nodes.setdefault(value_to_str(quad.subject))
            if not nodes:
                raise GraphError(f"{self}: AllNodesOfType: No nodes found")
            return list(nodes)

    def all_out_nodes(self, node: Node) -> list[Node]:
        """Return the distinct nodes that the node has out edges to."""
        with self.lock:
            nstr = self.node_to_id(node)
            nodes: dict[str, None] = {}
            for quad in self._store.match(subject=IRI(nstr)):
                if is_iri(quad.obj) and self._node_exists(quad.obj.value):
                    nodes.setdefault(quad.obj.value)
            if not nodes:
                raise GraphError(f"{self}: AllOutNodes: No nodes found that {nstr} has out edges to")
            return list(nodes)

    def insert_node(self, node_id: str, ntype: str) -> Node:
        with self.lock:
            if not node_id or not ntype:
                raise GraphError(f"{self}: InsertNode: Empty required arguments")
            if self._node_exists(node_id, ntype):
                return node_id
            self._store.add_quad(IRI(node_id), _TYPE, Literal(ntype))
            self._changed()
            return node_id

    def read_node(self, node_id: str, ntype: str) -> Node:
        with self.lock:
            if not node_id or not ntype:
                raise GraphError(f"{self}: ReadNode: Empty required arguments")
            if not self._node_exists(node_id, ntype):
                raise GraphError(f"{self}: ReadNode: Node {node_id} does not exist")
            return node_id

    def delete_node(self, node: Node) -> None:
        """Remove every quad that has the node as its subject."""
        with self.lock:
            node_id = self.node_to_id(node)
            if not node_id:
                raise GraphError(f"{self}: DeleteNode: Empty node id provided")
            if not self._node_exists(node_id):
                raise GraphError(f"{self}: DeleteNode: Node {node_id} does not exist")
            for quad in list(self._store.match(subject=IRI(node_id))):
                self._store.remove_quad(*quad)
            self._changed()

    def write_node_quads(self, other: "GraphDatabase", nodes: Iterable[Node]) -> None:
        """Copy the out quads of the nodes in another graph into this one."""
        with self.lock:
            quads = [
                quad
                for node in nodes
                for quad in other.store.match(subject=IRI(other.node_to_id(node)))
            ]
            if quads:
                self._store.add_quads(quads)
                self._changed()

    def insert_edge(self, edge: Edge) -> None:
        with self.lock:
            if not edge.predicate:
                raise GraphError(f"{self}: InsertEdge: Empty edge predicate")
            from_id = self.node_to_id(edge.from_node)
            if not from_id or not self._node_exists(from_id):
                raise GraphError(f"{self}: InsertEdge: Invalid from node")
            to_id = self.node_to_id(edge.to_node)
            if not to_id or not self._node_exists(to_id):
                raise GraphError(f"{self}: InsertEdge: Invalid to node")
            if self._store.add_quad(IRI(from_id), IRI(edge.predicate), IRI(to_id)):
                self._changed()

    def _linked(self, nstr: str, predicates: tuple[str, ...], outgoing: bool) -> Iterator[tuple[str, str]]:
        wanted = set(predicates)
        quads = self._store.match(subject=IRI(nstr)) if outgoing else self._store.match(obj=IRI(nstr))
        for quad in quads:
            pred = value_to_str(quad.predicate)
            if wanted and pred not in wanted:
                continue
            other = quad.obj if outgoing else quad.subject
            if is_iri(other) and self._node_exists(other.value):
                yield pred, other.value

    def read_edges(self, node: Node, *predicates: str) -> list[Edge]:
        """Return the in and out edges of the node."""
        edges: list[Edge] = []
        for reader in (self.read_in_edges, self.read_out_edges):
            try:
                edges.extend(reader(node, *predicates))
            except GraphError:
                pass
        if not edges:
            raise GraphError(
                f"{self}: ReadEdges: Failed to discover edges for the node {self.node_to_id(node)}"
            )
        return edges

    def count_edges(self, node: Node, *predicates: str) -> int:
        try:
            count = self.count_in_edges(node, *predicates)
        except GraphError as exc:
            raise GraphError(f"{self}: CountEdges: {exc}") from exc
        try:
            count += self.count_out_edges(node, *predicates)
        except GraphError:
            pass
        return count

    def read_in_edges(self, node: Node, *predicates: str) -> list[Edge]:
        with self.lock:
            nstr = self._valid_id(node, "ReadInEdges")
            edges = [Edge(pred, other, node) for pred, other in self._linked(nstr, predicates, False)]
            if not edges:
                raise GraphError(
                    f"{self}: ReadInEdges: Failed to discover edges coming into the node {nstr}"
                )
            return edges

    def count_in_edges(self, node: Node, *predicates: str) -> int:
        with self.lock:
            nstr = self._valid_id(node, "CountInEdges")
            return sum(1 for _ in self._linked(nstr, predicates, False))

    def read_out_edges(self, node: Node, *predicates: str) -> list[Edge]:
        with self.lock:
            nstr = self._valid_id(node, "ReadOutEdges")
            edges = [Edge(pred, node, other) for pred, other in self._linked(nstr, predicates, True)]
            if not edges:
                raise GraphError(
                    f"{self}: ReadOutEdges: Failed to discover edges leaving the node {nstr}"
                )
            return edges

    def count_out_edges(self, node: Node, *predicates: str) -> int:
        with self.lock:
            nstr = self._valid_id(node, "CountOutEdges")
            return sum(1 for _ in self._linked(nstr, predicates, True))

    def delete_edge(self, edge: Edge) -> None:
        with self.lock:
            from_id = self.node_to_id(edge.from_node)
            to_id = self.node_to_id(edge.to_node)
            if not from_id or not self._node_exists(from_id) or not to_id or not self._node_exists(to_id):
                raise GraphError(f"{self}: DeleteEdge: Invalid edge reference argument")
            quad = (IRI(from_id), IRI(edge.predicate), IRI(to_id))
            if not edge.predicate or not self._store.contains(*quad):
                raise GraphError(f"{self}: DeleteEdge: The edge does not exist")
            self._store.remove_quad(*quad)
            self._changed()

    def insert_property(self, node: Node, predicate: str, value: str) -> None:
        with self.lock:
            nstr = self._valid_id(node, "InsertProperty")
            if not predicate:
                raise GraphError(f"{self}: InsertProperty: Empty predicate argument")
            if self._store.add_quad(IRI(nstr), IRI(predicate), Literal(value)):
                self._changed()

    def _properties(self, nstr: str, predicates: tuple[str, ...]) -> Iterator[Property]:
        wanted = set(predicates)
        for quad in self._store.match(subject=IRI(nstr)):
            pred = value_to_str(quad.predicate)
            if (not wanted or pred in wanted) and not is_iri(quad.obj):
                yield Property(pred, value_to_str(quad.obj))

    def read_properties(self, node: Node, *predicates: str) -> list[Property]:
        with self.lock:
            nstr = self._valid_id(node, "ReadProperties")
            return list(self._properties(nstr, predicates))

    def count_properties(self, node: Node, *predicates: str) -> int:
        with self.lock:
            nstr = self._valid_id(node, "CountProperties")
            return sum(1 for _ in self._properties(nstr, predicates))

    def delete_property(self, node: Node, predicate: str, value: str) -> None:
        with self.lock:
            nstr = self._valid_id(node, "DeleteProperty")
            quad = (IRI(nstr), IRI(predicate), Literal(value))
            if self._check_existing and not self._store.contains(*quad):
                raise GraphError(
                    f"{self}: DeleteProperty: The property does not exist on node: {nstr}"
                )
            self._store.remove_quad(*quad)
            self._changed()