"""Data source nodes and the responses cached for them in the graph."""

from __future__ import annotations

from datetime import datetime, timedelta

from surfacemap.graphdb import Edge, GraphDatabase, GraphError, Node
from surfacemap.output import NOT_DATA_SOURCES


def _now_rfc3339() -> str:
    return datetime.now().astimezone().replace(microsecond=0).isoformat()


def _parse_rfc3339(text: str) -> datetime | None:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.astimezone()


class SourceMixin:
    """Graph operations for data sources.

    The host class provides ``db``, ``insert_node_if_not_exist``,
    ``insert_edge`` and ``all_nodes_of_type``.
    """

    db: GraphDatabase

    def insert_source(self, source: str, tag: str) -> Node:
        """Create a data source node, or update the tag of an existing one."""
        node = self.insert_node_if_not_exist(source, "source")
        try:
            props = self.db.read_properties(node, "tag")
        except GraphError:
            props = []

        insert = True
        if props:
            insert = False
            if props[0].value != tag:
                try:
                    self.db.delete_property(node, props[0].predicate, props[0].value)
                    insert = True
                except GraphError:
                    pass
        if insert:
            self.db.insert_property(node, "tag", tag)
        return node

    def source_tag(self, source: str) -> str:
        """Return the tag of the data source, or '' when it is unknown."""
        if not source:
            return ""
        try:
            node = self.db.read_node(source, "source")
            props = self.db.read_properties(node, "tag")
        except GraphError:
            return ""
        return props[0].value if props else ""

    def node_sources(self, node: Node, *events: str) -> list[str]:
        """Return the data sources that identified the node during the events."""
        nstr = self.db.node_to_id(node)
        if not nstr:
            raise GraphError(f"{self}: NodeSources: Invalid node reference argument")

        try:
            all_events = self.all_nodes_of_type("event", *events)
        except GraphError as exc:
            raise GraphError(f"{self}: NodeSources: Failed to obtain the list of events") from exc
        event_ids = {self.db.node_to_id(e) for e in all_events} - {""}

        try:
            edges = self.db.read_in_edges(node)
        except GraphError as exc:
            raise GraphError(
                f"{self}: NodeSources: Failed to obtain the list of in-edges: {exc}"
            ) from exc

        sources: dict[str, None] = {}
        for edge in edges:
            if edge.predicate in NOT_DATA_SOURCES:
                continue
            if self.db.node_to_id(edge.from_node) in event_ids:
                sources.setdefault(edge.predicate)

        if not sources:
            raise GraphError(f"{self}: NodeSources: Failed to discover edges leaving the Node {nstr}")
        return list(sources)

    def get_source_data(self, source: str, query: str, ttl: int) -> str:
        """Return the cached response of the source for the query, if younger than ttl minutes."""
        node = self.db.read_node(source, "source")
        edges = self.db.read_out_edges(node, query)

        now = datetime.now().astimezone()
        for edge in edges:
            try:
                stamps = self.db.read_properties(edge.to_node, "timestamp")
            except GraphError:
                continue
            if not stamps:
                continue
            ts = _parse_rfc3339(stamps[0].value)
            if ts is None or ts + timedelta(minutes=ttl) < now:
                continue
            try:
                responses = self.db.read_properties(edge.to_node, "response")
            except GraphError:
                continue
            if responses and responses[0].value:
                return responses[0].value

        raise GraphError(
            f"{self}: GetSourceData: Failed to obtain a cached response from {source} for query {query}"
        )

    def cache_source_data(self, source: str, tag: str, query: str, resp: str) -> None:
        """Store a fresh response of the source for the query, replacing older ones."""
        snode = self.insert_source(source, tag)
        self._delete_cached_data(source, query)

        ts = _now_rfc3339()
        rnode = self.insert_node_if_not_exist(f"{source}-response-{ts}", "response")
        self.db.insert_property(rnode, "timestamp", ts)
        self.db.insert_property(rnode, "response", resp)
        self.insert_edge(Edge(query, snode, rnode))

    def _delete_cached_data(self, source: str, query: str) -> None:
        node = self.db.read_node(source, "source")
        try:
            edges = self.db.read_out_edges(node, query)
        except GraphError:
            return
        for edge in edges:
            self.db.delete_edge(edge)
            self.db.delete_node(edge.to_node)