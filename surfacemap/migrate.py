"""Copying events and what they discovered from one graph into another."""

from __future__ import annotations

from typing import Protocol

from surfacemap.graphdb import GraphDatabase, GraphError
from surfacemap.quadstore import IRI, Literal, is_iri

_TYPE = IRI("type")
_EVENT = Literal("event")
_DOMAIN = IRI("domain")


class _HasDatabase(Protocol):
    db: GraphDatabase


class MigrateMixin:
    """Graph operations that replicate events. The host class provides ``db``."""

    db: GraphDatabase

    def _event_ids(self, uuids: tuple[str, ...]) -> list[str]:
        store = self.db.store
        if uuids:
            return [u for u in dict.fromkeys(uuids) if store.contains(IRI(u), _TYPE, _EVENT)]
        return list(dict.fromkeys(q.subject.value for q in store.match(predicate=_TYPE, obj=_EVENT)))

    def migrate_events(self, to: _HasDatabase, *uuids: str) -> None:
        """Copy the events, and the nodes they link to, into the other graph.

        With no identifiers, every event is copied.
        """
        store = self.db.store
        with self.db.lock:
            events = self._event_ids(uuids)
            linked: dict[str, None] = {}
            for event in events:
                for quad in store.match(subject=IRI(event)):
                    obj = quad.obj
                    if is_iri(obj) and next(store.match(obj, _TYPE), None) is not None:
                        linked.setdefault(obj.value)
            nodes = list(dict.fromkeys([*events, *linked]))
            to.db.write_node_quads(self.db, nodes)

    def migrate_events_in_scope(self, to: _HasDatabase, domains: list[str]) -> None:
        """Copy the events that involved any of the domains into the other graph."""
        if not domains:
            raise GraphError("MigrateEventsInScope: No domain names provided")

        store = self.db.store
        wanted = {IRI(d) for d in domains}
        with self.db.lock:
            uuids = [
                event
                for event in self._event_ids(())
                if any(q.obj in wanted for q in store.match(IRI(event), _DOMAIN))
            ]
        if uuids:
            self.migrate_events(to, *uuids)