import pytest

from surfacemap.graph import Graph
from surfacemap.graphdb import GraphDatabase, GraphError

EVENT_ONE = "ef9f9475-34eb-465e-81eb-77c944822d0f"
EVENT_TWO = "barbazz"


@pytest.fixture
def populated():
    g = Graph(GraphDatabase.memory())
    g.insert_fqdn("www.owasp.org", "testsource", "testtag", EVENT_ONE)
    g.insert_a("dev.example.domain", "127.0.0.1", "test", "foo", EVENT_TWO)
    yield g
    g.close()


@pytest.fixture
def target():
    g = Graph(GraphDatabase.memory())
    yield g
    g.close()


def test_migrate_single_event(populated, target):
    populated.migrate_events(target, EVENT_ONE)
    assert target.event_list() == [EVENT_ONE]
    assert sorted(target.event_domains(EVENT_ONE)) == ["owasp.org"]
    assert target.read_node("www.owasp.org", "fqdn") == "www.owasp.org"
    with pytest.raises(GraphError):
        target.read_node("dev.example.domain", "fqdn")


def test_migrate_all_events(populated, target):
    populated.migrate_events(target)
    assert sorted(target.event_list()) == sorted([EVENT_ONE, EVENT_TWO])
    assert sorted(target.event_domains(EVENT_TWO)) == sorted(populated.event_domains(EVENT_TWO))


def test_migrated_graph_keeps_edges(populated, target):
    populated.migrate_events(target, EVENT_TWO)
    edges = target.db.read_out_edges("dev.example.domain", "a_record")
    assert [e.to_node for e in edges] == ["127.0.0.1"]


def test_migrate_in_scope(populated, target):
    populated.migrate_events_in_scope(target, ["owasp.org"])
    assert target.event_list() == [EVENT_ONE]


def test_migrate_in_scope_requires_domains(populated, target):
    with pytest.raises(GraphError):
        populated.migrate_events_in_scope(target, [])