import pytest

from surfacemap.graph import Graph
from surfacemap.graphdb import GraphDatabase

FQDN = "dev.example.domain"
ADDR = "127.0.0.1"
EVENT_ID = "barbazz"


@pytest.fixture
def graph():
    g = Graph(GraphDatabase.memory())
    yield g
    g.close()


def test_viz_data_for_a_record(graph):
    graph.insert_a(FQDN, ADDR, "test", "foo", EVENT_ID)
    nodes, edges = graph.viz_data([EVENT_ID])

    by_label = {n.label: n for n in nodes}
    assert set(by_label) == {FQDN, "example.domain", ADDR}
    assert by_label[FQDN].type == "subdomain"
    assert by_label["example.domain"].type == "domain"
    assert by_label[ADDR].type == "address"
    assert by_label[ADDR].actual_type == "ipaddr"
    assert by_label[ADDR].source == "DNS"
    assert by_label[FQDN].source == "test"
    assert by_label[FQDN].title == f"subdomain: {FQDN}"

    assert sorted(n.id for n in nodes) == list(range(len(nodes)))
    edge_set = {(e.from_id, e.to_id, e.title) for e in edges}
    assert edge_set == {
        (by_label[FQDN].id, by_label["example.domain"].id, "root"),
        (by_label[FQDN].id, by_label[ADDR].id, "a_record"),
    }


def test_viz_data_for_infrastructure(graph):
    graph.insert_infrastructure(667, "a test description", "10.0.0.1", "10.0.0.0/8", "testsource", "testtag", EVENT_ID)
    nodes, edges = graph.viz_data([EVENT_ID])

    by_label = {n.label: n for n in nodes}
    assert by_label["667"].type == "as"
    assert by_label["667"].title == "as: 667, Desc: a test description"
    assert by_label["10.0.0.0/8"].type == "netblock"
    titles = {(by_label_id, e.title) for by_label_id, e in ((e.from_id, e) for e in edges)}
    assert (by_label["667"].id, "prefix") in titles
    assert (by_label["10.0.0.0/8"].id, "contains") in titles


def test_viz_data_unknown_event(graph):
    graph.insert_a(FQDN, ADDR, "test", "foo", EVENT_ID)
    assert graph.viz_data(["unknown"]) == ([], [])


def test_viz_data_hides_tld_and_sources(graph):
    graph.insert_a(FQDN, ADDR, "test", "foo", EVENT_ID)
    nodes, _ = graph.viz_data([EVENT_ID])
    labels = {n.label for n in nodes}
    assert "domain" not in labels
    assert "test" not in labels
    assert EVENT_ID not in labels