import ipaddress
from datetime import datetime

import pytest

from surfacemap.graph import Graph
from surfacemap.graphdb import Edge, GraphDatabase, GraphError

ADDR = "testaddr"
SOURCE = "testsource"
TAG = "testtag"
FQDN = "www.owasp.org"
EVENT_ID = "ef9f9475-34eb-465e-81eb-77c944822d0f"
CIDR = "10.0.0.0/8"
SERVICE = "testservice.com"
DOMAIN = "owasp.org"


@pytest.fixture
def graph():
    g = Graph(GraphDatabase.memory())
    yield g
    g.close()


def test_new_graph_string_matches_database():
    db = GraphDatabase.memory()
    g = Graph(db)
    assert str(g) == str(db) == "memory"
    g.close()


def test_new_graph_requires_database():
    with pytest.raises(GraphError):
        Graph(None)


def test_insert_node_if_not_exist_and_edge(graph):
    one = graph.insert_node_if_not_exist("foo", "test node")
    two = graph.insert_node_if_not_exist("bar", "also node")
    assert (one, two) == ("foo", "bar")
    assert graph.insert_node_if_not_exist("foo", "test node") == "foo"

    graph.insert_edge(Edge("testing", one, two))
    edges = graph.db.read_out_edges(one)
    assert [(e.predicate, e.to_node) for e in edges] == [("testing", "bar")]


def test_insert_edge_with_missing_node_fails(graph):
    graph.insert_node_if_not_exist("foo", "test node")
    with pytest.raises(GraphError):
        graph.insert_edge(Edge("testing", "foo", "missing"))


def test_all_nodes_of_type_errors_when_none(graph):
    with pytest.raises(GraphError):
        graph.all_nodes_of_type("nothing")


def test_insert_event_returns_id(graph):
    assert graph.insert_event(EVENT_ID) == EVENT_ID
    assert graph.read_node(EVENT_ID, "event") == EVENT_ID


def test_insert_event_twice_keeps_single_finish(graph):
    graph.insert_event(EVENT_ID)
    graph.insert_event(EVENT_ID)
    props = graph.db.read_properties(EVENT_ID, "finish")
    assert len(props) == 1
    assert len(graph.db.read_properties(EVENT_ID, "start")) == 1


def test_event_queries(graph):
    before = datetime.now().astimezone().replace(microsecond=0)
    assert graph.insert_event(EVENT_ID) == EVENT_ID
    node = graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT_ID)
    graph.add_node_to_event(node, SOURCE, TAG, EVENT_ID)

    assert graph.event_list() == [EVENT_ID]
    assert sorted(graph.event_domains(EVENT_ID)) == [DOMAIN]
    assert sorted(graph.event_subdomains(EVENT_ID)) == [FQDN]

    start, finish = graph.event_date_range(EVENT_ID)
    after = datetime.now().astimezone()
    assert before <= start <= finish <= after


def test_event_date_range_unknown_event(graph):
    assert graph.event_date_range("missing") == (None, None)


def test_add_node_to_event_rejects_empty_arguments(graph):
    node = graph.insert_node_if_not_exist("foo", "test node")
    with pytest.raises(GraphError):
        graph.add_node_to_event(node, "", TAG, EVENT_ID)
    with pytest.raises(GraphError):
        graph.add_node_to_event(node, SOURCE, TAG, "")


def test_in_event_scope(graph):
    graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT_ID)
    assert graph.in_event_scope(FQDN, EVENT_ID) is True
    assert graph.in_event_scope(FQDN, "other-event") is False
    assert graph.in_event_scope(FQDN, EVENT_ID, "root") is False


def test_events_in_scope_and_fqdns(graph):
    graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT_ID)
    graph.insert_fqdn("www.example.com", SOURCE, TAG, "second")
    assert graph.events_in_scope(DOMAIN) == [EVENT_ID]
    assert graph.events_in_scope("example.com") == ["second"]
    assert graph.events_in_scope() == []
    assert graph.event_fqdns(EVENT_ID) == [FQDN]


def test_insert_fqdn_and_records(graph):
    assert graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT_ID) == FQDN

    graph.insert_cname(FQDN, FQDN, SOURCE, TAG, EVENT_ID)
    assert graph.is_cname_node(FQDN) is True

    graph.insert_ptr(FQDN, FQDN, SOURCE, TAG, EVENT_ID)
    assert graph.is_ptr_node(FQDN) is True

    graph.insert_srv(FQDN, SERVICE, FQDN, SOURCE, TAG, EVENT_ID)
    assert [e.predicate for e in graph.db.read_out_edges(SERVICE, "service", "srv_record")] == [
        "service",
        "srv_record",
    ]

    graph.insert_ns(FQDN, FQDN, SOURCE, TAG, EVENT_ID)
    assert graph.is_ns_node(FQDN) is True

    graph.insert_mx(FQDN, FQDN, SOURCE, TAG, EVENT_ID)
    assert graph.is_mx_node(FQDN) is True

    assert graph.is_root_domain_node(DOMAIN) is True
    assert graph.is_tld_node("org") is True


def test_record_checks_false_for_plain_name(graph):
    graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT_ID)
    assert graph.is_cname_node(FQDN) is False
    assert graph.is_mx_node(FQDN) is False
    assert graph.is_root_domain_node(FQDN) is False
    assert graph.is_tld_node("missing.org") is False


@pytest.mark.parametrize("name", ["", "org", "bad..name.org"])
def test_insert_fqdn_invalid(graph, name):
    with pytest.raises(GraphError):
        graph.insert_fqdn(name, SOURCE, TAG, EVENT_ID)


def test_insert_netblock(graph):
    node = graph.insert_netblock(CIDR, SOURCE, TAG, EVENT_ID)
    assert ipaddress.ip_network(node).network_address == ipaddress.ip_address("10.0.0.0")
    assert graph.in_event_scope(node, EVENT_ID, SOURCE) is True


def test_dump_graph_lists_quads(graph):
    assert graph.dump_graph() == ""
    graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT_ID)
    assert "<www.owasp.org> -> <root> -> <owasp.org>" in graph.dump_graph()


def test_mixins_work_through_graph(graph):
    graph.insert_a(FQDN, "192.0.2.1", SOURCE, TAG, EVENT_ID)
    pairs = graph.names_to_addrs(EVENT_ID)
    assert [(p.name, p.addr) for p in pairs] == [(FQDN, "192.0.2.1")]
    assert graph.source_tag(SOURCE) == TAG


def test_close_is_idempotent():
    g = Graph(GraphDatabase.memory())
    g.close()
    g.close()
    assert g.already_closed is True