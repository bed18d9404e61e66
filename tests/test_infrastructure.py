import pytest

from surfacemap.graph import Graph
from surfacemap.graphdb import Edge, GraphDatabase, GraphError
from surfacemap.infrastructure import ASNCache, ASNRecord, NameAddrPair

ADDR = "testaddr"
SOURCE = "testsource"
TAG = "testtag"
FQDN = "www.owasp.org"
EVENT = "ef9f9475-34eb-465e-81eb-77c944822d0f"
ASN = 667
ASN_STRING = "667"
CIDR = "10.0.0.0/8"
DESC = "a test description"


@pytest.fixture
def graph():
    g = Graph(GraphDatabase.memory())
    yield g
    g.close()


def test_insert_address_returns_node(graph):
    assert graph.insert_address(ADDR, SOURCE, TAG, EVENT) == ADDR
    assert graph.db.read_node(ADDR, "ipaddr") == ADDR


def test_insert_a(graph):
    graph.insert_a(FQDN, ADDR, SOURCE, TAG, EVENT)
    assert graph.db.read_out_edges(FQDN, "a_record") == [Edge("a_record", FQDN, ADDR)]


def test_insert_aaaa(graph):
    graph.insert_aaaa(FQDN, ADDR, SOURCE, TAG, EVENT)
    assert graph.db.read_out_edges(FQDN, "aaaa_record") == [Edge("aaaa_record", FQDN, ADDR)]


def test_insert_as_and_description(graph):
    assert graph.insert_as(ASN_STRING, DESC, SOURCE, TAG, EVENT) == ASN_STRING
    graph.insert_infrastructure(ASN, DESC, ADDR, CIDR, SOURCE, TAG, EVENT)
    assert graph.read_as_description(ASN_STRING) == DESC


def test_insert_as_updates_description(graph):
    graph.insert_as(ASN_STRING, DESC, SOURCE, TAG, EVENT)
    graph.insert_as(ASN_STRING, "new description", SOURCE, TAG, EVENT)
    assert graph.read_as_description(ASN_STRING) == "new description"
    assert graph.db.count_properties(ASN_STRING, "description") == 1


def test_insert_infrastructure_edges(graph):
    graph.insert_infrastructure(ASN, DESC, ADDR, CIDR, SOURCE, TAG, EVENT)
    assert graph.db.read_out_edges(ASN_STRING, "prefix") == [Edge("prefix", ASN_STRING, CIDR)]
    assert graph.db.read_out_edges(CIDR, "contains") == [Edge("contains", CIDR, ADDR)]


def test_read_as_description_unknown(graph):
    assert graph.read_as_description("12345") == ""


def test_names_to_addrs(graph):
    graph.insert_a("a.example.com", "192.0.2.1", SOURCE, TAG, EVENT)
    graph.insert_a("b.example.com", "192.0.2.2", SOURCE, TAG, EVENT)
    pairs = set(graph.names_to_addrs(EVENT))
    assert pairs == {
        NameAddrPair("a.example.com", "192.0.2.1"),
        NameAddrPair("b.example.com", "192.0.2.2"),
    }
    assert graph.names_to_addrs(EVENT, "a.example.com") == [
        NameAddrPair("a.example.com", "192.0.2.1")
    ]


def test_names_to_addrs_follows_cname(graph):
    graph.insert_cname("alias.example.com", "www.example.com", SOURCE, TAG, EVENT)
    graph.insert_a("www.example.com", "192.0.2.9", SOURCE, TAG, EVENT)
    assert graph.names_to_addrs(EVENT, "alias.example.com") == [
        NameAddrPair("alias.example.com", "192.0.2.9")
    ]


def test_names_to_addrs_without_addresses(graph):
    graph.insert_fqdn(FQDN, SOURCE, TAG, EVENT)
    with pytest.raises(GraphError):
        graph.names_to_addrs(EVENT)


def test_heal_address_nodes(graph):
    graph.insert_a("www.example.com", "192.0.2.1", SOURCE, TAG, EVENT)
    cache = ASNCache()
    cache.update(ASNRecord(asn=64500, prefix="192.0.2.0/24", description="Example Net",
                           tag="rir", source="RIR"))
    graph.heal_address_nodes(cache, EVENT)
    assert graph.db.read_node("192.0.2.0/24", "netblock") == "192.0.2.0/24"
    assert graph.db.count_in_edges("192.0.2.1", "contains") == 1
    assert graph.read_as_description("64500") == "Example Net"


def test_asn_cache_fill(graph):
    graph.insert_infrastructure(64500, "Example Net", "192.0.2.1", "192.0.2.0/24", "RIR", "rir", EVENT)
    cache = ASNCache()
    graph.asn_cache_fill(cache)
    record = cache.addr_search("192.0.2.77")
    assert record.asn == 64500
    assert record.prefix == "192.0.2.0/24"
    assert record.description == "Example Net"
    assert record.address == "192.0.2.77"
    assert record.tag == "rir"
    assert record.source == "memory"


def test_asn_cache_prefers_narrowest_prefix():
    cache = ASNCache()
    cache.update(ASNRecord(asn=1, prefix="10.0.0.0/8"))
    cache.update(ASNRecord(asn=2, prefix="10.1.0.0/16"))
    assert cache.addr_search("10.1.2.3").asn == 2
    assert cache.addr_search("10.2.0.1").asn == 1
    assert len(cache) == 2


def test_asn_cache_misses():
    cache = ASNCache()
    cache.update(ASNRecord(asn=1, prefix="10.0.0.0/8"))
    assert cache.addr_search("192.0.2.1") is None
    assert cache.addr_search("not-an-address") is None
    assert cache.addr_search("2001:db8::1") is None


def test_asn_cache_rejects_bad_prefix():
    with pytest.raises(ValueError):
        ASNCache().update(ASNRecord(asn=1, prefix="bogus"))