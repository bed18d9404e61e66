import pytest

from surfacemap.quadstore import IRI, Literal, Quad, QuadStore, is_iri, value_to_str


@pytest.fixture
def store():
    s = QuadStore()
    s.add_quad(IRI("Bob"), IRI("type"), "Person")
    s.add_quad(IRI("Bob"), IRI("knows"), IRI("Alice"))
    s.add_quad(IRI("Alice"), IRI("type"), Literal("Person"))
    return s


def test_add_and_contains(store):
    assert store.contains(IRI("Bob"), IRI("knows"), IRI("Alice"))
    assert not store.contains(IRI("Alice"), IRI("knows"), IRI("Bob"))
    assert len(store) == 3


def test_plain_string_is_literal(store):
    assert store.contains(IRI("Bob"), IRI("type"), Literal("Person"))
    assert store.contains(IRI("Bob"), IRI("type"), "Person")


def test_duplicates_ignored(store):
    assert store.add_quad(IRI("Bob"), IRI("type"), "Person") is False
    assert len(store) == 3


def test_remove(store):
    assert store.remove_quad(IRI("Bob"), IRI("knows"), IRI("Alice")) is True
    assert not store.contains(IRI("Bob"), IRI("knows"), IRI("Alice"))
    assert store.remove_quad(IRI("Bob"), IRI("knows"), IRI("Alice")) is False
    assert list(store.match(predicate=IRI("knows"))) == []


def test_match_wildcards(store):
    typed = list(store.match(predicate=IRI("type")))
    assert [q.subject for q in typed] == [IRI("Bob"), IRI("Alice")]
    bob = list(store.match(subject=IRI("Bob")))
    assert len(bob) == 2
    assert list(store.match(IRI("Bob"), IRI("knows"), IRI("Alice"))) == [
        Quad(IRI("Bob"), IRI("knows"), IRI("Alice"))
    ]
    assert len(list(store.match())) == 3


def test_match_insertion_order(store):
    assert list(store) == list(store.match())
    assert list(store)[0] == Quad(IRI("Bob"), IRI("type"), Literal("Person"))


def test_add_quads_counts_new(store):
    added = store.add_quads(
        [
            (IRI("Bob"), IRI("type"), "Person"),
            Quad(IRI("Carol"), IRI("type"), Literal("Person")),
        ]
    )
    assert added == 1
    assert len(store) == 4


def test_iri_and_literal_text():
    assert str(IRI("Bob")) == "<Bob>"
    assert str(Literal("Person")) == '"Person"'


def test_value_to_str():
    assert value_to_str(IRI("Bob")) == "Bob"
    assert value_to_str(IRI("<<Bob>>")) == "Bob"
    assert value_to_str(Literal('"Person"')) == "Person"
    assert value_to_str(None) == ""


def test_is_iri():
    assert is_iri(IRI("Bob")) is True
    assert is_iri(Literal("Bob")) is False


def test_closed_store_rejects_use(store):
    store.close()
    assert store.closed
    with pytest.raises(RuntimeError):
        store.add_quad(IRI("x"), IRI("y"), "z")
    with pytest.raises(RuntimeError):
        list(store.match())


def test_bad_value_type():
    with pytest.raises(TypeError):
        QuadStore().add_quad(IRI("x"), IRI("y"), 5)