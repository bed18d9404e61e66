"""An in-memory store of subject/predicate/object quads."""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple, Union


@dataclass(frozen=True)
class IRI:
    """A resource identifier: the kind of value that names a node."""

    value: str

    def __str__(self) -> str:
        return f"<{self.value}>"


@dataclass(frozen=True)
class Literal:
    """A plain string value, used for node properties."""

    value: str

    def __str__(self) -> str:
        return f'"{self.value}"'


Value = Union[IRI, Literal]


class Quad(NamedTuple):
    """A single statement held by the store."""

    subject: Value
    predicate: Value
    obj: Value


def _coerce(value: Value | str) -> Value:
    if isinstance(value, (IRI, Literal)):
        return value
    if isinstance(value, str):
        return Literal(value)
    raise TypeError(f"unsupported quad value: {value!r}")


def _coerce_optional(value: Value | str | None) -> Value | None:
    return None if value is None else _coerce(value)


def is_iri(value: object) -> bool:
    """Report whether the value names a node rather than holding a property."""
    return isinstance(value, IRI)


def value_to_str(value: object) -> str:
    """Return the bare text of a stored value."""
    if isinstance(value, IRI):
        return value.value.lstrip("<").rstrip(">")
    if isinstance(value, Literal):
        return value.value.strip('"')
    if isinstance(value, str):
        return value.strip('"')
    return ""


class QuadStore:
    """Quads kept in insertion order, indexed by each of their positions.

    Duplicate insertions and removals of missing quads are ignored.
    Plain strings given in place of values are taken as literals.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._quads: dict[Quad, None] = {}
        self._by_subject: defaultdict[Value, dict[Quad, None]] = defaultdict(dict)
        self._by_predicate: defaultdict[Value, dict[Quad, None]] = defaultdict(dict)
        self._by_object: defaultdict[Value, dict[Quad, None]] = defaultdict(dict)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("quad store is closed")

    def add_quad(self, subject: Value | str, predicate: Value | str, obj: Value | str) -> bool:
        """Add a quad; return False when it was already present."""
        quad = Quad(_coerce(subject), _coerce(predicate), _coerce(obj))
        with self._lock:
            self._check_open()
            if quad in self._quads:
                return False
            self._quads[quad] = None
            self._by_subject[quad.subject][quad] = None
            self._by_predicate[quad.predicate][quad] = None
            self._by_object[quad.obj][quad] = None
            return True

    def add_quads(self, quads: Iterable[Quad | tuple]) -> int:
        """Add many quads and return how many were new."""
        with self._lock:
            return sum(1 for s, p, o in quads if self.add_quad(s, p, o))

    def remove_quad(self, subject: Value | str, predicate: Value | str, obj: Value | str) -> bool:
        """Remove a quad; return False when it was not present."""
        quad = Quad(_coerce(subject), _coerce(predicate), _coerce(obj))
        with self._lock:
            self._check_open()
            if quad not in self._quads:
                return False
            del self._quads[quad]
            for index, key in (
                (self._by_subject, quad.subject),
                (self._by_predicate, quad.predicate),
                (self._by_object, quad.obj),
            ):
                bucket = index[key]
                del bucket[quad]
                if not bucket:
                    del index[key]
            return True

    def contains(self, subject: Value | str, predicate: Value | str, obj: Value | str) -> bool:
        quad = Quad(_coerce(subject), _coerce(predicate), _coerce(obj))
        with self._lock:
            self._check_open()
            return quad in self._quads

    def match(
        self,
        subject: Value | str | None = None,
        predicate: Value | str | None = None,
        obj: Value | str | None = None,
    ) -> Iterator[Quad]:
        """Yield the quads matching every position that is not None."""
        s, p, o = _coerce_optional(subject), _coerce_optional(predicate), _coerce_optional(obj)
        with self._lock:
            self._check_open()
            candidates = [
                index.get(key, {})
                for index, key in (
                    (self._by_subject, s),
                    (self._by_predicate, p),
                    (self._by_object, o),
                )
                if key is not None
            ]
            pool = min(candidates, key=len) if candidates else self._quads
            snapshot = list(pool)
        for quad in snapshot:
            if (s is None or quad.subject == s) and (
                p is None or quad.predicate == p
            ) and (o is None or quad.obj == o):
                yield quad

    def close(self) -> None:
        """Drop all quads and refuse further use."""
        with self._lock:
            self._quads.clear()
            self._by_subject.clear()
            self._by_predicate.clear()
            self._by_object.clear()
            self._closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._quads)

    def __iter__(self) -> Iterator[Quad]:
        return self.match()