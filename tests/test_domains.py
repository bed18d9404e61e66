import pytest

from surfacemap.domains import effective_tld_plus_one, public_suffix


def test_owasp_names():
    assert public_suffix("www.owasp.org") == "org"
    assert effective_tld_plus_one("www.owasp.org") == "owasp.org"
    assert effective_tld_plus_one("owasp.org") == "owasp.org"


def test_multi_label_suffix():
    assert public_suffix("www.example.co.uk") == "co.uk"
    assert effective_tld_plus_one("www.example.co.uk") == "example.co.uk"


def test_wildcard_rule():
    assert public_suffix("foo.bar.ck") == "bar.ck"


def test_exception_rule():
    assert effective_tld_plus_one("www.ck") == "www.ck"
    assert effective_tld_plus_one("a.www.ck") == "www.ck"


def test_unknown_tld_uses_last_label():
    name = "deep.sub.example.unknowntld"
    assert public_suffix(name) == name.split(".")[-1]


def test_single_label():
    assert public_suffix("localhost") == "localhost"


@pytest.mark.parametrize(
    "name",
    ["a.b.owasp.org", "x.example.co.uk", "dev.example.domain", "q.github.io"],
)
def test_registered_domain_invariant(name):
    suffix = public_suffix(name)
    domain = effective_tld_plus_one(name)
    assert domain.endswith("." + suffix)
    assert name.endswith(domain)
    assert domain.count(".") == suffix.count(".") + 1


@pytest.mark.parametrize(
    "name", [".owasp.org", "owasp.org.", "www..owasp.org", "org", "co.uk", ""]
)
def test_errors(name):
    with pytest.raises(ValueError):
        effective_tld_plus_one(name)