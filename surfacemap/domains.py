"""Public suffix lookups for DNS names."""

from __future__ import annotations

_RULE_TEXT = """
co.uk org.uk ac.uk gov.uk me.uk ltd.uk plc.uk net.uk sch.uk nhs.uk police.uk
com.au net.au org.au edu.au gov.au asn.au id.au
co.nz org.nz net.nz govt.nz ac.nz
co.jp ne.jp or.jp ac.jp go.jp ad.jp ed.jp gr.jp lg.jp
com.br net.br org.br gov.br edu.br
com.cn net.cn org.cn gov.cn edu.cn ac.cn
co.in net.in org.in gen.in firm.in ind.in ac.in edu.in gov.in
co.za org.za gov.za ac.za net.za
com.mx org.mx gob.mx edu.mx net.mx
co.kr or.kr go.kr ac.kr ne.kr
com.tw org.tw net.tw edu.tw gov.tw
com.hk org.hk net.hk edu.hk gov.hk
com.sg org.sg net.sg edu.sg gov.sg
com.ar com.tr gov.tr org.tr
co.il org.il ac.il gov.il
com.es org.es gob.es
co.id or.id ac.id go.id
com.my org.my gov.my edu.my
com.ph com.pk com.sa com.eg com.ng co.ke co.th ac.th go.th in.th
com.vn com.ua co.at or.at com.pl net.pl org.pl
github.io blogspot.com herokuapp.com appspot.com cloudfront.net
azurewebsites.net netlify.app
*.ck *.bd *.np *.er *.fk *.jm
!www.ck
"""


def _load_rules() -> tuple[frozenset[str], frozenset[str], frozenset[str]]:
    rules: set[str] = set()
    wildcards: set[str] = set()
    exceptions: set[str] = set()
    for rule in _RULE_TEXT.split():
        if rule.startswith("!"):
            exceptions.add(rule[1:])
        elif rule.startswith("*."):
            wildcards.add(rule[2:])
        else:
            rules.add(rule)
    return frozenset(rules), frozenset(wildcards), frozenset(exceptions)


_RULES, _WILDCARDS, _EXCEPTIONS = _load_rules()


def public_suffix(name: str) -> str:
    """Return the public suffix of a name; unknown endings use the last label."""
    labels = name.split(".")
    for i in range(len(labels)):
        candidate = ".".join(labels[i:])
        if candidate in _EXCEPTIONS:
            return ".".join(labels[i + 1 :])
        if candidate in _RULES:
            return candidate
        if i + 1 < len(labels) and ".".join(labels[i + 1 :]) in _WILDCARDS:
            return candidate
    return labels[-1]


def effective_tld_plus_one(name: str) -> str:
    """Return the registered domain: the public suffix plus one label.

    Raises ValueError when the name has an empty label or no label
    in front of its public suffix.
    """
    if name.startswith(".") or name.endswith(".") or ".." in name:
        raise ValueError(f"publicsuffix: empty label in domain {name!r}")
    suffix = public_suffix(name)
    if len(name) <= len(suffix):
        raise ValueError(f"publicsuffix: cannot derive eTLD+1 for domain {name!r}")
    i = len(name) - len(suffix) - 1
    if name[i] != ".":
        raise ValueError(f"publicsuffix: invalid public suffix {suffix!r} for domain {name!r}")
    return name[name.rfind(".", 0, i) + 1 :]