# surfacemap

`surfacemap` keeps what a DNS and infrastructure enumeration finds in an
in-memory graph. The graph holds fully qualified domain names, the records
that link them (CNAME, PTR, SRV, NS, MX, A, AAAA), IP addresses, netblocks
and autonomous systems. It also records which data sources reported each
item and the enumeration events in which they were found.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Building a graph

```python
from surfacemap.graphdb import GraphDatabase
from surfacemap.graph import Graph

graph = Graph(GraphDatabase.memory())
event = "ef9f9475-34eb-465e-81eb-77c944822d0f"

graph.insert_fqdn("www.owasp.org", "DNS", "dns", event)
graph.insert_a("www.owasp.org", "10.1.2.3", "DNS", "dns", event)
graph.insert_infrastructure(667, "a test description", "10.1.2.3",
                            "10.0.0.0/8", "RIR", "rir", event)

print(graph.event_domains(event))        # ['owasp.org']
print(graph.event_subdomains(event))     # ['www.owasp.org']
print(graph.read_as_description("667"))  # 'a test description'
```

Inserting a name also adds its registered domain and its public suffix. For
example, `www.owasp.org` also adds `owasp.org` and `org`.
`is_root_domain_node` and `is_tld_node` tell those nodes apart. Other
record types are added with `insert_cname`, `insert_ptr`, `insert_srv`,
`insert_ns`, `insert_mx` and `insert_aaaa`, and netblocks with
`insert_netblock`.

Each event node carries a `start` time and a `finish` time, the latter
refreshed at most every five seconds. `event_date_range` returns both.
`event_list`, `events_in_scope`, `event_fqdns` and `in_event_scope` answer
questions about events.

## Reading results

`Graph.event_names` returns the names found in one event, as `Output`
objects with their domain, data sources and tag.
`Graph.event_output` returns each name with the addresses it resolves to,
following SRV and CNAME records. When `asninfo` is true and an `ASNCache`
is given, each address also carries its ASN, netblock and description, and
names with no known address are left out. Both methods take an optional set
of names that have already been seen. Names in that set are skipped, and the
set is updated with the names returned.

```python
from surfacemap.infrastructure import ASNCache

cache = ASNCache()
graph.asn_cache_fill(cache)
for out in graph.event_output(event, set(), True, cache):
    print(out.name, [str(a.address) for a in out.addresses])
```

`heal_address_nodes` links the address nodes of an event to the netblocks
that contain them, using an `ASNCache` (filled from the graph when `None` is
given).

## Other modules

* `surfacemap.sources`: tags for data sources (`insert_source`,
  `source_tag`, `node_sources`), and cached responses from data sources with
  a time limit in minutes (`cache_source_data`, `get_source_data`).
* `surfacemap.migrate`: copies events and the nodes linked to them from one
  graph into another (`migrate_events`, `migrate_events_in_scope`).
* `surfacemap.viz`: `viz_data` returns the `VizNode` and `VizEdge` lists
  needed to draw one or more events.
* `surfacemap.parse`: parses comma-separated lists of strings, integers,
  IP addresses, IP ranges such as `192.168.1.1-20` or
  `192.168.1.1-192.168.1.20`, and CIDR blocks. Bad input raises
  `ValueError`.
* `surfacemap.report`: per-tag and per-autonomous-system summaries
  (`update_summary_data`, `print_enumeration_summary`), the banner
  (`print_banner`), `output_line_parts` and `desired_addr_types`. Output
  goes to standard error by default and is coloured only on a terminal.
  With the demo option, names and addresses are masked with `x`.
* `surfacemap.domains`: `public_suffix` and `effective_tld_plus_one`.

## Lower-level access

`GraphDatabase` is the graph of nodes, edges and properties underneath
`Graph`, built on the `QuadStore` in `surfacemap.quadstore`. It offers
insert, read, count and delete for nodes, edges and properties. Invalid
arguments or missing items raise `GraphError`.

`GraphDatabase.open("local", path)` keeps the graph in a JSON file in the
given directory and writes it after each change. With the option
`"nosync=true"` it is written only when the database is closed.

## What the package does not do

* It does not query DNS, fetch data from any source or run an enumeration;
  it only stores and reports results handed to it.
* It has no command-line program.
* `GraphDatabase.open` accepts `"mysql"` and `"postgres"` but has no driver
  for them and raises `GraphError`; only the local file store works.
* The public suffix table in `surfacemap.domains` is a small built-in list.
  For endings it does not know, the last label is taken as the suffix.