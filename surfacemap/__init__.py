"""In-memory graph of DNS names, addresses, netblocks and autonomous systems found by enumeration events."""

__version__ = "0.1.0"