"""Peer Library - library management backend with peer-to-peer lending.

A library instance keeps its own catalog (books, copies, contacts, loans) and
can register other library instances as peers. Peers replicate each other's
catalogs into a local cache, answer federated searches, and lend books to each
other through a message-driven borrow-request protocol.
"""

__version__ = "0.1.0"
