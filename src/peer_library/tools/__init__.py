"""
MCP Tools for the Peer Library.

Each tool is a dictionary with a name, a description, the JSON Schema of its
input and an async handler. Handlers validate their arguments with Pydantic
and report failures as ``isError`` responses instead of raising, so a bad
call never takes the server down.
"""

from .loans import create_loan, list_loans, return_loan
from .network import request_book, search_network, sync_peer, update_request_status

all_tools = [
    create_loan,
    return_loan,
    list_loans,
    request_book,
    update_request_status,
    sync_peer,
    search_network,
]

__all__ = [
    "all_tools",
    "create_loan",
    "list_loans",
    "request_book",
    "return_loan",
    "search_network",
    "sync_peer",
    "update_request_status",
]
