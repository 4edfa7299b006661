"""
Error taxonomy for the peer-lending coordinator.

Every layer raises these exceptions and the outer surfaces (REST, MCP tools)
translate them into responses:

- NotFoundError -> 404
- InvalidStateError -> 400
- DuplicateError -> 409
- ExternalServiceError -> 502
- DatabaseError -> 500
"""


class LibraryError(Exception):
    """Base exception for all coordinator errors."""


class NotFoundError(LibraryError):
    """Raised when a referenced entity does not exist."""


class InvalidStateError(LibraryError):
    """Raised when an operation is not legal in the entity's current state."""


class DuplicateError(LibraryError):
    """Raised when attempting to create an entity that already exists."""


class ExternalServiceError(LibraryError):
    """Raised when a remote peer or public catalog call fails."""


class DatabaseError(LibraryError):
    """Raised when the persistence layer fails."""
