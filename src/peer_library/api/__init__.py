"""REST surface of the Peer Library."""

from .app import create_app

__all__ = ["create_app"]
