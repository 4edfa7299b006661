"""Federated search result models."""

from pydantic import BaseModel, Field

from .book import BookSummary

LOCAL_SOURCE = "local"
PUBLIC_SOURCE = "public"


def peer_source(peer_name: str) -> str:
    return f"peer:{peer_name}"


class SearchHit(BookSummary):
    """A search result tagged with where it came from."""

    source: str = Field(..., examples=["local", "public", "peer:Riverside"])
    peer_id: int | None = Field(None, description="Set when the hit came from a peer")


class SearchResponse(BaseModel):
    """Concatenated results from every source that answered."""

    books: list[SearchHit] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def from_hits(cls, hits: list[SearchHit]) -> "SearchResponse":
        return cls(books=hits, total=len(hits))
