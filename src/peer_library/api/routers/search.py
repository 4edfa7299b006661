"""Federated search, health and the config peers read when registering this library."""

from typing import Annotated

from fastapi import APIRouter, Query

from ...models.enums import SearchSource
from ...models.peer import LibraryInfo
from ...models.search import SearchResponse
from ..dependencies import Services

router = APIRouter(tags=["Search"])


@router.get("/search", response_model=SearchResponse)
async def search(
    services: Services,
    q: str,
    sources: Annotated[list[SearchSource] | None, Query()] = None,
):
    """Search the local catalog, the public catalog and every peer at once."""
    return await services.search.search(q, set(sources) if sources else None)


@router.get("/health", tags=["Health"])
def health(services: Services):
    database_ok = services.db.verify_connection()
    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        **services.config.server_info,
    }


@router.get("/config", response_model=LibraryInfo, tags=["Health"])
def library_config(services: Services):
    config = services.config
    return LibraryInfo(
        library_name=config.library_name,
        public_url=config.public_url,
        version=config.server_version,
    )
