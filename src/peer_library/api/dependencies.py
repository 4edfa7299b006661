"""FastAPI dependencies shared by the routers."""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..services.container import ServiceContainer, get_services


def get_container(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    return services or get_services()


Services = Annotated[ServiceContainer, Depends(get_container)]


def get_session(services: Services) -> Generator[Session, None, None]:
    """One transactional session per request, committed when the handler returns."""
    with services.db.session_scope() as session:
        yield session


DbSession = Annotated[Session, Depends(get_session)]
