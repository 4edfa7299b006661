"""
Repository pattern implementation for the Peer Library.

Repositories are the Catalog Store interface the coordinator consumes: they
hide SQLAlchemy from the services and hand back Pydantic models that the REST
and MCP layers serialize directly.

Every repository works on a session it is given. Methods that change state
take a ``commit`` flag: ``True`` for standalone calls, ``False`` when a
service composes several repository calls into one transaction and commits
once at the end.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import DatabaseError, DuplicateError, NotFoundError
from .schema import Base
from .session import safe_commit, safe_query

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

__all__ = [
    "BaseRepository",
    "DatabaseError",
    "DuplicateError",
    "NotFoundError",
]


class BaseRepository(
    ABC, Generic[ModelType, CreateSchemaType, UpdateSchemaType, ResponseSchemaType]
):
    """
    Abstract base repository providing common CRUD operations.

    All reads go through ``safe_query`` and all commits through ``safe_commit``
    so store failures surface as ``DatabaseError``.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db(self, id: int | str) -> ModelType | None:
        return safe_query(
            self.session,
            lambda s: s.get(self.model_class, id),
            f"Failed to get {self.entity_name} by ID",
        )

    def _require_db(self, id: int | str) -> ModelType:
        """Fetch a row or raise ``NotFoundError``."""
        db_obj = self._get_db(id)
        if db_obj is None:
            raise NotFoundError(f"{self.entity_name} {id} not found")
        return db_obj

    def _finish(self, operation: str, commit: bool) -> None:
        if commit:
            safe_commit(self.session, operation)
        else:
            self.session.flush()

    def get_by_id(self, id: int | str) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found
        """
        db_obj = self._get_db(id)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def require(self, id: int | str) -> ResponseSchemaType:
        """Get entity by ID or raise ``NotFoundError``."""
        return self._to_response_model(self._require_db(id))

    def get_all(
        self, order_by: str | None = None, order_desc: bool = False
    ) -> list[ResponseSchemaType]:
        """
        Get all entities, sorted by ``order_by`` when it names a column.

        Falls back to ascending ``id`` order.
        """
        query = select(self.model_class)

        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))
        else:
            query = query.order_by(asc(self.model_class.id))

        results = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get all results"
        )
        return [self._to_response_model(item) for item in results]

    def create(self, data: CreateSchemaType, commit: bool = True) -> ResponseSchemaType:
        """
        Create new entity.

        Raises:
            DuplicateError: If a unique constraint is violated
            NotFoundError: If a referenced row does not exist
        """
        db_obj = self.model_class(**data.model_dump())
        self.session.add(db_obj)
        self._flush_new(db_obj)
        self._finish(f"create {self.entity_name}", commit)
        return self._to_response_model(db_obj)

    def _flush_new(self, db_obj: ModelType) -> None:
        """Flush a pending insert, mapping constraint failures to domain errors."""
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            message = str(e.orig)
            if "FOREIGN KEY" in message:
                raise NotFoundError(
                    f"{self.entity_name} references a record that does not exist"
                ) from e
            raise DuplicateError(f"{self.entity_name} already exists: {message}") from e

    def update(
        self, id: int | str, data: UpdateSchemaType, commit: bool = True
    ) -> ResponseSchemaType:
        """
        Update existing entity with the fields set on ``data``.

        Raises:
            NotFoundError: If the entity does not exist
        """
        db_obj = self._require_db(id)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(db_obj, field, value)

        self._finish(f"update {self.entity_name}", commit)
        return self._to_response_model(db_obj)

    def delete(self, id: int | str, commit: bool = True) -> None:
        """
        Hard-delete entity by ID.

        Raises:
            NotFoundError: If the entity does not exist
        """
        db_obj = self._require_db(id)
        self.session.delete(db_obj)
        self._finish(f"delete {self.entity_name}", commit)

    def exists(self, id: int | str) -> bool:
        query = (
            select(func.count()).select_from(self.model_class).where(self.model_class.id == id)
        )
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return bool(count)
