"""Library and Contact repositories."""

from pydantic import BaseModel, Field
from sqlalchemy import asc, select

from ..database.schema import Contact as ContactDB
from ..database.schema import Library as LibraryDB
from ..models.contact import Contact, Library
from ..models.enums import ContactType
from .repository import BaseRepository
from .session import safe_query

DEFAULT_LIBRARY_NAME = "My Library"


class LibraryCreateSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None


class LibraryUpdateSchema(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None


class ContactCreateSchema(BaseModel):
    type: ContactType = ContactType.BORROWER
    name: str = Field(..., min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    library_owner_id: int | None = None
    is_active: bool = True


class ContactUpdateSchema(BaseModel):
    type: ContactType | None = None
    name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class LibraryRepository(
    BaseRepository[LibraryDB, LibraryCreateSchema, LibraryUpdateSchema, Library]
):
    @property
    def model_class(self) -> type[LibraryDB]:
        return LibraryDB

    @property
    def response_schema(self) -> type[Library]:
        return Library

    def get_or_create_default(self, name: str = DEFAULT_LIBRARY_NAME) -> Library:
        """
        Return the first library, creating one if the store is empty.

        Copies created on behalf of peer loans are filed under this library.
        Does not commit.
        """
        existing = safe_query(
            self.session,
            lambda s: s.execute(select(LibraryDB).order_by(asc(LibraryDB.id)).limit(1))
            .scalars()
            .first(),
            "Failed to get default library",
        )
        if existing is not None:
            return self._to_response_model(existing)
        return self.create(LibraryCreateSchema(name=name), commit=False)


class ContactRepository(
    BaseRepository[ContactDB, ContactCreateSchema, ContactUpdateSchema, Contact]
):
    @property
    def model_class(self) -> type[ContactDB]:
        return ContactDB

    @property
    def response_schema(self) -> type[Contact]:
        return Contact

    def find_or_create_for_peer(self, peer_name: str, library_id: int) -> Contact:
        """
        Find the ``library`` contact standing for a peer, creating it if needed.

        Loans to peer libraries are recorded against this contact. Does not commit.
        """
        existing = safe_query(
            self.session,
            lambda s: s.execute(
                select(ContactDB)
                .where(ContactDB.type == ContactType.LIBRARY, ContactDB.name == peer_name)
                .order_by(asc(ContactDB.id))
                .limit(1)
            )
            .scalars()
            .first(),
            "Failed to look up peer contact",
        )
        if existing is not None:
            return self._to_response_model(existing)

        return self.create(
            ContactCreateSchema(
                type=ContactType.LIBRARY,
                name=peer_name,
                notes="Peer library",
                library_owner_id=library_id,
            ),
            commit=False,
        )
