"""
C2 Database Models
Contacts and their embeddings (PostgreSQL + pgvector, or SQLite + JSON vectors)
"""

from datetime import datetime
import uuid
from sqlalchemy import (
    Column, String, Text, Date, DateTime, ForeignKey, Index, JSON, event
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import relationship, declarative_base

import c2.config as config

DB_BACKEND_EFFECTIVE = config.DB_BACKEND_EFFECTIVE
VECTOR_BACKEND_EFFECTIVE = config.VECTOR_BACKEND_EFFECTIVE

try:
    from pgvector.sqlalchemy import Vector as PgVector
    PGVECTOR_AVAILABLE = True
except ImportError:
    PgVector = None
    PGVECTOR_AVAILABLE = False

if (
    DB_BACKEND_EFFECTIVE == "postgres"
    and VECTOR_BACKEND_EFFECTIVE == "pgvector"
    and PGVECTOR_AVAILABLE
):
    EMBEDDING_COLUMN_TYPE = PgVector(config.EMBEDDING_DIM)
else:
    EMBEDDING_COLUMN_TYPE = JSON

LIST_TYPE = ARRAY(Text) if DB_BACKEND_EFFECTIVE == "postgres" else JSON
UUID_TYPE = UUID(as_uuid=False) if DB_BACKEND_EFFECTIVE == "postgres" else String(36)
LIST_SERVER_DEFAULT = "{}" if DB_BACKEND_EFFECTIVE == "postgres" else "[]"

TEXT_FIELDS = ("title", "company", "notes", "location")
LIST_FIELDS = ("email", "phone", "links", "tags")
CONTACT_FIELDS = ("name",) + TEXT_FIELDS + LIST_FIELDS + ("birthdate",)


def _uuid_default() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less timestamp columns."""
    return datetime.utcnow()


Base = declarative_base()

# =============================================================================
# Contacts
# =============================================================================

class Contact(Base):
    __tablename__ = "contacts"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    name = Column(Text, nullable=False)
    title = Column(Text, nullable=False, default="", server_default="")
    company = Column(Text, nullable=False, default="", server_default="")
    email = Column(LIST_TYPE, nullable=False, default=list, server_default=LIST_SERVER_DEFAULT)
    phone = Column(LIST_TYPE, nullable=False, default=list, server_default=LIST_SERVER_DEFAULT)
    links = Column(LIST_TYPE, nullable=False, default=list, server_default=LIST_SERVER_DEFAULT)
    tags = Column(LIST_TYPE, nullable=False, default=list, server_default=LIST_SERVER_DEFAULT)
    notes = Column(Text, nullable=False, default="", server_default="")
    location = Column(Text, nullable=False, default="", server_default="")
    birthdate = Column(Date)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Rows are removed by the database cascade, not by the ORM
    embeddings = relationship(
        "Embedding",
        back_populates="contact",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_contacts_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Contact id={self.id} name={self.name!r}>"


# =============================================================================
# Embeddings (one active row per contact, replaced on update)
# =============================================================================

class Embedding(Base):
    __tablename__ = "embeddings"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    contact_id = Column(
        UUID_TYPE,
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    embedding = Column(EMBEDDING_COLUMN_TYPE, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    contact = relationship("Contact", back_populates="embeddings")

    __table_args__ = (
        Index("ix_embeddings_contact_id", "contact_id"),
    )


@event.listens_for(Contact, "before_insert")
@event.listens_for(Contact, "before_update")
def _fill_contact_defaults(mapper, connection, target) -> None:
    # Text and list columns are never NULL once persisted
    for field in TEXT_FIELDS:
        if getattr(target, field, None) is None:
            setattr(target, field, "")
    for field in LIST_FIELDS:
        if getattr(target, field, None) is None:
            setattr(target, field, [])


def serialize_contact(contact: Contact) -> dict:
    return {
        "id": contact.id,
        "name": contact.name,
        "title": contact.title,
        "company": contact.company,
        "email": list(contact.email or []),
        "phone": list(contact.phone or []),
        "links": list(contact.links or []),
        "tags": list(contact.tags or []),
        "notes": contact.notes,
        "location": contact.location,
        "birthdate": contact.birthdate.isoformat() if contact.birthdate else None,
        "created_at": contact.created_at.isoformat() if contact.created_at else None,
        "updated_at": contact.updated_at.isoformat() if contact.updated_at else None,
    }


__all__ = [
    "Base",
    "Contact",
    "Embedding",
    "CONTACT_FIELDS",
    "TEXT_FIELDS",
    "LIST_FIELDS",
    "EMBEDDING_COLUMN_TYPE",
    "PGVECTOR_AVAILABLE",
    "serialize_contact",
    "utcnow",
]
