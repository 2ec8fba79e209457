"""Create contacts table.

Revision ID: 0001_contacts
Revises:
Create Date: 2026-10-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_contacts"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"

    if is_postgres:
        uuid_type = postgresql.UUID(as_uuid=False)
        list_type = postgresql.ARRAY(sa.Text())
        list_default = sa.text("'{}'")
    else:
        uuid_type = sa.String(36)
        list_type = sa.JSON()
        list_default = sa.text("'[]'")

    op.create_table(
        "contacts",
        sa.Column("id", uuid_type, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("company", sa.Text(), nullable=False, server_default=""),
        sa.Column("email", list_type, nullable=False, server_default=list_default),
        sa.Column("phone", list_type, nullable=False, server_default=list_default),
        sa.Column("links", list_type, nullable=False, server_default=list_default),
        sa.Column("tags", list_type, nullable=False, server_default=list_default),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("location", sa.Text(), nullable=False, server_default=""),
        sa.Column("birthdate", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_contacts_updated_at", "contacts", ["updated_at"])


def downgrade() -> None:
    op.drop_index("ix_contacts_updated_at", table_name="contacts")
    op.drop_table("contacts")
