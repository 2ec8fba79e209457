"""Create embeddings table with cascade delete and vector index.

Revision ID: 0002_embeddings
Revises: 0001_contacts
Create Date: 2026-10-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

import c2.config as c2_config


revision = "0002_embeddings"
down_revision = "0001_contacts"
branch_labels = None
depends_on = None


def _use_pgvector(is_postgres: bool) -> bool:
    return is_postgres and c2_config.VECTOR_BACKEND_EFFECTIVE == "pgvector"


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    use_pgvector = _use_pgvector(is_postgres)

    if is_postgres:
        uuid_type = postgresql.UUID(as_uuid=False)
    else:
        uuid_type = sa.String(36)

    if use_pgvector:
        from pgvector.sqlalchemy import Vector

        vector_type = Vector(c2_config.EMBEDDING_DIM)
    else:
        vector_type = sa.JSON()

    op.create_table(
        "embeddings",
        sa.Column("id", uuid_type, nullable=False),
        sa.Column("contact_id", uuid_type, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("embedding", vector_type, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_embeddings_contact_id", "embeddings", ["contact_id"])

    if use_pgvector:
        op.execute(
            "CREATE INDEX IF NOT EXISTS ix_embeddings_vector_hnsw "
            "ON embeddings USING hnsw (embedding vector_cosine_ops)"
        )


def downgrade() -> None:
    bind = op.get_bind()
    if _use_pgvector(bind.dialect.name == "postgresql"):
        op.execute("DROP INDEX IF EXISTS ix_embeddings_vector_hnsw")
    op.drop_index("ix_embeddings_contact_id", table_name="embeddings")
    op.drop_table("embeddings")
