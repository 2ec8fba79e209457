import importlib.util
from pathlib import Path

import pytest
from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, MetaData, String, Table, select
from sqlalchemy.dialects import postgresql

import c2.config as config
from c2.models import Contact
from c2.services.contact_search import _list_element_contains, pgvector_similarity_statement

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "alembic" / "versions"


def _compile(stmt):
    return stmt.compile(dialect=postgresql.dialect())


def _load_migration(filename: str):
    module_spec = importlib.util.spec_from_file_location(filename[:-3], MIGRATIONS_DIR / filename)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.fixture
def vector_embeddings():
    return Table(
        "embeddings",
        MetaData(),
        Column("contact_id", String(36)),
        Column("embedding", Vector(4)),
    )


def test_list_elements_match_through_unnest():
    stmt = select(Contact.id).where(_list_element_contains("postgresql", Contact.email, "50%"))

    compiled = _compile(stmt)
    sql = str(compiled)

    assert "unnest(contacts.email)" in sql
    assert "ILIKE" in sql.upper()
    assert "ESCAPE '/'" in sql
    assert "50/%" in compiled.params.values()


def test_list_elements_match_through_json_each_elsewhere():
    stmt = select(Contact.id).where(_list_element_contains("sqlite", Contact.tags, "dev"))

    assert "json_each(contacts.tags)" in str(stmt.compile())


def test_pgvector_statement_ranks_best_row_per_contact(vector_embeddings):
    stmt = pgvector_similarity_statement(
        [0.1, 0.2, 0.3, 0.4],
        similarity_threshold=0.5,
        top_k=10,
        embeddings=vector_embeddings,
    )

    compiled = _compile(stmt)
    sql = " ".join(str(compiled).split())

    assert "<=>" in sql
    assert "max(" in sql
    assert "GROUP BY embeddings.contact_id" in sql
    assert "best_embeddings.similarity >" in sql
    assert "ORDER BY best_embeddings.similarity DESC, contacts.id" in sql
    assert "LIMIT" in sql
    # Grouping happens inside the subquery, before the limit
    assert sql.index("GROUP BY") < sql.index("LIMIT")
    assert 0.5 in compiled.params.values()
    assert 10 in compiled.params.values()


@pytest.mark.parametrize(
    "is_postgres, vector_backend, expected",
    [
        (True, "pgvector", True),
        (True, "json", False),
        (False, "pgvector", False),
        (False, "json", False),
    ],
)
def test_embeddings_migration_vector_decision(monkeypatch, is_postgres, vector_backend, expected):
    migration = _load_migration("0002_embeddings.py")
    monkeypatch.setattr(config, "VECTOR_BACKEND_EFFECTIVE", vector_backend)

    assert migration._use_pgvector(is_postgres) is expected
