"""
Hybrid contact search: lexical substring matching merged with embedding similarity.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import numpy as np
from sqlalchemy import String, Table, Text, column, exists, func, or_, select

import c2.config as config
from c2.context import AppContext
from c2.models import Contact, Embedding
from c2.validators import validate_pagination_value

LEXICAL_TEXT_COLUMNS = (
    Contact.name,
    Contact.company,
    Contact.notes,
    Contact.title,
    Contact.location,
)
LEXICAL_LIST_COLUMNS = (
    Contact.email,
    Contact.phone,
    Contact.links,
    Contact.tags,
)


def _is_postgres(db) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def _list_element_contains(dialect_name: str, list_column, query: str):
    if dialect_name == "postgresql":
        element = func.unnest(list_column, type_=Text).column_valued("value")
        return exists(select(element).where(element.icontains(query, autoescape=True)))
    elements = func.json_each(list_column).table_valued(column("value", String))
    return exists(
        select(elements.c.value).where(elements.c.value.icontains(query, autoescape=True))
    )


def pgvector_similarity_statement(
    vector: List[float],
    *,
    similarity_threshold: float,
    top_k: int,
    embeddings: Table = Embedding.__table__,
):
    """Contacts with their best embedding similarity, ranked, one row per contact."""
    similarity = 1 - embeddings.c.embedding.cosine_distance(vector)
    best = (
        select(
            embeddings.c.contact_id.label("contact_id"),
            func.max(similarity).label("similarity"),
        )
        .group_by(embeddings.c.contact_id)
        .subquery("best_embeddings")
    )
    return (
        select(Contact, best.c.similarity)
        .join(best, best.c.contact_id == Contact.id)
        .where(best.c.similarity > similarity_threshold)
        .order_by(best.c.similarity.desc(), Contact.id)
        .limit(top_k)
    )


def cosine_similarity(query_vector: np.ndarray, query_norm: float, stored) -> Optional[float]:
    """Cosine similarity, or None when the stored vector cannot be compared."""
    if not stored or len(stored) != query_vector.shape[0]:
        return None
    candidate = np.asarray(stored, dtype=np.float64)
    norm = float(np.linalg.norm(candidate))
    if norm == 0.0:
        return None
    return float(np.dot(query_vector, candidate) / (query_norm * norm))


class HybridSearchEngine:
    def __init__(
        self,
        context: AppContext,
        *,
        similarity_threshold: float = config.SEMANTIC_SIMILARITY_THRESHOLD,
        top_k: int = config.SEMANTIC_TOP_K,
        default_limit: int = config.DEFAULT_LIST_LIMIT,
    ):
        self.context = context
        self.similarity_threshold = similarity_threshold
        self.top_k = top_k
        self.default_limit = default_limit

    @property
    def logger(self):
        return self.context.logger

    # -------------------------------------------------------------------------
    # Lexical path
    # -------------------------------------------------------------------------

    def list_contacts(
        self,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Contact]:
        """Most recently updated contacts first, optionally filtered by a literal substring."""
        limit = validate_pagination_value(limit, "limit", self.default_limit)
        offset = validate_pagination_value(offset, "offset", 0)
        if limit == 0:
            return []

        db = self.context.session_factory()
        try:
            stmt = db.query(Contact)
            if query:
                dialect_name = db.get_bind().dialect.name
                conditions = [col.icontains(query, autoescape=True) for col in LEXICAL_TEXT_COLUMNS]
                conditions.extend(
                    _list_element_contains(dialect_name, col, query) for col in LEXICAL_LIST_COLUMNS
                )
                stmt = stmt.filter(or_(*conditions))
            return (
                stmt.order_by(Contact.updated_at.desc(), Contact.id)
                .offset(offset)
                .limit(limit)
                .all()
            )
        finally:
            db.close()

    # -------------------------------------------------------------------------
    # Semantic path
    # -------------------------------------------------------------------------

    def semantic_search(self, query: str) -> List[Contact]:
        """Contacts whose embedding is similar to ``query``; empty when no vector is available."""
        if not self.context.semantic_enabled:
            return []
        result = self.context.embedder.embed(query)
        if not result.ok:
            self.logger.info(
                "semantic_search_skipped",
                extra={"reason": result.error or "empty embedding"},
            )
            return []

        db = self.context.session_factory()
        try:
            if self.context.vector_backend == "pgvector" and _is_postgres(db):
                return self._pgvector_search(db, result.vector)
            return self._json_vector_search(db, result.vector)
        finally:
            db.close()

    def _pgvector_search(self, db, vector: List[float]) -> List[Contact]:
        stmt = pgvector_similarity_statement(
            vector,
            similarity_threshold=self.similarity_threshold,
            top_k=self.top_k,
        )
        return [contact for contact, _similarity in db.execute(stmt).all()]

    def _json_vector_search(self, db, vector: List[float]) -> List[Contact]:
        query_vector = np.asarray(vector, dtype=np.float64)
        query_norm = float(np.linalg.norm(query_vector))
        if query_norm == 0.0:
            return []

        best: dict = {}
        for contact_id, stored in db.query(Embedding.contact_id, Embedding.embedding).all():
            similarity = cosine_similarity(query_vector, query_norm, stored)
            if similarity is None or similarity <= self.similarity_threshold:
                continue
            if similarity > best.get(contact_id, -1.0):
                best[contact_id] = similarity

        ranked = sorted(best.items(), key=lambda item: item[1], reverse=True)[: self.top_k]
        if not ranked:
            return []
        ids = [contact_id for contact_id, _ in ranked]
        contacts = {c.id: c for c in db.query(Contact).filter(Contact.id.in_(ids)).all()}
        return [contacts[contact_id] for contact_id in ids if contact_id in contacts]

    # -------------------------------------------------------------------------
    # Hybrid
    # -------------------------------------------------------------------------

    def search(self, query: Optional[str]) -> List[Contact]:
        """Semantic matches first, then lexical matches not already present."""
        if query is None or not self.context.semantic_enabled:
            return self.list_contacts(query)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="c2-search") as pool:
            lexical_future = pool.submit(self.list_contacts, query)
            semantic_future = pool.submit(self.semantic_search, query)
            lexical = lexical_future.result()
            try:
                semantic = semantic_future.result()
            except Exception as exc:
                self.logger.warning(
                    "semantic_search_failed",
                    extra={"error": str(exc)},
                )
                return lexical

        merged = {}
        for contact in semantic:
            merged.setdefault(contact.id, contact)
        for contact in lexical:
            merged.setdefault(contact.id, contact)
        return list(merged.values())


__all__ = ["HybridSearchEngine", "cosine_similarity", "pgvector_similarity_statement"]
