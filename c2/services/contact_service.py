"""
Contact CRUD, bulk operations and the embedding lifecycle tied to them.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import exists
from sqlalchemy.exc import SQLAlchemyError

import c2.config as config
from c2.context import AppContext
from c2.errors import ValidationIssue
from c2.models import Contact, Embedding, utcnow
from c2.services.contact_search import HybridSearchEngine
from c2.services.embeddings import EmbeddingResult, build_contact_embedding_text
from c2.validators import (
    is_valid_uuid,
    prepare_contact_fields,
    validate_contact_id,
    validate_pagination_value,
)

CONTACT_NOT_FOUND = "Contact not found"
CONTACT_NOT_DELETED = "Contact not found or deletion failed"


# =============================================================================
# Bulk result types
# =============================================================================

@dataclass
class BulkError:
    index: int
    error: str
    data: Any = None


@dataclass
class BulkCreateResult:
    success: bool = True
    processed_count: int = 0
    errors: List[BulkError] = field(default_factory=list)
    contacts: List[Contact] = field(default_factory=list)


@dataclass
class BulkUpdateResult:
    success: bool = True
    processed_count: int = 0
    errors: List[BulkError] = field(default_factory=list)
    contacts: List[Contact] = field(default_factory=list)


@dataclass
class BulkDeleteResult:
    success: bool = True
    processed_count: int = 0
    errors: List[BulkError] = field(default_factory=list)
    deleted_ids: List[str] = field(default_factory=list)


def next_updated_at(previous: Optional[datetime]) -> datetime:
    """Current time, nudged past ``previous`` so updated_at always moves forward."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class ContactService:
    def __init__(
        self,
        context: AppContext,
        search_engine: Optional[HybridSearchEngine] = None,
        *,
        max_embedding_concurrency: int = config.EMBEDDING_MAX_CONCURRENCY,
    ):
        self.context = context
        self.search_engine = search_engine or HybridSearchEngine(context)
        self.max_embedding_concurrency = max(1, max_embedding_concurrency)

    @property
    def logger(self):
        return self.context.logger

    # -------------------------------------------------------------------------
    # Embedding lifecycle
    # -------------------------------------------------------------------------

    def _embed_contact(self, contact: Contact) -> tuple[str, EmbeddingResult]:
        content = build_contact_embedding_text(contact)
        return content, self.context.embedder.embed(content)

    def _store_embedding(
        self,
        contact_id: str,
        content: str,
        result: EmbeddingResult,
        *,
        replace: bool,
    ) -> bool:
        if not result.ok:
            self.logger.warning(
                "embedding_unavailable",
                extra={"contact_id": contact_id, "reason": result.error or "empty embedding"},
            )
            return False

        db = self.context.session_factory()
        try:
            # Old rows and the new row change together so a contact never loses its embedding
            if replace:
                db.query(Embedding).filter(Embedding.contact_id == contact_id).delete(
                    synchronize_session=False
                )
            now = utcnow()
            db.add(
                Embedding(
                    contact_id=contact_id,
                    content=content,
                    embedding=result.vector,
                    created_at=now,
                    updated_at=now,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            self.logger.warning(
                "embedding_store_failed",
                extra={"contact_id": contact_id, "error": str(exc)},
            )
            return False
        finally:
            db.close()
        return True

    def _refresh_embedding(self, contact: Contact, *, replace: bool) -> bool:
        if not self.context.semantic_enabled:
            return False
        content, result = self._embed_contact(contact)
        return self._store_embedding(contact.id, content, result, replace=replace)

    def _bulk_create_embeddings(self, contacts: Sequence[Contact]) -> None:
        if not contacts or not self.context.semantic_enabled:
            return
        workers = min(self.max_embedding_concurrency, len(contacts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="c2-embed") as pool:
            pending = [(contact, pool.submit(self._embed_contact, contact)) for contact in contacts]

        for contact, future in pending:
            try:
                content, result = future.result()
            except Exception as exc:
                self.logger.warning(
                    "embedding_create_failed",
                    extra={"contact_id": contact.id, "error": str(exc)},
                )
                continue
            self._store_embedding(contact.id, content, result, replace=False)

    def backfill_embeddings(self, limit: Optional[int] = None) -> dict:
        """Embed contacts that have no embedding row yet."""
        if not self.context.semantic_enabled:
            return {"status": "skipped", "reason": "embedding_disabled"}
        breaker = getattr(self.context.embedder, "circuit_breaker", None)
        if breaker is not None and breaker.is_open():
            return {"status": "skipped", "reason": "circuit_open"}
        limit = validate_pagination_value(limit, "limit", config.EMBEDDING_BACKFILL_BATCH_LIMIT)

        db = self.context.session_factory()
        try:
            missing = (
                db.query(Contact)
                .filter(~exists().where(Embedding.contact_id == Contact.id))
                .order_by(Contact.created_at.asc(), Contact.id)
                .limit(limit)
                .all()
            )
        finally:
            db.close()

        backfilled = 0
        skipped = 0
        for contact in missing:
            if self._refresh_embedding(contact, replace=False):
                backfilled += 1
            else:
                skipped += 1

        stats = {
            "status": "ok",
            "processed": len(missing),
            "backfilled": backfilled,
            "skipped_count": skipped,
        }
        if backfilled:
            self.logger.info("embedding_backfill_complete", extra=stats)
        return stats

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create_contact(self, **fields) -> Contact:
        values = prepare_contact_fields(fields)
        db = self.context.session_factory()
        try:
            now = utcnow()
            contact = Contact(created_at=now, updated_at=now, **values)
            db.add(contact)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

        self._refresh_embedding(contact, replace=False)
        return contact

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        contact_id = validate_contact_id(contact_id)
        db = self.context.session_factory()
        try:
            return db.query(Contact).filter(Contact.id == contact_id).first()
        finally:
            db.close()

    def update_contact(self, contact_id: str, **changes) -> Optional[Contact]:
        """Apply only the given fields; returns None when no contact matches."""
        contact_id = validate_contact_id(contact_id)
        values = prepare_contact_fields(changes, partial=True)

        db = self.context.session_factory()
        try:
            contact = db.query(Contact).filter(Contact.id == contact_id).first()
            if contact is None:
                return None
            for key, value in values.items():
                setattr(contact, key, value)
            contact.updated_at = next_updated_at(contact.updated_at)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

        self._refresh_embedding(contact, replace=True)
        return contact

    def delete_contact(self, contact_id: str) -> bool:
        if not is_valid_uuid(contact_id):
            return False
        contact_id = validate_contact_id(contact_id)

        db = self.context.session_factory()
        try:
            # Embedding rows go with the contact through ON DELETE CASCADE
            deleted = (
                db.query(Contact)
                .filter(Contact.id == contact_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()
        return deleted > 0

    def list_contacts(
        self,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Contact]:
        return self.search_engine.list_contacts(query=query, limit=limit, offset=offset)

    def search_contacts(self, query: Optional[str]) -> List[Contact]:
        return self.search_engine.search(query)

    def semantic_search_contacts(self, query: str) -> List[Contact]:
        return self.search_engine.semantic_search(query)

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    def bulk_create_contacts(self, inputs: Sequence[Mapping[str, Any]]) -> BulkCreateResult:
        """Insert all inputs in one transaction; any invalid input fails the batch."""
        result = BulkCreateResult()
        if not inputs:
            return result

        prepared = []
        for index, data in enumerate(inputs):
            try:
                if not isinstance(data, Mapping):
                    raise ValidationIssue(
                        "contact input must be an object",
                        field="contacts",
                        error_type="invalid_type",
                    )
                prepared.append(prepare_contact_fields(data))
            except ValidationIssue as exc:
                result.errors.append(BulkError(index=index, error=str(exc), data=data))
        if result.errors:
            result.success = False
            return result

        db = self.context.session_factory()
        try:
            now = utcnow()
            contacts = [Contact(created_at=now, updated_at=now, **values) for values in prepared]
            db.add_all(contacts)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            self.logger.error("bulk_create_failed", extra={"count": len(prepared), "error": str(exc)})
            result.success = False
            result.errors.append(BulkError(index=-1, error=str(exc)))
            return result
        finally:
            db.close()

        result.contacts = contacts
        result.processed_count = len(contacts)
        self._bulk_create_embeddings(contacts)
        return result

    def bulk_update_contacts(self, updates: Sequence[Mapping[str, Any]]) -> BulkUpdateResult:
        result = BulkUpdateResult()
        for index, update in enumerate(updates or []):
            try:
                if not isinstance(update, Mapping) or "id" not in update:
                    raise ValidationIssue("id is required", field="id", error_type="required")
                changes = dict(update)
                contact_id = changes.pop("id")
                contact = self.update_contact(contact_id, **changes)
            except (ValidationIssue, SQLAlchemyError) as exc:
                result.success = False
                result.errors.append(BulkError(index=index, error=str(exc), data=update))
                continue
            if contact is None:
                result.errors.append(BulkError(index=index, error=CONTACT_NOT_FOUND, data=update))
                continue
            result.contacts.append(contact)
            result.processed_count += 1
        return result

    def bulk_delete_contacts(self, ids: Sequence[str]) -> BulkDeleteResult:
        result = BulkDeleteResult()
        for index, contact_id in enumerate(ids or []):
            try:
                deleted = self.delete_contact(contact_id)
            except SQLAlchemyError as exc:
                result.success = False
                result.errors.append(BulkError(index=index, error=str(exc), data=contact_id))
                continue
            if not deleted:
                result.errors.append(BulkError(index=index, error=CONTACT_NOT_DELETED, data=contact_id))
                continue
            result.deleted_ids.append(contact_id)
            result.processed_count += 1
        return result


__all__ = [
    "BulkError",
    "BulkCreateResult",
    "BulkUpdateResult",
    "BulkDeleteResult",
    "ContactService",
    "next_updated_at",
]
