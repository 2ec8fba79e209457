"""
Tool-facing contact operations returning JSON-ready payloads.
"""

from __future__ import annotations

from dataclasses import asdict
from functools import wraps
from typing import Any, Callable, Optional, Sequence

import c2.config as config
from c2.errors import ValidationIssue
from c2.models import serialize_contact
from c2.services.contact_service import (
    BulkCreateResult,
    BulkDeleteResult,
    BulkUpdateResult,
    ContactService,
)
from c2.validators import normalize_contact_fields, validate_pagination_value

logger = config.logger


def _tool_error_payload(tool_name: str, exc: ValidationIssue) -> dict:
    return {
        "status": "error",
        "error_type": "validation_error",
        "tool": tool_name,
        "field": exc.field,
        "message": str(exc),
    }


def _log_validation_issue(tool_name: str, exc: ValidationIssue, warn: bool = False) -> None:
    payload = {
        "tool": tool_name,
        "field": exc.field,
        "error_type": exc.error_type,
        "detail": str(exc),
    }
    if warn:
        logger.warning("tool_validation_error", extra=payload)
    else:
        logger.info("tool_validation_error", extra=payload)


def service_tool(fn: Callable[..., dict]) -> Callable[..., dict]:
    """Turn validation failures into an error payload instead of raising."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationIssue as exc:
            _log_validation_issue(fn.__name__, exc, warn=False)
            return _tool_error_payload(fn.__name__, exc)
        except ValueError as exc:
            issue = ValidationIssue(str(exc), field="unknown", error_type="value_error")
            _log_validation_issue(fn.__name__, issue, warn=True)
            return _tool_error_payload(fn.__name__, issue)
    return wrapper


def _serialize_bulk(result) -> dict:
    payload = {
        "status": "ok" if result.success else "error",
        "success": result.success,
        "processed_count": result.processed_count,
        "errors": [asdict(error) for error in result.errors],
    }
    if isinstance(result, BulkDeleteResult):
        payload["deleted_ids"] = list(result.deleted_ids)
    else:
        payload["contacts"] = [serialize_contact(contact) for contact in result.contacts]
    return payload


def _contact_list_payload(contacts, **extra) -> dict:
    return {
        "status": "ok",
        **extra,
        "count": len(contacts),
        "contacts": [serialize_contact(contact) for contact in contacts],
    }


def _slice(items: list, limit: Optional[int], offset: Optional[int], default_limit: int) -> list:
    limit = validate_pagination_value(limit, "limit", default_limit)
    offset = validate_pagination_value(offset, "offset", 0)
    return items[offset:offset + limit]


@service_tool
def create_contact(service: ContactService, **fields: Any) -> dict:
    contact = service.create_contact(**normalize_contact_fields(fields))
    return {"status": "ok", "contact": serialize_contact(contact)}


@service_tool
def get_contact(service: ContactService, contact_id: str) -> dict:
    contact = service.get_contact(contact_id)
    if contact is None:
        return {"status": "not_found", "id": contact_id, "message": f"Contact with ID {contact_id} not found"}
    return {"status": "ok", "contact": serialize_contact(contact)}


@service_tool
def update_contact(service: ContactService, contact_id: str, **changes: Any) -> dict:
    contact = service.update_contact(contact_id, **normalize_contact_fields(changes))
    if contact is None:
        return {"status": "not_found", "id": contact_id, "message": f"Contact with ID {contact_id} not found"}
    return {"status": "ok", "contact": serialize_contact(contact)}


@service_tool
def delete_contact(service: ContactService, contact_id: str) -> dict:
    deleted = service.delete_contact(contact_id)
    return {"status": "ok" if deleted else "not_found", "id": contact_id, "deleted": deleted}


@service_tool
def list_contacts(
    service: ContactService,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> dict:
    contacts = service.list_contacts(limit=limit, offset=offset)
    return _contact_list_payload(contacts)


@service_tool
def search_contacts(
    service: ContactService,
    query: str,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> dict:
    contacts = service.search_contacts(query)
    contacts = _slice(contacts, limit, offset, config.DEFAULT_LIST_LIMIT)
    return _contact_list_payload(contacts, query=query)


@service_tool
def semantic_search_contacts(
    service: ContactService,
    query: str,
    limit: Optional[int] = None,
) -> dict:
    if service.context.semantic_enabled:
        contacts = service.semantic_search_contacts(query)
        mode = "semantic"
    else:
        contacts = service.search_contacts(query)
        mode = "lexical"
    contacts = _slice(contacts, limit, None, config.SEMANTIC_TOP_K)
    return _contact_list_payload(contacts, query=query, mode=mode)


@service_tool
def bulk_create_contacts(service: ContactService, contacts: Sequence[dict]) -> dict:
    inputs = [
        normalize_contact_fields(item) if isinstance(item, dict) else item
        for item in contacts or []
    ]
    result: BulkCreateResult = service.bulk_create_contacts(inputs)
    return _serialize_bulk(result)


@service_tool
def bulk_update_contacts(service: ContactService, updates: Sequence[dict]) -> dict:
    inputs = [
        normalize_contact_fields(item) if isinstance(item, dict) else item
        for item in updates or []
    ]
    result: BulkUpdateResult = service.bulk_update_contacts(inputs)
    return _serialize_bulk(result)


@service_tool
def bulk_delete_contacts(service: ContactService, ids: Sequence[str]) -> dict:
    result: BulkDeleteResult = service.bulk_delete_contacts(list(ids or []))
    return _serialize_bulk(result)


__all__ = [
    "service_tool",
    "create_contact",
    "get_contact",
    "update_contact",
    "delete_contact",
    "list_contacts",
    "search_contacts",
    "semantic_search_contacts",
    "bulk_create_contacts",
    "bulk_update_contacts",
    "bulk_delete_contacts",
]
