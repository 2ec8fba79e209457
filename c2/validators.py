"""
Shared validation and normalization helpers for contact services.
"""

from __future__ import annotations

import re
import uuid
from datetime import date
from typing import Any, Mapping, Optional, Sequence, Union

from c2.errors import ValidationIssue
from c2.models import CONTACT_FIELDS, LIST_FIELDS, TEXT_FIELDS

BIRTHDATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_required_text(value: str, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")


def validate_optional_text(value: Optional[str], field: str) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")


def validate_string_list(values: Optional[Sequence[str]], field: str) -> None:
    if values is None:
        return
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
        raise ValidationIssue(f"{field} must be a list of strings", field=field, error_type="invalid_type")
    for item in values:
        if not isinstance(item, str):
            raise ValidationIssue(f"{field} must contain only strings", field=field, error_type="invalid_type")


def parse_birthdate(value: Union[str, date, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not BIRTHDATE_PATTERN.match(value):
        raise ValidationIssue(
            "birthdate must be in YYYY-MM-DD format",
            field="birthdate",
            error_type="invalid_format",
        )
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationIssue(
            f"birthdate is not a valid date: {value}",
            field="birthdate",
            error_type="invalid_value",
        ) from exc


def validate_pagination_value(value: Any, field: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationIssue(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value < 0:
        raise ValidationIssue(f"{field} must not be negative", field=field, error_type="out_of_range")
    return value


def is_valid_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def validate_contact_id(value: Any, field: str = "id") -> str:
    """Return the canonical lowercase hyphenated form of a contact id."""
    if not is_valid_uuid(value):
        raise ValidationIssue(f"{field} must be a valid UUID", field=field, error_type="invalid_id")
    return str(uuid.UUID(value))


def prepare_contact_fields(data: Mapping[str, Any], *, partial: bool = False) -> dict:
    """Validate contact input and return column values.

    With ``partial`` only the keys present are returned; a key given as None
    clears the column (empty string, empty list or no birthdate).
    """
    unknown = sorted(set(data) - set(CONTACT_FIELDS))
    if unknown:
        raise ValidationIssue(
            f"Unknown contact fields: {', '.join(unknown)}",
            field=unknown[0],
            error_type="unknown_field",
        )

    values: dict = {}
    if "name" in data or not partial:
        validate_required_text(data.get("name"), "name")
        values["name"] = data["name"]

    for field in TEXT_FIELDS:
        if field not in data and partial:
            continue
        value = data.get(field)
        validate_optional_text(value, field)
        values[field] = value or ""

    for field in LIST_FIELDS:
        if field not in data and partial:
            continue
        value = data.get(field)
        validate_string_list(value, field)
        values[field] = list(value or [])

    if "birthdate" in data or not partial:
        values["birthdate"] = parse_birthdate(data.get("birthdate"))

    return values


def normalize_to_list(value: Union[str, Sequence[str], None]) -> Optional[list]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return list(value)


def normalize_contact_fields(data: Mapping[str, Any]) -> dict:
    """Turn single-string multi-valued fields into lists and drop unset keys."""
    normalized = {}
    for key, value in data.items():
        if value is None:
            continue
        if key in LIST_FIELDS:
            value = normalize_to_list(value)
        normalized[key] = value
    return normalized
