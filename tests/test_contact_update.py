import uuid
from datetime import datetime, timedelta

import pytest

from c2.errors import ValidationIssue
from c2.services.contact_service import next_updated_at


def test_update_applies_only_given_fields(service):
    contact = service.create_contact(
        name="Linus",
        company="Kernel Co",
        tags=["developer"],
        notes="likes penguins",
    )

    updated = service.update_contact(contact.id, company="Git Inc")

    assert updated.company == "Git Inc"
    assert updated.name == "Linus"
    assert updated.tags == ["developer"]
    assert updated.notes == "likes penguins"
    assert updated.created_at == contact.created_at


def test_update_with_empty_values_overwrites(service):
    contact = service.create_contact(name="Clear Me", tags=["a", "b"], notes="old", birthdate="1990-01-01")

    updated = service.update_contact(contact.id, tags=[], notes="", birthdate=None)

    stored = service.get_contact(contact.id)
    assert updated.tags == [] and stored.tags == []
    assert stored.notes == ""
    assert stored.birthdate is None


def test_update_without_changes_bumps_updated_at_only(service):
    contact = service.create_contact(name="Same Sam", tags=["x"])

    first = service.update_contact(contact.id)
    second = service.update_contact(contact.id)

    assert first.name == "Same Sam" and first.tags == ["x"]
    assert contact.updated_at < first.updated_at < second.updated_at
    assert service.get_contact(contact.id).updated_at == second.updated_at


def test_update_missing_contact_returns_none(service):
    assert service.update_contact(str(uuid.uuid4()), name="Nobody") is None


def test_update_rejects_malformed_id_and_bad_fields(service):
    with pytest.raises(ValidationIssue):
        service.update_contact("nope", name="X")

    contact = service.create_contact(name="Valid")
    with pytest.raises(ValidationIssue) as excinfo:
        service.update_contact(contact.id, name="   ")
    assert excinfo.value.field == "name"
    with pytest.raises(ValidationIssue) as excinfo:
        service.update_contact(contact.id, birthdate="tomorrow")
    assert excinfo.value.field == "birthdate"
    assert service.get_contact(contact.id).name == "Valid"


def test_update_replaces_embedding_row(service, embedding_rows):
    contact = service.create_contact(name="Chef Carla", tags=["cooking"])
    old_rows = embedding_rows(contact.id)
    assert len(old_rows) == 1

    service.update_contact(contact.id, tags=["guitar"])

    rows = embedding_rows(contact.id)
    assert len(rows) == 1
    assert rows[0].id != old_rows[0].id
    assert rows[0].content == "Chef Carla guitar"


def test_update_keeps_old_embedding_when_provider_fails(service, embedder, embedding_rows):
    contact = service.create_contact(name="Stable Stan", tags=["finance"])
    embedder.fail = True

    updated = service.update_contact(contact.id, notes="new notes")

    assert updated.notes == "new notes"
    rows = embedding_rows(contact.id)
    assert len(rows) == 1
    assert rows[0].content == "Stable Stan finance"


def test_next_updated_at_moves_past_future_timestamp():
    future = datetime.utcnow() + timedelta(hours=1)
    assert next_updated_at(future) == future + timedelta(microseconds=1)
    assert next_updated_at(None) <= datetime.utcnow()
