from c2.context import AppContext
from c2.services.contact_service import ContactService
from c2.services.embeddings import build_contact_embedding_text


def test_embedding_text_field_order_and_spacing():
    contact = {
        "name": "Ada Lovelace",
        "title": "",
        "company": "Analytical Engines",
        "location": "London",
        "notes": "",
        "email": ["ada@engines.test", ""],
        "phone": [],
        "links": ["https://ada.test"],
        "tags": ["math", "poetry"],
    }

    assert build_contact_embedding_text(contact) == (
        "Ada Lovelace Analytical Engines London ada@engines.test https://ada.test math poetry"
    )
    assert build_contact_embedding_text({"name": "Solo"}) == "Solo"


def test_embedding_text_from_stored_contact(service):
    contact = service.create_contact(
        name="Bo",
        title="Chef",
        company="Bistro",
        location="Porto",
        notes="loves fish",
        email=["bo@bistro.test"],
        phone=["123"],
        links=["https://bistro.test"],
        tags=["cooking"],
    )

    assert build_contact_embedding_text(contact) == (
        "Bo Chef Bistro Porto loves fish bo@bistro.test 123 https://bistro.test cooking"
    )


def test_one_embedding_row_across_create_and_updates(service, embedding_rows):
    contact = service.create_contact(name="Iris", tags=["music"])
    for notes in ("first", "second", "third"):
        service.update_contact(contact.id, notes=notes)

    rows = embedding_rows(contact.id)
    assert len(rows) == 1
    assert rows[0].content == "Iris third music"


def test_update_after_failed_create_adds_embedding(service, embedder, embedding_rows):
    embedder.fail = True
    contact = service.create_contact(name="Late Larry")
    assert embedding_rows(contact.id) == []

    embedder.fail = False
    service.update_contact(contact.id, tags=["bank"])

    rows = embedding_rows(contact.id)
    assert len(rows) == 1
    assert rows[0].content == "Late Larry bank"


def test_vector_backend_none_disables_embeddings(server_db, embedder, embedding_rows):
    context = AppContext(
        session_factory=server_db,
        embedder=embedder,
        embeddings_enabled=True,
        vector_backend="none",
    )
    service = ContactService(context)

    contact = service.create_contact(name="No Vectors", tags=["developer"])

    assert context.semantic_enabled is False
    assert embedding_rows(contact.id) == []
    assert embedder.calls == []
    assert [c.id for c in service.search_contacts("no vectors")] == [contact.id]


def test_backfill_embeds_contacts_missing_rows(service, embedder, embedding_rows):
    embedder.fail = True
    first = service.create_contact(name="Missing One", tags=["chef"])
    second = service.create_contact(name="Missing Two")
    embedder.fail = False
    service.create_contact(name="Already There")

    stats = service.backfill_embeddings()

    assert stats == {"status": "ok", "processed": 2, "backfilled": 2, "skipped_count": 0}
    assert len(embedding_rows(first.id)) == 1
    assert len(embedding_rows(second.id)) == 1
    assert service.backfill_embeddings()["processed"] == 0


def test_backfill_respects_limit_and_failures(service, embedder):
    embedder.fail = True
    for index in range(3):
        service.create_contact(name=f"Pending {index}")

    stats = service.backfill_embeddings(limit=2)
    assert stats == {"status": "ok", "processed": 2, "backfilled": 0, "skipped_count": 2}

    embedder.fail = False
    assert service.backfill_embeddings(limit=2)["backfilled"] == 2
    assert service.backfill_embeddings(limit=2)["backfilled"] == 1


def test_backfill_skipped_when_embeddings_disabled(lexical_service):
    lexical_service.create_contact(name="Plain")

    assert lexical_service.backfill_embeddings() == {"status": "skipped", "reason": "embedding_disabled"}
