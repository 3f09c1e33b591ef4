import uuid

import pytest

from kbase.core.errors import AccessDenied, BackendUnavailable
from kbase.domains.access.services import AccessControlService
from kbase.domains.collaboration.entities import extract_mentions
from kbase.domains.collaboration.services import CollaboratorService


async def test_flags_are_batched(db, alice, bob, make_document, monkeypatch):
    doc_a = await make_document(alice, title="A")
    doc_b = await make_document(alice, title="B")
    doc_c = await make_document(alice, title="C")
    await AccessControlService(db).share_document(doc_b.uuid, bob.email, "view", alice)

    service = CollaboratorService(db)
    real = service.collaborator_repository.get_document_ids_with_collaborators
    calls = []

    async def counting(document_ids):
        calls.append(list(document_ids))
        return await real(document_ids)

    monkeypatch.setattr(service.collaborator_repository, "get_document_ids_with_collaborators", counting)

    flags = await service.has_any_collaborators([doc_a.uuid, doc_b.uuid, doc_c.uuid, doc_b.uuid])

    assert flags == {doc_a.uuid: False, doc_b.uuid: True, doc_c.uuid: False}
    assert len(calls) == 1


async def test_flags_for_empty_input(db, monkeypatch):
    service = CollaboratorService(db)

    async def unexpected(document_ids):
        raise AssertionError("no query expected")

    monkeypatch.setattr(service.collaborator_repository, "get_document_ids_with_collaborators", unexpected)
    assert await service.has_any_collaborators([]) == {}


async def test_flags_fail_closed(db, alice, bob, make_document, monkeypatch):
    document = await make_document(alice)
    await AccessControlService(db).share_document(document.uuid, bob.email, "view", alice)
    service = CollaboratorService(db)

    async def broken(document_ids):
        raise BackendUnavailable()

    monkeypatch.setattr(service.collaborator_repository, "get_document_ids_with_collaborators", broken)
    assert await service.has_any_collaborators([document.uuid]) == {document.uuid: False}


async def test_single_flag_ignores_permission_level(db, alice, bob, make_document):
    document = await make_document(alice)
    service = CollaboratorService(db)

    assert not await service.has_any_collaborator(document.uuid)
    await AccessControlService(db).share_document(document.uuid, bob.email, "view", alice)
    assert await service.has_any_collaborator(document.uuid)


async def test_list_collaborators_with_profiles(db, alice, bob, carol, make_document):
    document = await make_document(alice)
    access = AccessControlService(db)
    await access.share_document(document.uuid, bob.email, "edit", alice)
    await access.share_document(document.uuid, carol.email, "view", alice)

    grants = await CollaboratorService(db).list_collaborators(document.uuid, bob)

    assert [g.username for g in grants] == ["bob", "carol"]
    assert [g.permission for g in grants] == ["edit", "view"]
    assert grants[1].email == "carol@example.com"
    assert grants[1].display_name == "carol"


async def test_list_collaborators_requires_view(db, alice, bob, make_document):
    document = await make_document(alice)
    with pytest.raises(AccessDenied):
        await CollaboratorService(db).list_collaborators(document.uuid, bob)


async def test_visible_flags_hide_private_documents(db, alice, bob, carol, make_document):
    shared = await make_document(alice, title="Shared")
    open_doc = await make_document(alice, title="Open", is_public=True)
    await AccessControlService(db).share_document(shared.uuid, bob.email, "view", alice)
    await AccessControlService(db).share_document(open_doc.uuid, carol.email, "view", alice)
    missing = uuid.uuid4()
    ids = [shared.uuid, open_doc.uuid, missing]
    service = CollaboratorService(db)

    assert await service.visible_collaborator_flags(ids, None) == {
        shared.uuid: False, open_doc.uuid: True, missing: False
    }
    assert await service.visible_collaborator_flags(ids, carol) == {
        shared.uuid: False, open_doc.uuid: True, missing: False
    }
    assert await service.visible_collaborator_flags(ids, bob) == {
        shared.uuid: True, open_doc.uuid: True, missing: False
    }
    assert await service.visible_collaborator_flags(ids, alice) == {
        shared.uuid: True, open_doc.uuid: True, missing: False
    }


def test_extract_mentions():
    assert extract_mentions("ping @bob and @carol_1, mail a@b.com") == {"bob", "carol_1"}
    assert extract_mentions("") == set()
