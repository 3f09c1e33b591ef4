import uuid

import pytest

from kbase.core.errors import AccessDenied, AuthenticationRequired, Conflict, NotFound, VersionHistoryIncomplete
from kbase.db.repositories.collaboration_repository import NotificationRepository
from kbase.db.repositories.document_repository import DocumentRepository, DocumentVersionRepository
from kbase.domains.access.services import AccessControlService
from kbase.domains.collaboration.entities import Notification
from kbase.domains.documents.entities import CHANGES_CREATED, CHANGES_UPDATED
from kbase.domains.documents.schemas import DocumentCreate, DocumentUpdate
from kbase.domains.documents.services import DocumentService
from kbase.domains.documents.versioning import EditingSession, EditingSessionRegistry, editing_sessions
from kbase.domains.identity.entities import User


async def test_create_produces_exactly_version_one(db, alice, make_document):
    document = await make_document(alice, content="<p>hello</p>")

    versions = await DocumentVersionRepository(db).get_by_document(document.uuid)
    assert len(versions) == 1
    assert versions[0].version == 1
    assert versions[0].changes == CHANGES_CREATED
    assert versions[0].content == "<p>hello</p>"
    assert document.current_version == 1


async def test_create_reports_partial_failure(db, alice, version_manager, monkeypatch):
    async def broken(document):
        raise Conflict()

    monkeypatch.setattr(version_manager, "create_initial_version", broken)
    service = DocumentService(db, version_manager=version_manager)

    with pytest.raises(VersionHistoryIncomplete) as exc_info:
        await service.create_document(DocumentCreate(title="Draft"), alice)

    document_id = exc_info.value.document_id
    assert await DocumentRepository(db).get_by_uuid(document_id) is not None
    assert exc_info.value.to_dict()["document_id"] == str(document_id)


async def test_create_requires_authentication(document_service):
    with pytest.raises(AuthenticationRequired):
        await document_service.create_document(DocumentCreate(title="Draft"), None)


async def test_edit_within_window_updates_document_only(db, alice, make_document, version_manager):
    document = await make_document(alice, content="v1")

    result = await version_manager.record_edit(document.uuid, alice, "v1 and more")

    assert not result.version_created
    stored = await DocumentRepository(db).get_by_uuid(document.uuid)
    assert stored.content == "v1 and more"
    assert stored.current_version == 1
    assert await DocumentVersionRepository(db).count_by_document(document.uuid) == 1


async def test_edit_after_window_captures_version(db, alice, make_document, version_manager, clock):
    document = await make_document(alice, content="v1")
    clock.advance(61)

    result = await version_manager.record_edit(document.uuid, alice, "v2", title="Renamed")

    assert result.version_created
    assert result.version.version == 2
    assert result.version.changes == CHANGES_UPDATED
    stored = await DocumentRepository(db).get_by_uuid(document.uuid)
    assert stored.current_version == 2
    assert stored.title == "Renamed"


async def test_autosaves_within_window_create_one_version(db, alice, make_document, version_manager, clock):
    document = await make_document(alice, content="start")
    session = await version_manager.open_session(document.uuid, alice)

    clock.advance(61)
    first = await version_manager.record_edit(document.uuid, alice, "tick 0", session=session)
    assert first.version_created

    results = []
    for i in range(1, 11):
        clock.advance(2)
        results.append(await version_manager.record_edit(document.uuid, alice, f"tick {i}", session=session))

    assert not any(r.version_created for r in results)
    versions = await DocumentVersionRepository(db).get_by_document(document.uuid)
    assert [v.version for v in versions] == [2, 1]
    stored = await DocumentRepository(db).get_by_uuid(document.uuid)
    assert stored.content == "tick 10"
    assert stored.current_version == 2


async def test_session_window_restarts_after_capture(db, alice, make_document, version_manager, clock):
    document = await make_document(alice, content="start")
    session = await version_manager.open_session(document.uuid, alice)

    clock.advance(61)
    await version_manager.record_edit(document.uuid, alice, "a", session=session)
    clock.advance(59)
    assert not (await version_manager.record_edit(document.uuid, alice, "b", session=session)).version_created
    clock.advance(1)
    result = await version_manager.record_edit(document.uuid, alice, "c", session=session)

    assert result.version_created
    assert result.version.version == 3


async def test_metadata_only_save_after_window_is_captured(db, alice, make_document, version_manager, clock):
    document = await make_document(alice, title="A", content="same")
    clock.advance(120)

    result = await version_manager.record_edit(document.uuid, alice, "same", title="B", is_public=True)

    assert result.version_created
    assert result.version.version == 2
    assert result.version.content == "same"
    stored = await DocumentRepository(db).get_by_uuid(document.uuid)
    assert stored.title == "B"
    assert stored.is_public


async def test_explicit_capture_restarts_open_session_window(db, alice, make_document, version_manager, clock):
    document = await make_document(alice, content="start")
    session = await version_manager.open_session(document.uuid, alice)
    clock.advance(61)

    explicit = await version_manager.record_edit(document.uuid, alice, "saved by hand", auto=False)
    assert explicit.version_created

    clock.advance(5)
    tick = await version_manager.record_edit(document.uuid, alice, "typing on", session=session)

    assert not tick.version_created
    assert await DocumentVersionRepository(db).count_by_document(document.uuid) == 2


async def test_explicit_save_uses_same_throttle(db, alice, make_document, document_service, clock):
    document = await make_document(alice, content="v1")

    quick = await document_service.update_document(document.uuid, DocumentUpdate(content="v1!"), alice)
    clock.advance(61)
    later = await document_service.update_document(document.uuid, DocumentUpdate(content="v2"), alice)

    assert not quick.version_created
    assert later.version_created
    assert later.document.current_version == 2


async def test_edit_requires_edit_permission(db, alice, bob, make_document, version_manager):
    document = await make_document(alice, is_public=True)

    with pytest.raises(AccessDenied):
        await version_manager.record_edit(document.uuid, bob, "vandalism")
    with pytest.raises(AuthenticationRequired):
        await version_manager.record_edit(document.uuid, None, "vandalism")

    await AccessControlService(db).share_document(document.uuid, bob.email, "edit", alice)
    result = await version_manager.record_edit(document.uuid, bob, "improved")
    assert result.document.content == "improved"


async def test_version_collision_is_retried(db, alice, make_document, version_manager, clock, monkeypatch):
    document = await make_document(alice, content="v1")
    real = version_manager.version_repository.get_latest_number
    calls = []

    async def stale_then_real(document_id):
        calls.append(document_id)
        if len(calls) == 1:
            return 0
        return await real(document_id)

    monkeypatch.setattr(version_manager.version_repository, "get_latest_number", stale_then_real)
    clock.advance(61)

    result = await version_manager.record_edit(document.uuid, alice, "v2")

    assert len(calls) == 2
    assert result.version.version == 2
    versions = await DocumentVersionRepository(db).get_by_document(document.uuid)
    assert [v.version for v in versions] == [2, 1]


async def test_persistent_collision_raises_conflict(db, alice, make_document, version_manager, clock, monkeypatch):
    document = await make_document(alice, content="v1")

    async def always_stale(document_id):
        return 0

    monkeypatch.setattr(version_manager.version_repository, "get_latest_number", always_stale)
    clock.advance(61)

    with pytest.raises(Conflict) as exc_info:
        await version_manager.record_edit(document.uuid, alice, "lost")

    assert exc_info.value.retryable
    stored = await DocumentRepository(db).get_by_uuid(document.uuid)
    assert stored.content == "v1"
    assert stored.current_version == 1
    assert await DocumentVersionRepository(db).count_by_document(document.uuid) == 1


async def test_versions_are_listed_newest_first(db, alice, bob, make_document, version_manager, clock):
    document = await make_document(alice, content="v1")
    for content in ("v2", "v3"):
        clock.advance(61)
        await version_manager.record_edit(document.uuid, alice, content)

    versions = await version_manager.get_versions(document.uuid, alice)
    assert [v.version for v in versions] == [3, 2, 1]

    with pytest.raises(AccessDenied):
        await version_manager.get_versions(document.uuid, bob)


async def test_get_version(db, alice, make_document, version_manager):
    document = await make_document(alice, content="first")

    version = await version_manager.get_version(document.uuid, 1, alice)
    assert version.content == "first"

    with pytest.raises(NotFound):
        await version_manager.get_version(document.uuid, 7, alice)


async def test_restore_appends_new_version(db, alice, make_document, version_manager, clock):
    document = await make_document(alice, content="original")
    clock.advance(61)
    await version_manager.record_edit(document.uuid, alice, "rewritten")

    result = await version_manager.restore_version(document.uuid, 1, alice)

    assert result.version.version == 3
    assert result.version.content == "original"
    assert result.version.changes == "Restored from version 1"
    stored = await DocumentRepository(db).get_by_uuid(document.uuid)
    assert stored.content == "original"
    assert stored.current_version == 3


async def test_mentions_notify_new_names_only(db, alice, bob, make_document, version_manager):
    document = await make_document(alice, title="Plan", content="hi @carol")

    await version_manager.record_edit(document.uuid, alice, "hi @carol and @bob, also @alice")
    await version_manager.record_edit(document.uuid, alice, "hi @carol and @bob again")

    notifications = await NotificationRepository(db).get_by_user(bob.uuid)
    assert len(notifications) == 1
    assert notifications[0].type == Notification.MENTION
    assert await NotificationRepository(db).get_by_user(alice.uuid) == []


async def test_session_registry_scopes_sessions(db, alice, bob, make_document, version_manager):
    document = await make_document(alice)
    session = await version_manager.open_session(document.uuid, alice)

    assert editing_sessions.get(session.uuid, document.uuid, alice) is session
    with pytest.raises(NotFound):
        editing_sessions.get(session.uuid, document.uuid, bob)

    assert editing_sessions.close(session.uuid)
    assert not editing_sessions.close(session.uuid)


def test_registry_counts_open_sessions():
    registry = EditingSessionRegistry()
    assert len(registry) == 0


def test_registry_evicts_idle_sessions(clock):
    registry = EditingSessionRegistry(idle_timeout=600, clock=clock)
    user = User.create_user("idle@example.com", "idle", "Secret123")
    document_id = uuid.uuid4()
    active = registry.open(EditingSession(document_id, user.uuid, opened_at=clock()))
    idle = registry.open(EditingSession(document_id, user.uuid, opened_at=clock()))

    clock.advance(400)
    assert registry.get(active.uuid, document_id, user) is active
    clock.advance(300)

    assert registry.evict_idle() == 1
    assert len(registry) == 1
    with pytest.raises(NotFound):
        registry.get(idle.uuid, document_id, user)
    clock.advance(600)
    with pytest.raises(NotFound):
        registry.get(active.uuid, document_id, user)
    assert len(registry) == 0
