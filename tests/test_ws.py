import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from kbase.api.ws.sync import ConnectionManager, draft_from_message, parse_client_message
from kbase.core.db import create_tables, get_db
from kbase.core.errors import ValidationFailed
from kbase.main import app


class FakeSocket:
    def __init__(self, closed: bool = False):
        self.closed = closed
        self.sent = []

    async def send_json(self, message):
        if self.closed:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        self.sent.append(message)


async def test_broadcast_skips_sender_and_drops_closed_sockets():
    manager = ConnectionManager()
    document_id = uuid.uuid4()
    sender, listener, gone = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    sockets = {sender: FakeSocket(), listener: FakeSocket(), gone: FakeSocket(closed=True)}
    for session_id, socket in sockets.items():
        manager.connect(socket, document_id, session_id)

    await manager.broadcast_to_document(document_id, {"type": "document_updated"}, exclude_session=sender)

    assert sockets[sender].sent == []
    assert sockets[listener].sent == [{"type": "document_updated"}]
    assert manager.session_count(document_id) == 2


def test_last_disconnect_forgets_document():
    manager = ConnectionManager()
    document_id, session_id = uuid.uuid4(), uuid.uuid4()
    manager.connect(FakeSocket(), document_id, session_id)

    manager.disconnect(document_id, session_id)

    assert manager.session_count(document_id) == 0
    assert document_id not in manager.active_connections


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"edit"', "null"])
def test_non_object_frames_are_rejected(raw):
    with pytest.raises(ValidationFailed):
        parse_client_message(raw)


@pytest.mark.parametrize("message", [
    {"type": "edit", "content": "text", "title": "   "},
    {"type": "edit", "content": None},
    {"type": "edit"},
    {"type": "edit", "content": "x" * 1000001},
    {"type": "edit", "content": "text", "is_public": "sometimes"},
])
def test_invalid_edits_are_rejected(message):
    with pytest.raises(ValidationFailed):
        draft_from_message(message)


def test_edit_is_normalized_like_http_autosave():
    draft = draft_from_message({"type": "edit", "content": "<p>hi</p>", "title": "  Plan  "})

    assert draft.content == "<p>hi</p>"
    assert draft.title == "Plan"
    assert draft.is_public is None


@pytest.fixture
def ws_client(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}", poolclass=NullPool)
    asyncio.run(create_tables(bind=engine))
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def test_session_survives_bad_frames(ws_client):
    response = ws_client.post("/auth/register", json={
        "email": "erin@example.com", "username": "erin", "password": "Secret123"
    })
    token = response.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    response = ws_client.post("/documents/", json={"title": "Live", "content": "start"}, headers=headers)
    doc_url = f"/documents/{response.json()['uuid']}"

    with ws_client.websocket_connect(f"/ws{doc_url}?token={token}") as websocket:
        assert websocket.receive_json()["type"] == "connected"

        websocket.send_json({"type": "edit", "content": "renamed", "title": "   "})
        assert websocket.receive_json()["error"] == "validation_failed"

        websocket.send_json({"type": "edit", "content": None})
        assert websocket.receive_json()["error"] == "validation_failed"

        websocket.send_text("{not json")
        assert websocket.receive_json()["error"] == "validation_failed"

        websocket.send_json(["edit"])
        assert websocket.receive_json()["error"] == "validation_failed"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_json({"type": "edit", "content": "kept"})
        websocket.send_json({"type": "save"})
        saved = websocket.receive_json()
        assert saved["type"] == "saved"
        assert saved["version_created"] is False

    response = ws_client.get(doc_url, headers=headers)
    assert response.status_code == 200
    assert response.json()["document"]["title"] == "Live"
    assert response.json()["document"]["content"] == "kept"
