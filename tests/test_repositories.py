import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from kbase.core.errors import BackendUnavailable
from kbase.db.repositories.base import guard_backend


class RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


class BrokenRepository:
    def __init__(self, session, error):
        self.session = session
        self.error = error

    @guard_backend
    async def write(self):
        raise self.error


async def test_integrity_error_is_rolled_back_and_propagated():
    session = RecordingSession()
    repository = BrokenRepository(session, IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed")))

    with pytest.raises(IntegrityError):
        await repository.write()
    assert session.rollbacks == 1


async def test_backend_failure_becomes_backend_unavailable():
    session = RecordingSession()
    repository = BrokenRepository(session, OperationalError("SELECT", {}, Exception("connection lost")))

    with pytest.raises(BackendUnavailable):
        await repository.write()
    assert session.rollbacks == 1
