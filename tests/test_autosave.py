import asyncio

from kbase.domains.documents.autosave import AutoSaver, Draft

DEBOUNCE = 0.05


class RecordingSave:
    """Сохранение, которое запоминает черновики и следит за параллелизмом"""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.saved = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, draft: Draft):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            self.saved.append(draft.content)
            return draft.content
        finally:
            self.active -= 1


async def _settle(saver: AutoSaver, seconds: float = DEBOUNCE * 3):
    await asyncio.sleep(seconds)
    await saver.wait_idle()


async def test_burst_of_edits_saves_latest_once():
    save = RecordingSave()
    saver = AutoSaver(save, debounce=DEBOUNCE)

    for i in range(5):
        saver.schedule(Draft(content=f"edit {i}"))
        await asyncio.sleep(DEBOUNCE / 5)
    await _settle(saver)

    assert save.saved == ["edit 4"]
    assert not saver.has_pending


async def test_flush_saves_immediately():
    save = RecordingSave()
    saver = AutoSaver(save, debounce=10)

    saver.schedule(Draft(content="typed"))
    await saver.flush()

    assert save.saved == ["typed"]
    await saver.flush()
    assert save.saved == ["typed"]


async def test_discard_drops_pending_edit():
    save = RecordingSave()
    saver = AutoSaver(save, debounce=DEBOUNCE)

    saver.schedule(Draft(content="abandoned"))
    saver.discard()
    await _settle(saver)

    assert save.saved == []


async def test_single_in_flight_save_catches_up_with_latest():
    save = RecordingSave(delay=DEBOUNCE * 2)
    saved_results = []

    async def on_saved(result):
        saved_results.append(result)

    saver = AutoSaver(save, debounce=DEBOUNCE / 5, on_saved=on_saved)

    saver.schedule(Draft(content="first"))
    await asyncio.sleep(DEBOUNCE / 2)
    assert saver.saving

    saver.schedule(Draft(content="second"))
    await asyncio.sleep(DEBOUNCE / 5)
    saver.schedule(Draft(content="third"))
    await _settle(saver, DEBOUNCE * 6)

    assert save.max_active == 1
    assert save.saved == ["first", "third"]
    assert saved_results == ["first", "third"]


async def test_save_errors_are_reported_and_saver_survives():
    errors = []
    attempts = []

    async def flaky(draft: Draft):
        attempts.append(draft.content)
        if len(attempts) == 1:
            raise RuntimeError("disk on fire")
        return draft.content

    async def on_error(error):
        errors.append(error)

    saver = AutoSaver(flaky, debounce=DEBOUNCE, on_error=on_error)

    saver.schedule(Draft(content="lost"))
    await _settle(saver)
    saver.schedule(Draft(content="kept"))
    await _settle(saver)

    assert attempts == ["lost", "kept"]
    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)
