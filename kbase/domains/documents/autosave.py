"""
Автосохранение с дебаунсом

Каждая правка перезапускает таймер; сохранение начинается, когда правки
затихают на debounce секунд. Одновременно выполняется не больше одного
сохранения, и оно всегда пишет последний известный черновик. Если
таймер сработал во время сохранения, следующее сохранение начнется
сразу после текущего.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
import asyncio
import logging

from kbase.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class Draft:
    """Последнее несохраненное состояние редактора"""
    content: str
    title: Optional[str] = None
    is_public: Optional[bool] = None


SaveCallback = Callable[[Draft], Awaitable[Any]]


class AutoSaver:
    def __init__(
        self,
        save: SaveCallback,
        debounce: Optional[float] = None,
        on_saved: Optional[Callable[[Any], Awaitable[None]]] = None,
        on_error: Optional[Callable[[Exception], Awaitable[None]]] = None
    ):
        self._save = save
        self.debounce = settings.autosave_debounce_seconds if debounce is None else debounce
        self._on_saved = on_saved
        self._on_error = on_error

        self._latest: Optional[Draft] = None
        self._pending = False
        self._due = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Optional[asyncio.Task] = None

    @property
    def has_pending(self) -> bool:
        """Есть черновик, который еще не отправлен на сохранение"""
        return self._pending

    @property
    def saving(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def schedule(self, draft: Draft) -> None:
        """Новая правка: запоминаем черновик и перезапускаем таймер"""
        self._latest = draft
        self._pending = True
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(self.debounce, self._fire)

    async def flush(self) -> None:
        """Немедленное сохранение последнего черновика"""
        self._cancel_timer()
        if self._pending:
            self._due = True
        if self.saving:
            await self._in_flight
        elif self._due:
            self._start()
            await self._in_flight

    def discard(self) -> None:
        """Отмена отложенного сохранения без записи"""
        self._cancel_timer()
        self._due = False
        self._pending = False

    async def wait_idle(self) -> None:
        """Дождаться завершения текущего сохранения"""
        if self.saving:
            await self._in_flight

    def _fire(self) -> None:
        self._timer = None
        self._due = True
        if not self.saving:
            self._start()

    def _start(self) -> None:
        self._in_flight = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        while self._due and self._pending:
            self._due = False
            self._pending = False
            draft = self._latest
            try:
                result = await self._save(draft)
            except Exception as e:
                logger.exception("Autosave failed")
                if self._on_error is not None:
                    await self._on_error(e)
                continue
            if self._on_saved is not None:
                await self._on_saved(result)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
