from functools import wraps
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from kbase.core.errors import BackendUnavailable

logger = logging.getLogger(__name__)


def guard_backend(func):
    """Переводит сбои базы данных в BackendUnavailable

    IntegrityError пропускается дальше после отката транзакции: его
    обрабатывают вызывающие (upsert соавторов, повтор при коллизии
    номера версии), а сессия остается пригодной для следующих запросов.
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except IntegrityError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"{type(self).__name__}.{func.__name__} failed: {e}")
            await self.session.rollback()
            raise BackendUnavailable() from e
    return wrapper
