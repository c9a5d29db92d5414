"""
Shared plumbing for store repositories.

Responsibilities:
- Open one short-lived session per store call.
- Retry transient failures (lock contention, dropped connections).
- Turn any other SQLAlchemy failure into a StoreError naming the operation.

Non-Responsibilities:
- No queries of its own.
"""

import functools
from typing import Callable

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from identisync.database import session_scope
from identisync.errors import StoreError
from identisync.logger import get_logger
from identisync.retry import RetryError, exponential_backoff, is_transient_error

logger = get_logger()

MAX_RETRIES = 3
BASE_DELAY = 0.2


def _on_retry(attempt: int, error: Exception, delay: float):
    logger.record_retry()
    logger.warning("Transient store failure, retrying", attempt=attempt, delay=delay, error=str(error))


def store_call(operation: str) -> Callable:
    """Decorate a repository method as one named store operation."""
    def decorator(func: Callable) -> Callable:
        retrying = exponential_backoff(
            max_retries=MAX_RETRIES,
            base_delay=BASE_DELAY,
            exceptions=(OperationalError,),
            retry_if=is_transient_error,
            on_retry=_on_retry,
        )(func)

        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            logger.record_query(operation)
            params = {"args": list(args), **kwargs}
            try:
                return retrying(self, *args, **kwargs)
            except RetryError as e:
                cause = e.__cause__ or e
                logger.record_store_failure(operation, type(cause).__name__)
                raise StoreError(operation, params, cause) from e
            except SQLAlchemyError as e:
                logger.record_store_failure(operation, type(e).__name__)
                raise StoreError(operation, params, e) from e

        return wrapper
    return decorator


class Repository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self):
        return session_scope(self._session_factory)
