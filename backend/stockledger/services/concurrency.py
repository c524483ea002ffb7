# Overview: Locking and retry helpers shared by every mutating service.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import StockLedgerError


DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0


class ResourceBusyError(StockLedgerError):
    """A per-entity lock could not be acquired in time."""
    code = "RESOURCE_BUSY"
    http_status = 503


class KeyedLock:
    """
    In-process mutex per key (e.g. "product:42").

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the registry does not grow with the catalog. Locks are
    reentrant: a thread holding "product:42" may enter it again.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, list] = {}  # key -> [RLock, refcount]

    @contextmanager
    def hold(self, key: str, *, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._entries[key] = entry
            entry[1] += 1

        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise ResourceBusyError(f"Timed out waiting for lock on {key}")
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(key, None)

    def active_keys(self) -> set[str]:
        with self._guard:
            return set(self._entries)


entity_locks = KeyedLock()


def product_lock_key(product_id: int) -> str:
    return f"product:{product_id}"


def user_lock_key(user_id: int) -> str:
    return f"user:{user_id}"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The in-process KeyedLock covers the SQLite case.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Domain errors propagate untouched after
    the session is rolled back.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
