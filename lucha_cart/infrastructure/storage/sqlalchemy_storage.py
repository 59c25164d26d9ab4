"""
SQLAlchemy Storage

Durable cart storage on any SQLAlchemy database. Rows are grouped by scope:
the shared scope is visible to every context using the same database, a
session scope only to carts opened with that session id.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple

from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lucha_cart.domain.repositories.storage_backend import (
    ObservableStorage,
    StorageEvent,
    StorageMode,
)
from lucha_cart.infrastructure.storage.models import Base, StoredValue
from lucha_cart.infrastructure.utilities.constants import StorageSettings
from lucha_cart.infrastructure.utilities.exceptions import StorageError

logger = logging.getLogger(__name__)


def create_storage_engine(database_url: str) -> Engine:
    """Create an engine, preparing the SQLite directory when needed"""
    url = make_url(database_url)
    engine_kwargs = {}

    if url.get_backend_name() == "sqlite":
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, **engine_kwargs)
    logger.debug("Storage engine created for %s", url.render_as_string(hide_password=True))
    return engine


class SQLAlchemyStorage(ObservableStorage):
    """SQLAlchemy implementation of the storage backend"""

    def __init__(self, engine: Engine, scope: str = StorageSettings.SHARED_SCOPE):
        super().__init__()
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self.scope = scope
        self.mode = (
            StorageMode.LOCAL if scope == StorageSettings.SHARED_SCOPE else StorageMode.SESSION
        )
        # versions this process has already seen, per key
        self._seen: Dict[str, int] = {}
        self._seen_lock = threading.RLock()
        self._watcher: Optional["StorageWatcher"] = None
        self._logger = logging.getLogger(self.__class__.__name__)

        Base.metadata.create_all(engine)
        with self._seen_lock:
            self._seen = {key: version for key, (version, _) in self._read_scope().items()}

    @classmethod
    def from_url(cls, database_url: str, scope: str = StorageSettings.SHARED_SCOPE) -> "SQLAlchemyStorage":
        """Build a storage from a database URL"""
        return cls(create_storage_engine(database_url), scope)

    @contextmanager
    def managed_session(self) -> Generator[Session, None, None]:
        """Session with commit on success and rollback on failure"""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            self._logger.error("💥 DATABASE ERROR: %s", e)
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, key: str) -> Optional[str]:
        try:
            with self.managed_session() as session:
                row = session.get(StoredValue, (self.scope, key))
                return row.value if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Unable to read {key}: {e}", operation="get") from e

    def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        value = str(value)
        with self._seen_lock:
            try:
                with self.managed_session() as session:
                    row = session.get(StoredValue, (self.scope, key))
                    old_value = row.value if row else None
                    if row is None:
                        row = StoredValue(scope=self.scope, key=key, value=value, version=1)
                        session.add(row)
                    else:
                        row.value = value
                        row.version = row.version + 1
                    session.flush()
                    version = row.version
            except SQLAlchemyError as e:
                raise StorageError(f"Unable to write {key}: {e}", operation="set") from e
            self._seen[key] = version
        self._notify(StorageEvent(key, old_value, value, origin))

    def remove(self, key: str, origin: Optional[str] = None) -> None:
        with self._seen_lock:
            try:
                with self.managed_session() as session:
                    row = session.get(StoredValue, (self.scope, key))
                    if row is None:
                        return
                    old_value = row.value
                    session.delete(row)
            except SQLAlchemyError as e:
                raise StorageError(f"Unable to remove {key}: {e}", operation="remove") from e
            self._seen.pop(key, None)
        self._notify(StorageEvent(key, old_value, None, origin))

    def clear(self) -> None:
        """Delete every key in this scope without emitting events"""
        with self._seen_lock:
            with self.managed_session() as session:
                session.execute(delete(StoredValue).where(StoredValue.scope == self.scope))
            self._seen.clear()

    def _read_scope(self) -> Dict[str, Tuple[int, str]]:
        with self.managed_session() as session:
            rows = session.execute(
                select(StoredValue.key, StoredValue.version, StoredValue.value).where(
                    StoredValue.scope == self.scope
                )
            ).all()
        return {key: (version, value) for key, version, value in rows}

    def poll(self) -> List[StorageEvent]:
        """
        Detect rows changed by other processes since the last poll.

        Writes made through this instance are already known and are not
        reported again. Detected changes are broadcast to subscribers with
        ``origin=None`` and returned.
        """
        events = []
        with self._seen_lock:
            current = self._read_scope()
            for key, (version, value) in current.items():
                if self._seen.get(key) != version:
                    events.append(StorageEvent(key, None, value, None))
                    self._seen[key] = version
            for key in [k for k in self._seen if k not in current]:
                events.append(StorageEvent(key, None, None, None))
                del self._seen[key]

        for event in events:
            self._notify(event)
        return events

    @property
    def watcher(self) -> Optional["StorageWatcher"]:
        return self._watcher

    def start_watching(self, interval: float) -> "StorageWatcher":
        """Poll for external changes on a background thread"""
        if self._watcher is None:
            self._watcher = StorageWatcher(self, interval)
        self._watcher.start()
        return self._watcher

    def stop_watching(self) -> None:
        """Stop the background watcher if running"""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def close(self) -> None:
        self.stop_watching()

    def __repr__(self):
        return f"SQLAlchemyStorage(scope={self.scope!r}, url={self._engine.url!r})"


class StorageWatcher:
    """Background task that reports rows changed by another process"""

    def __init__(self, storage: SQLAlchemyStorage, interval: float = 1.0):
        self._storage = storage
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self):
        """Start the background polling task"""
        if self.running:
            self._logger.warning("Storage watcher already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop, name="cart-storage-watcher", daemon=True
        )
        self._thread.start()
        self._logger.info("Storage watcher started (every %.2fs)", self._interval)

    def stop(self):
        """Stop the background polling task"""
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None
        self._logger.info("Storage watcher stopped")

    def _watch_loop(self):
        while not self._stop_event.wait(self._interval):
            try:
                events = self._storage.poll()
                if events:
                    self._logger.debug("Detected %d external storage change(s)", len(events))
            except (SQLAlchemyError, StorageError) as e:
                self._logger.warning("Error polling cart storage: %s", e)
