"""
Storage provider

Maps a storage mode to a concrete backend. When the durable medium cannot be
opened the provider substitutes an in-memory shim, so the cart keeps working
until the process ends instead of failing. Durable backends are shared per
database and scope inside the process, so sibling carts see each other's
writes as they happen.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

from sqlalchemy.engine import make_url

from lucha_cart.domain.repositories.storage_backend import StorageBackend, StorageMode
from lucha_cart.infrastructure.configuration.config import Settings
from lucha_cart.infrastructure.logging.error_handler import (
    ErrorCategory,
    ErrorReport,
    ErrorSeverity,
    error_reporter,
)
from lucha_cart.infrastructure.storage.memory_storage import MemoryStorage
from lucha_cart.infrastructure.storage.sqlalchemy_storage import (
    SQLAlchemyStorage,
    create_storage_engine,
)
from lucha_cart.infrastructure.utilities.constants import StorageSettings
from lucha_cart.infrastructure.utilities.exceptions import InvalidStorageModeError


def parse_mode(mode) -> StorageMode:
    """Validate a mode name supplied by a caller"""
    try:
        return StorageMode(mode)
    except ValueError as e:
        raise InvalidStorageModeError(str(mode)) from e


def database_key(database_url: str) -> str:
    """Identity of a database: relative SQLite paths resolve against the working directory"""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        return f"sqlite:///{Path(url.database).resolve()}"
    return url.render_as_string(hide_password=False)


class SharedDatabase:
    """
    One engine, and one storage per scope, for every provider in the process
    that uses the same database.

    Carts on the same scope therefore write through the same storage object
    and receive each other's change events immediately. Other processes are
    only seen through polling.
    """

    _registry: Dict[str, "SharedDatabase"] = {}
    _registry_lock = threading.Lock()

    def __init__(self, key: str, database_url: str):
        self.key = key
        self.engine = create_storage_engine(database_url)
        self._storages: Dict[str, SQLAlchemyStorage] = {}
        self._users = 0

    @classmethod
    def acquire(cls, database_url: str) -> "SharedDatabase":
        """Join the shared database for ``database_url``, opening it if needed"""
        key = database_key(database_url)
        with cls._registry_lock:
            database = cls._registry.get(key)
            if database is None:
                database = cls(key, database_url)
                cls._registry[key] = database
            database._users += 1
            return database

    def storage(self, scope: str, poll_interval: float = 0.0) -> SQLAlchemyStorage:
        """The storage for ``scope``; the first opener starts its watcher"""
        with self._registry_lock:
            storage = self._storages.get(scope)
            if storage is None:
                storage = SQLAlchemyStorage(self.engine, scope)
                if poll_interval > 0:
                    storage.start_watching(poll_interval)
                self._storages[scope] = storage
            return storage

    def release(self) -> None:
        """Leave the shared database; the last user closes it"""
        with self._registry_lock:
            self._users -= 1
            if self._users > 0:
                return
            if self._registry.get(self.key) is self:
                del self._registry[self.key]
            storages = list(self._storages.values())
            self._storages.clear()

        for storage in storages:
            storage.close()
        self.engine.dispose()


class StorageProvider:
    """Resolves and caches one backend per storage mode"""

    def __init__(self, settings: Settings, injected: Optional[StorageBackend] = None):
        self._settings = settings
        self._injected = injected
        self._backends: Dict[StorageMode, StorageBackend] = {}
        self._database: Optional[SharedDatabase] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def injected(self) -> Optional[StorageBackend]:
        return self._injected

    def initial_mode(self) -> StorageMode:
        """Mode a new cart starts in"""
        if self._injected is not None:
            return self._injected.mode
        return parse_mode(self._settings.storage_mode)

    def resolve(self, mode: StorageMode) -> Tuple[StorageBackend, StorageMode]:
        """
        Return the backend for ``mode`` and the mode actually in effect.

        An injected backend stands in for every mode. A durable mode whose
        medium fails to open resolves to ``StorageMode.MEMORY``.
        """
        if self._injected is not None:
            return self._injected, mode

        if mode in self._backends:
            backend = self._backends[mode]
            return backend, backend.mode

        try:
            backend = self._open(mode)
        except Exception as e:  # pylint: disable=broad-except
            error_reporter.report_error(
                ErrorReport(
                    error=e,
                    category=ErrorCategory.STORAGE,
                    severity=ErrorSeverity.MEDIUM,
                    operation=f"open {mode.value} storage",
                    context={"fallback": StorageMode.MEMORY.value},
                )
            )
            backend = self._backends.get(StorageMode.MEMORY) or MemoryStorage()
            self._backends[StorageMode.MEMORY] = backend

        self._backends[mode] = backend
        return backend, backend.mode

    def _open(self, mode: StorageMode) -> StorageBackend:
        if mode == StorageMode.MEMORY:
            return MemoryStorage()

        if mode not in StorageMode.switchable():
            raise InvalidStorageModeError(mode.value)

        if self._database is None:
            self._database = SharedDatabase.acquire(self._settings.database_url)

        if mode == StorageMode.LOCAL:
            backend = self._database.storage(
                StorageSettings.SHARED_SCOPE, self._settings.sync_poll_interval
            )
        else:
            backend = self._database.storage(f"session:{self._settings.session_id}")

        self._logger.info("Opened %s cart storage (%r)", mode.value, backend)
        return backend

    def close(self) -> None:
        """Close in-process backends and leave the shared database"""
        for backend in set(self._backends.values()):
            if not isinstance(backend, SQLAlchemyStorage):
                backend.close()
        self._backends.clear()
        if self._database is not None:
            self._database.release()
            self._database = None
