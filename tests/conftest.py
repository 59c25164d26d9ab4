"""
Test configuration and fixtures for the Lucha cart engine
"""

import logging
import os
from typing import Optional

import pytest

from lucha_cart.domain.repositories.storage_backend import StorageBackend
from lucha_cart.infrastructure.configuration.config import Settings, reset_config
from lucha_cart.infrastructure.container import create_cart, reset_default_cart
from lucha_cart.infrastructure.logging.error_handler import error_reporter
from lucha_cart.infrastructure.storage.memory_storage import MemoryStorage


class FailingStorage(StorageBackend):
    """Storage whose every access throws, like a blocked browser storage"""

    def __init__(self):
        self.calls = 0

    def get(self, key: str) -> Optional[str]:
        self.calls += 1
        raise OSError("storage access denied")

    def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        self.calls += 1
        raise OSError("storage access denied")

    def remove(self, key: str, origin: Optional[str] = None) -> None:
        self.calls += 1
        raise OSError("storage access denied")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run each test in a clean directory without CART_* variables"""
    for name in list(os.environ):
        if name.startswith("CART_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    error_reporter.reset()
    yield
    reset_default_cart()
    reset_config()


@pytest.fixture
def settings():
    """In-memory settings with immediate writes"""
    return Settings(storage_mode="memory", persist_debounce_ms=0)


@pytest.fixture
def sqlite_url(tmp_path):
    """URL of a throwaway SQLite database file"""
    return f"sqlite:///{tmp_path / 'cart.db'}"


@pytest.fixture
def sqlite_settings(sqlite_url):
    """Durable shared settings on a temporary database"""
    return Settings(storage_mode="local", database_url=sqlite_url, persist_debounce_ms=0)


@pytest.fixture
def memory_storage():
    """A storage medium carts can share"""
    return MemoryStorage()


@pytest.fixture
def failing_storage():
    """A storage medium that always throws"""
    return FailingStorage()


@pytest.fixture
def make_cart(settings):
    """Create carts that are closed after the test"""
    carts = []

    def _make(*args, **kwargs):
        kwargs.setdefault("settings", settings)
        cart = create_cart(*args, **kwargs)
        carts.append(cart)
        return cart

    yield _make

    for cart in carts:
        cart.close()


@pytest.fixture
def cart(make_cart, memory_storage):
    """A cart on its own in-memory storage"""
    return make_cart(storage=memory_storage)


@pytest.fixture
def recorder():
    """Collects event payloads"""

    class Recorder(list):
        def __call__(self, payload):
            self.append(payload)

    return Recorder()


@pytest.fixture
def reset_package_logger():
    """Undo setup_logging() changes to the package logger"""
    yield
    package_logger = logging.getLogger("lucha_cart")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)
