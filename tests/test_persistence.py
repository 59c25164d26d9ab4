"""
Persistence, restore and storage mode tests
"""

import json
import time

import pytest

from lucha_cart.domain.entities.line_item import LineItem
from lucha_cart.infrastructure.configuration.config import Settings
from lucha_cart.infrastructure.logging.error_handler import get_error_statistics
from lucha_cart.infrastructure.storage.memory_storage import MemoryStorage
from lucha_cart.infrastructure.storage.sqlalchemy_storage import (
    SQLAlchemyStorage,
    create_storage_engine,
)
from lucha_cart.infrastructure.utilities.constants import StorageSettings
from lucha_cart.infrastructure.utilities.exceptions import InvalidStorageModeError
from lucha_cart.services import CART_CHANGED, STORAGE_MODE_CHANGED

KEY = StorageSettings.STORAGE_KEY


def stored_items(raw):
    return [(item["id"], item["qty"]) for item in json.loads(raw)["items"]]


def read_scope(database_url, scope, key=KEY):
    """Read one value straight from the database"""
    engine = create_storage_engine(database_url)
    try:
        return SQLAlchemyStorage(engine, scope).get(key)
    finally:
        engine.dispose()


class TestRestore:
    """Test carts restoring from a shared medium"""

    def test_restore_from_shared_memory(self, make_cart, memory_storage):
        """Test a new cart on the same storage sees the same summary"""
        first = make_cart(storage=memory_storage)
        first.add_item({"id": "t1", "priceCents": 500}, 2)
        first.add_item({"id": "a", "price": 9.99})

        second = make_cart(storage=memory_storage)
        assert second.get_summary() == first.get_summary()

    def test_restore_from_database(self, make_cart, sqlite_settings):
        """Test a cart restores what another cart wrote to the database"""
        first = make_cart(settings=sqlite_settings)
        first.add_item({"id": "t1", "priceCents": 500}, 2)
        assert first.storage_mode == "local"

        second = make_cart(settings=sqlite_settings)
        assert second.get_summary() == first.get_summary()
        assert second.get_summary().storage_mode == "local"

    def test_restore_survives_close(self, make_cart, sqlite_settings):
        """Test state persists after the writing cart is closed"""
        first = make_cart(settings=sqlite_settings)
        first.add_item({"id": "t1", "priceCents": 500}, 3)
        first.close()

        assert make_cart(settings=sqlite_settings).get_total_qty() == 3

    def test_restore_emits_once(self, make_cart, memory_storage, recorder):
        """Test restoring notifies on_change listeners"""
        make_cart(storage=memory_storage).add_item({"id": "t1", "priceCents": 500})
        make_cart(storage=memory_storage, on_change=recorder)
        assert len(recorder) == 1
        assert recorder[0].total_qty == 1

    def test_restore_does_not_write(self, make_cart, memory_storage):
        """Test restoring does not write the state back"""
        make_cart(storage=memory_storage).add_item({"id": "t1", "priceCents": 500})
        sets = memory_storage.get_stats()["sets"]
        make_cart(storage=memory_storage)
        assert memory_storage.get_stats()["sets"] == sets

    def test_empty_storage(self, make_cart, memory_storage, recorder):
        """Test an empty medium gives an empty cart without events"""
        cart = make_cart(storage=memory_storage, on_change=recorder)
        assert cart.get_summary().items == []
        assert recorder == []

    def test_corrupt_blob_is_ignored(self, make_cart):
        """Test unparsable stored state starts an empty cart"""
        storage = MemoryStorage({KEY: "{not valid json"})
        cart = make_cart(storage=storage)
        assert len(cart) == 0
        assert get_error_statistics()["errors_by_category"] == {"serialization": 1}

        cart.add_item({"id": "t1", "priceCents": 500})
        assert stored_items(storage.get(KEY)) == [("t1", 1)]

    def test_custom_storage_key(self, make_cart, memory_storage):
        """Test the storage key comes from settings"""
        settings = Settings(storage_mode="memory", storage_key="other_cart")
        make_cart(settings=settings, storage=memory_storage).add_item({"id": "x", "priceCents": 1})
        assert memory_storage.keys() == ["other_cart"]


class TestWrites:
    """Test what is written and when"""

    def test_every_mutation_writes(self, cart, memory_storage):
        """Test each mutation writes the full summary"""
        cart.add_item({"id": "t1", "priceCents": 500}, 2)
        cart.update_qty("t1", 4)
        cart.remove_item("ghost")
        assert memory_storage.get_stats()["sets"] == 3

        data = json.loads(memory_storage.get(KEY))
        assert data["items"] == [
            {"id": "t1", "name": "t1", "priceCents": 500, "qty": 4, "meta": None}
        ]
        assert data["totalQty"] == 4
        assert data["subtotalCents"] == 2000
        assert data["storageMode"] == "memory"

    def test_clear_writes_empty_cart(self, cart, memory_storage):
        """Test clearing stores an empty item list"""
        cart.add_item({"id": "t1", "priceCents": 500})
        cart.clear_cart()
        assert json.loads(memory_storage.get(KEY))["items"] == []

    def test_unserializable_meta_is_absorbed(self, cart, memory_storage, recorder):
        """Test a meta that cannot be stored still updates and notifies"""
        cart.on_change(recorder)
        summary = cart.add_item({"id": "a", "priceCents": 100, "meta": {"tags": {"x"}}})

        assert summary.total_qty == 1
        assert len(recorder) == 1
        assert memory_storage.get(KEY) is None
        assert get_error_statistics()["errors_by_category"] == {"serialization": 1}

        cart.remove_item("a")
        assert stored_items(memory_storage.get(KEY)) == []

    def test_unserializable_meta_with_debounce(self, make_cart, memory_storage):
        """Test a debounced write of unstorable state is absorbed on flush"""
        cart = make_cart(storage=memory_storage, persist_debounce_ms=60_000)
        cart.add_item({"id": "a", "priceCents": 100, "meta": {"tags": {"x"}}})
        cart.flush()

        assert memory_storage.get_stats()["sets"] == 0
        assert get_error_statistics()["errors_by_category"] == {"serialization": 1}

    def test_debounced_writes_coalesce(self, make_cart, memory_storage):
        """Test debounced mutations write once on flush"""
        cart = make_cart(storage=memory_storage, persist_debounce_ms=60_000)
        for _ in range(3):
            cart.add_item({"id": "t1", "priceCents": 500})
        assert memory_storage.get(KEY) is None

        cart.flush()
        assert memory_storage.get_stats()["sets"] == 1
        assert stored_items(memory_storage.get(KEY)) == [("t1", 3)]

        cart.flush()
        assert memory_storage.get_stats()["sets"] == 1

    def test_debounced_write_fires(self, make_cart, memory_storage):
        """Test the debounce timer writes the latest state"""
        cart = make_cart(storage=memory_storage, persist_debounce_ms=20)
        cart.add_item({"id": "t1", "priceCents": 500})
        cart.add_item({"id": "t1", "priceCents": 500})

        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            raw = memory_storage.get(KEY)
            if raw is not None and stored_items(raw) == [("t1", 2)]:
                break
            time.sleep(0.01)

        assert stored_items(memory_storage.get(KEY)) == [("t1", 2)]

    def test_close_flushes_pending_write(self, make_cart, memory_storage):
        """Test closing a cart writes pending state"""
        cart = make_cart(storage=memory_storage, persist_debounce_ms=60_000)
        cart.add_item({"id": "t1", "priceCents": 500}, 2)
        cart.close()
        assert stored_items(memory_storage.get(KEY)) == [("t1", 2)]

    def test_context_manager(self, make_cart, memory_storage):
        """Test the cart closes on leaving a with block"""
        with make_cart(storage=memory_storage, persist_debounce_ms=60_000) as cart:
            cart.add_item({"id": "t1", "priceCents": 500})
        assert stored_items(memory_storage.get(KEY)) == [("t1", 1)]


class TestInitialState:
    """Test initial state layered over restored state"""

    def test_initial_state_overwrites_by_id(self, make_cart, memory_storage, recorder):
        """Test initial lines replace restored lines with the same id"""
        make_cart(storage=memory_storage).add_item({"id": "t1", "priceCents": 500}, 2)

        cart = make_cart(
            [
                {"id": "b", "priceCents": 100, "qty": 1},
                {"id": "t1", "priceCents": 450, "qty": 5},
            ],
            storage=memory_storage,
            on_change=recorder,
        )

        lines = {line.id: line for line in cart.get_items()}
        assert lines["t1"].qty == 5
        assert lines["t1"].price_cents == 450
        assert lines["b"].qty == 1
        assert len(recorder) == 2
        assert sorted(stored_items(memory_storage.get(KEY))) == [("b", 1), ("t1", 5)]

    def test_initial_state_forms(self, make_cart):
        """Test line items, summaries and JSON are accepted"""
        lines = [LineItem(id="x", name="X", price_cents=10, qty=2)]
        assert make_cart(lines).get_subtotal_cents() == 20

        summary = make_cart(lines).get_summary()
        assert make_cart(summary).get_total_qty() == 2
        assert make_cart(summary.to_json()).get_total_qty() == 2

    def test_invalid_initial_state(self, make_cart, recorder):
        """Test an invalid initial state is ignored"""
        cart = make_cart("garbage", on_change=recorder)
        assert len(cart) == 0
        assert recorder == []


class TestStorageFailures:
    """Test carts on unusable storage"""

    def test_cart_works_on_failing_storage(self, make_cart, failing_storage):
        """Test every operation still works when storage throws"""
        cart = make_cart(storage=failing_storage)

        assert cart.add_item({"id": "t1", "priceCents": 500}, 2).total_qty == 2
        assert cart.add_item({"id": "b", "priceCents": 100}).subtotal_cents == 1100
        assert cart.update_qty("t1", 1).subtotal_cents == 600
        assert cart.remove_item("b").subtotal_cents == 500
        assert cart.get_summary().total_qty == 1
        assert cart.clear_cart().items == []

        stats = get_error_statistics()
        assert stats["errors_by_category"]["storage"] == 5
        assert failing_storage.calls == 6

    def test_storage_mode_switch_on_failing_storage(self, make_cart, failing_storage):
        """Test switching mode on failing storage does not raise"""
        cart = make_cart(storage=failing_storage)
        cart.add_item({"id": "t1", "priceCents": 500})
        assert cart.set_storage_mode("session").total_qty == 1

    def test_unopenable_database_falls_back_to_memory(self, make_cart):
        """Test a database that cannot be opened falls back to memory"""
        settings = Settings(storage_mode="local", database_url="nosuchdb://nowhere")
        cart = make_cart(settings=settings)

        assert cart.storage_mode == "memory"
        assert cart.add_item({"id": "t1", "priceCents": 500}).storage_mode == "memory"
        assert get_error_statistics()["errors_by_category"]["storage"] == 1


class TestStorageMode:
    """Test set_storage_mode operation"""

    def test_move_between_scopes(self, make_cart, sqlite_settings, sqlite_url):
        """Test the stored copy moves to the new scope"""
        cart = make_cart(settings=sqlite_settings)
        cart.add_item({"id": "t1", "priceCents": 500}, 2)

        summary = cart.set_storage_mode("session")
        assert summary.storage_mode == "session"
        assert cart.storage_mode == "session"
        assert read_scope(sqlite_url, "local") is None
        assert stored_items(read_scope(sqlite_url, "session:default")) == [("t1", 2)]

        cart.set_storage_mode("local")
        assert read_scope(sqlite_url, "session:default") is None
        assert stored_items(read_scope(sqlite_url, "local")) == [("t1", 2)]

    def test_session_scope_is_private(self, make_cart, sqlite_url):
        """Test session storage is keyed by session id"""
        settings = Settings(storage_mode="session", database_url=sqlite_url, session_id="abc")
        make_cart(settings=settings).add_item({"id": "t1", "priceCents": 500})

        other = Settings(storage_mode="session", database_url=sqlite_url, session_id="xyz")
        assert len(make_cart(settings=other)) == 0
        assert len(make_cart(settings=settings)) == 1

    def test_events_in_order(self, cart):
        """Test the mode event precedes the change event"""
        received = []
        cart.subscribe(STORAGE_MODE_CHANGED, lambda payload: received.append(("mode", payload)))
        cart.subscribe(CART_CHANGED, lambda payload: received.append(("changed", payload)))

        cart.add_item({"id": "t1", "priceCents": 500})
        received.clear()
        cart.set_storage_mode("session")

        assert [name for name, _ in received] == ["mode", "changed"]
        assert received[0][1] == {"mode": "session"}
        assert received[1][1].storage_mode == "session"

    def test_injected_storage_keeps_its_copy(self, cart, memory_storage):
        """Test an injected medium is not cleared on switch"""
        cart.add_item({"id": "t1", "priceCents": 500})
        cart.set_storage_mode("local")
        assert cart.storage_mode == "local"
        assert stored_items(memory_storage.get(KEY)) == [("t1", 1)]
        assert memory_storage.get_stats()["removes"] == 0

    @pytest.mark.parametrize("mode", ["cloud", "memory", "", None])
    def test_invalid_mode(self, cart, recorder, mode):
        """Test unsupported modes raise and change nothing"""
        cart.on_change(recorder)
        with pytest.raises(InvalidStorageModeError):
            cart.set_storage_mode(mode)
        assert recorder == []
        assert cart.storage_mode == "memory"
