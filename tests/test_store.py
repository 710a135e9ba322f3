import pytest

from retail_admin.exceptions import CommitError, StoreError
from retail_admin.store.base import DELETE, INSERT, UPDATE, Store
from retail_admin.store.sql import relations_from_mappers


def test_insert_generates_ids_and_preserves_order(store):
    rows = store.insert("branches", [{"name": "ب"}, {"name": "أ"}])
    assert [r["name"] for r in rows] == ["ب", "أ"]
    assert all(len(r["id"]) == 36 for r in rows)


def test_select_filters(store):
    store.insert("branches", [{"name": "a", "phone": "1"}, {"name": "b"}, {"name": "c", "phone": "3"}])

    assert [r["name"] for r in store.select("branches", {"phone": None})] == ["b"]
    assert {r["name"] for r in store.select("branches", {"name": ["a", "c"]})} == {"a", "c"}
    assert store.select_one("branches", {"name": "missing"}) is None


def test_select_order_and_limit(store):
    store.insert("branches", [{"name": "a"}, {"name": "c"}, {"name": "b"}])
    rows = store.select("branches", order_by="-name", limit=2)
    assert [r["name"] for r in rows] == ["c", "b"]


def test_unknown_table_and_column(store):
    with pytest.raises(StoreError):
        store.select("nope")
    with pytest.raises(StoreError):
        store.select("branches", {"nope": 1})


def test_expand_nested_relationships(store, seed, make_order):
    make_order([(seed["shirt"], 2, None), (seed["mug"], 1, None)], order_number="ORD-X")

    order = store.select_one(
        "orders", {"order_number": "ORD-X"}, expand={"order_items": {"product": {}}}
    )
    assert len(order["order_items"]) == 2
    assert {item["product"]["name"] for item in order["order_items"]} == {"قميص", "كوب"}


def test_relations_come_from_models():
    relations = relations_from_mappers()
    assert relations["orders"]["order_items"] == ("order_items", "id", "order_id", True)
    assert relations["inventory"]["product"] == ("products", "product_id", "id", False)


def test_unfiltered_writes_are_refused(store):
    store.insert("branches", {"name": "a"})
    with pytest.raises(StoreError):
        store.update("branches", {"name": "b"}, {})
    with pytest.raises(StoreError):
        store.delete("branches", {})


def test_increment_floors_at_zero(store, seed):
    row = store.insert("inventory", {
        "product_id": seed["shirt"]["id"], "branch_id": seed["branch"]["id"], "quantity": 3,
    })[0]

    assert store.increment("inventory", "quantity", 4, {"id": row["id"]})[0]["quantity"] == 7
    assert store.increment("inventory", "quantity", -10, {"id": row["id"]})[0]["quantity"] == 0


def test_location_check_constraint(store, seed):
    with pytest.raises(StoreError):
        store.insert("inventory", {
            "product_id": seed["shirt"]["id"],
            "branch_id": seed["branch"]["id"],
            "warehouse_id": seed["warehouse"]["id"],
            "quantity": 1,
        })


def test_change_events_after_commit(store):
    events = []
    store.subscribe("branches", "*", events.append)

    row = store.insert("branches", {"name": "a"})[0]
    store.update("branches", {"name": "b"}, {"id": row["id"]})
    store.delete("branches", {"id": row["id"]})

    assert [e.event for e in events] == [INSERT, UPDATE, DELETE]
    assert events[1].old["name"] == "a"
    assert events[1].new["name"] == "b"
    assert events[2].row["id"] == row["id"]


def test_subscription_filters_and_unsubscribe(store):
    events = []
    subscription = store.subscribe("branches", UPDATE, events.append, column_filter={"name": "b"})

    row = store.insert("branches", {"name": "a"})[0]
    store.update("branches", {"name": "b"}, {"id": row["id"]})
    store.update("branches", {"name": "c"}, {"id": row["id"]})
    subscription.unsubscribe()
    store.update("branches", {"name": "b"}, {"id": row["id"]})

    assert len(events) == 1


def test_failing_subscriber_does_not_break_writes(store):
    def explode(change):
        raise RuntimeError("boom")

    store.subscribe("branches", "*", explode)
    assert store.insert("branches", {"name": "a"})[0]["name"] == "a"


def test_unknown_event_type(store):
    with pytest.raises(StoreError):
        store.subscribe("branches", "TRUNCATE", lambda change: None)


def test_rpc_rolls_back_every_write(store):
    def half_done(tx, name):
        tx.insert("branches", {"name": name})
        raise CommitError("stopped half way")

    events = []
    store.subscribe("branches", "*", events.append)
    store.register_procedure("half_done", half_done)

    result = store.rpc("half_done", {"name": "a"})

    assert result == {"success": False, "error": "stopped half way"}
    assert store.select("branches") == []
    assert events == []


def test_rpc_unknown_procedure(store):
    with pytest.raises(StoreError):
        store.rpc("nope")


def test_store_interface_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Store()

    class SelectOnly(Store):
        def select(self, table, filters=None, order_by=None, limit=None, expand=None):
            return []

    with pytest.raises(TypeError):
        SelectOnly()


def test_procedures_cannot_subscribe_or_nest(store):
    def nested(tx):
        tx.rpc("nested")

    def subscribing(tx):
        tx.subscribe("branches", "*", print)

    store.register_procedure("nested", nested)
    store.register_procedure("subscribing", subscribing)

    assert store.rpc("nested")["success"] is False
    assert store.rpc("subscribing")["success"] is False
