import asyncio
from datetime import timedelta

from retail_admin.services.live_view import LiveCollection
from retail_admin.services.order_sweeper import OrderSweeper, sweep_orders


def test_cancelled_orders_expire_after_ttl(store, clock, seed, make_order):
    now = clock.now()
    expired = make_order([(seed["mug"], 1, None)], status="cancelled", updated_at=now - timedelta(hours=25))
    fresh = make_order([(seed["mug"], 1, None)], status="cancelled", updated_at=now - timedelta(hours=23))

    result = sweep_orders(store, now)

    assert result.deleted == [expired["order_number"]]
    assert store.select_one("orders", {"id": expired["id"]}) is None
    assert store.select("order_items", {"order_id": expired["id"]}) == []
    assert store.select_one("orders", {"id": fresh["id"]})["status"] == "cancelled"
    assert len(store.select("order_items", {"order_id": fresh["id"]})) == 1


def test_shipped_orders_auto_deliver(store, clock, seed, make_order):
    now = clock.now()
    due = make_order([], status="shipped", updated_at=now - timedelta(days=6, minutes=1))
    recent = make_order([], status="shipped", updated_at=now - timedelta(days=5))

    result = sweep_orders(store, now)

    assert result.delivered == [due["order_number"]]
    delivered = store.select_one("orders", {"id": due["id"]})
    assert delivered["status"] == "delivered"
    assert delivered["updated_at"].replace(tzinfo=None) == now.replace(tzinfo=None)
    assert store.select_one("orders", {"id": recent["id"]})["status"] == "shipped"


def test_other_statuses_are_ignored(store, clock, make_order):
    old = clock.now() - timedelta(days=30)
    make_order([], status="pending", updated_at=old)
    make_order([], status="issue", updated_at=old)

    result = sweep_orders(store, clock.now())

    assert (result.deleted, result.delivered, result.failed) == ([], [], [])
    assert len(store.select("orders")) == 2


def test_one_failing_order_does_not_stop_the_sweep(store, failing_store, clock, make_order):
    now = clock.now()
    broken = make_order([], status="cancelled", updated_at=now - timedelta(days=2))
    due = make_order([], status="shipped", updated_at=now - timedelta(days=7))
    failing_store.fail("delete", "order_items", when=lambda filters: filters.get("order_id") == broken["id"])

    result = sweep_orders(failing_store, now)

    assert result.failed == [broken["order_number"]]
    assert result.delivered == [due["order_number"]]
    assert store.select_one("orders", {"id": broken["id"]}) is not None


def test_sweep_only_considers_the_orders_it_is_given(store, clock, make_order):
    due = make_order([], status="shipped", updated_at=clock.now() - timedelta(days=7))

    assert sweep_orders(store, clock.now(), orders=[]).delivered == []
    assert store.select_one("orders", {"id": due["id"]})["status"] == "shipped"

    result = sweep_orders(store, clock.now(), orders=[due])
    assert result.delivered == [due["order_number"]]


def test_live_collection_patches_updates_and_reloads_on_insert(store):
    loads = []

    def loader():
        loads.append(1)
        return store.select("branches")

    changes = []
    view = LiveCollection(store, "branches", loader, on_change=lambda v, change: changes.append(change.event))
    row = store.insert("branches", {"name": "a"})[0]
    view.start()
    assert len(loads) == 1

    store.update("branches", {"name": "b"}, {"id": row["id"]})
    assert view.snapshot()[0]["name"] == "b"
    assert len(loads) == 1

    store.insert("branches", {"name": "c"})
    assert len(view.snapshot()) == 2
    assert len(loads) == 2
    assert changes == ["UPDATE", "INSERT"]

    view.stop()
    store.insert("branches", {"name": "d"})
    assert len(view.snapshot()) == 2


def test_sweeper_runs_at_start_and_on_order_changes(store, clock, make_order):
    make_order([], status="shipped", updated_at=clock.now() - timedelta(days=7))

    async def scenario():
        sweeper = OrderSweeper(store, clock, interval_seconds=3600)
        await sweeper.start()
        try:
            for _ in range(100):
                if sweeper.last_result is not None:
                    break
                await asyncio.sleep(0.01)
            first = sweeper.last_result

            cancelled = make_order([], status="cancelled", updated_at=clock.now() - timedelta(days=2))
            for _ in range(100):
                if sweeper.last_result is not first:
                    break
                await asyncio.sleep(0.01)
            return first, sweeper.last_result, cancelled
        finally:
            await sweeper.stop()

    first, second, cancelled = asyncio.run(scenario())

    assert len(first.delivered) == 1
    assert second.deleted == [cancelled["order_number"]]
    assert store.select_one("orders", {"id": cancelled["id"]}) is None


def test_sweeper_acts_on_updates_to_orders_it_holds(store, clock, make_order):
    order = make_order([], status="shipped", updated_at=clock.now() - timedelta(days=1))

    async def scenario():
        sweeper = OrderSweeper(store, clock, interval_seconds=3600)
        await sweeper.start()
        try:
            for _ in range(100):
                if sweeper.last_result is not None:
                    break
                await asyncio.sleep(0.01)
            first = sweeper.last_result
            held = [o["id"] for o in sweeper.watched_orders()]

            store.update("orders", {"updated_at": clock.now() - timedelta(days=7)}, {"id": order["id"]})
            for _ in range(100):
                if sweeper.last_result is not first:
                    break
                await asyncio.sleep(0.01)
            return first, held, sweeper.last_result, sweeper.watched_orders()
        finally:
            await sweeper.stop()

    first, held, second, remaining = asyncio.run(scenario())

    assert first.delivered == []
    assert held == [order["id"]]
    assert second.delivered == [order["order_number"]]
    assert remaining == []
    assert store.select_one("orders", {"id": order["id"]})["status"] == "delivered"
