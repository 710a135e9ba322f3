"""
Time-driven order rules.

* A cancelled order untouched for ``CANCELLED_ORDER_TTL_HOURS`` is
  deleted, items first.
* A shipped order untouched for ``SHIPPED_AUTO_DELIVER_DAYS`` becomes
  delivered.

``sweep_orders`` applies both rules once. ``OrderSweeper`` runs it in
the service process at startup, on a fixed interval, and whenever the
orders table changes.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from retail_admin.clock import Clock, SystemClock, as_utc
from retail_admin.config import settings
from retail_admin.logging_config import get_logger
from retail_admin.models.order import OrderStatus
from retail_admin.services.live_view import LiveCollection
from retail_admin.store.base import ChangeEvent, Row, Store

logger = get_logger(__name__)

SWEPT_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.SHIPPED.value)


@dataclass
class SweepResult:
    deleted: List[str] = field(default_factory=list)
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def sweep_orders(
    store: Store,
    now: datetime,
    cancelled_ttl: Optional[timedelta] = None,
    auto_deliver_after: Optional[timedelta] = None,
    orders: Optional[List[Row]] = None,
) -> SweepResult:
    """Apply the expiry and auto-delivery rules once.

    ``orders`` is the candidate set when the caller already holds it;
    otherwise cancelled and shipped orders are read from the store.
    Orders are handled independently; one failing order is logged and
    counted, and the rest are still processed.
    """
    ttl = cancelled_ttl or timedelta(hours=settings.CANCELLED_ORDER_TTL_HOURS)
    deliver_after = auto_deliver_after or timedelta(days=settings.SHIPPED_AUTO_DELIVER_DAYS)
    now = as_utc(now)
    result = SweepResult()

    if orders is None:
        orders = store.select("orders", {"status": list(SWEPT_STATUSES)})
    for order in orders:
        updated_at = as_utc(order.get("updated_at"))
        if updated_at is None:
            continue
        age = now - updated_at
        try:
            if order["status"] == OrderStatus.CANCELLED.value and age >= ttl:
                store.delete("order_items", {"order_id": order["id"]})
                store.delete("orders", {"id": order["id"]})
                result.deleted.append(order["order_number"])
            elif order["status"] == OrderStatus.SHIPPED.value and age >= deliver_after:
                store.update(
                    "orders",
                    {"status": OrderStatus.DELIVERED.value, "updated_at": now},
                    {"id": order["id"], "status": OrderStatus.SHIPPED.value},
                )
                result.delivered.append(order["order_number"])
        except Exception:
            logger.error(
                f"Sweep failed for order {order['order_number']}",
                exc_info=True,
                extra={"extra_fields": {"order_number": order["order_number"], "status": order["status"]}},
            )
            result.failed.append(order["order_number"])

    if result.deleted or result.delivered or result.failed:
        logger.info(
            "Order sweep finished",
            extra={"extra_fields": {
                "deleted": len(result.deleted),
                "delivered": len(result.delivered),
                "failed": len(result.failed),
            }},
        )
    return result


class OrderSweeper:
    """Background task running ``sweep_orders``.

    The sweeper holds the cancelled and shipped orders in a
    ``LiveCollection`` and sweeps from that in-memory copy. Updates to
    held orders are patched in place; other changes reload it. Any change
    to the orders table also wakes the sweeper early.

    Sweeps never overlap: a single task awaits each one. Change events
    raised by the sweep's own writes do not trigger another sweep.
    """

    def __init__(self, store: Store, clock: Optional[Clock] = None,
                 interval_seconds: Optional[float] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds or settings.ORDER_SWEEP_INTERVAL_SECONDS
        self.last_result: Optional[SweepResult] = None
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._view: Optional[LiveCollection] = None
        self._sweeping = False

    def _load_watched_orders(self) -> List[Row]:
        return self.store.select("orders", {"status": list(SWEPT_STATUSES)})

    def watched_orders(self) -> List[Row]:
        """Current in-memory copy of the orders the rules can act on."""
        if self._view is None:
            return []
        return [order for order in self._view.snapshot() if order.get("status") in SWEPT_STATUSES]

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._view = LiveCollection(self.store, "orders", self._load_watched_orders,
                                    on_change=self._on_orders_changed)
        await asyncio.to_thread(self._view.start)
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Order sweeper started",
            extra={"extra_fields": {"interval_seconds": self.interval_seconds}},
        )

    async def stop(self) -> None:
        if self._view is not None:
            self._view.stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Order sweeper stopped")

    def _on_orders_changed(self, view: LiveCollection, change: ChangeEvent) -> None:
        # Called from whichever thread committed the change.
        if self._sweeping or self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._wake.set)

    async def sweep_once(self) -> SweepResult:
        orders = self.watched_orders() if self._view is not None else None
        self._sweeping = True
        try:
            self.last_result = await asyncio.to_thread(
                sweep_orders, self.store, self.clock.now(), orders=orders
            )
        finally:
            self._sweeping = False
        return self.last_result

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except Exception:
                logger.error("Order sweep aborted", exc_info=True)
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
