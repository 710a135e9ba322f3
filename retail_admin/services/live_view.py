"""In-memory collection kept current from store change events."""
import threading
from typing import Callable, List, Optional

from retail_admin.logging_config import get_logger
from retail_admin.store.base import ANY_EVENT, UPDATE, ChangeEvent, Filters, Row, Store, Subscription

logger = get_logger(__name__)


class LiveCollection:
    """Rows of one table, patched in place on UPDATE.

    An UPDATE for a known row merges the new values into it. Inserts,
    deletes and updates of rows not held here reload the whole
    collection through ``loader``.
    """

    def __init__(
        self,
        store: Store,
        table: str,
        loader: Callable[[], List[Row]],
        key: str = "id",
        column_filter: Optional[Filters] = None,
        on_change: Optional[Callable[["LiveCollection", ChangeEvent], None]] = None,
    ):
        self.store = store
        self.table = table
        self.loader = loader
        self.key = key
        self.column_filter = column_filter
        self.on_change = on_change
        self.rows: List[Row] = []
        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None

    def start(self) -> "LiveCollection":
        self.reload()
        self._subscription = self.store.subscribe(
            self.table, ANY_EVENT, self._handle, column_filter=self.column_filter
        )
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def reload(self) -> None:
        rows = self.loader()
        with self._lock:
            self.rows = rows

    def _patch(self, new: Row) -> bool:
        with self._lock:
            for index, row in enumerate(self.rows):
                if row.get(self.key) == new.get(self.key):
                    self.rows[index] = {**row, **new}
                    return True
        return False

    def _handle(self, change: ChangeEvent) -> None:
        if not (change.event == UPDATE and change.new is not None and self._patch(change.new)):
            self.reload()
        if self.on_change is not None:
            self.on_change(self, change)

    def snapshot(self) -> List[Row]:
        with self._lock:
            return list(self.rows)
