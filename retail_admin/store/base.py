"""Persistent store interface.

Everything the services know about persistence goes through this
interface: filtered selects with relationship expansion, insert,
update-by-filter, delete-by-filter, row-level change subscriptions and
named server-side procedures.

Filters are a mapping of column to value. A scalar means equality, a
list/tuple/set means an ``in`` list and ``None`` means ``IS NULL``.
``order_by`` is a column name, ``"-column"`` for descending, or a list of
those. ``expand`` is a nested mapping of relationship names, e.g.
``{"order_items": {"product": {}}}``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

Row = Dict[str, Any]
Filters = Mapping[str, Any]
OrderBy = Union[str, Sequence[str], None]

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ANY_EVENT = "*"
EVENT_TYPES = (INSERT, UPDATE, DELETE, ANY_EVENT)


@dataclass
class ChangeEvent:
    """One row-level change, published after the mutation commits."""
    table: str
    event: str
    new: Optional[Row] = None
    old: Optional[Row] = None

    @property
    def row(self) -> Row:
        return self.new if self.new is not None else (self.old or {})


@dataclass
class Subscription:
    """Handle returned by ``Store.subscribe``."""
    table: str
    event: str
    callback: Callable[[ChangeEvent], None]
    column_filter: Optional[Filters] = None
    _cancel: Optional[Callable[["Subscription"], None]] = field(default=None, repr=False)

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != ANY_EVENT and change.event != self.event:
            return False
        if self.column_filter:
            row = change.row
            return all(row.get(column) == value for column, value in self.column_filter.items())
        return True

    def unsubscribe(self) -> None:
        if self._cancel is not None:
            self._cancel(self)
            self._cancel = None


class Store(ABC):
    """Abstract query/mutation/subscription client."""

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: OrderBy = None,
        limit: Optional[int] = None,
        expand: Optional[Mapping[str, Any]] = None,
    ) -> List[Row]:
        ...

    def select_one(
        self,
        table: str,
        filters: Filters,
        expand: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Row]:
        """Return the first matching row, or None when nothing matches."""
        rows = self.select(table, filters, limit=1, expand=expand)
        return rows[0] if rows else None

    @abstractmethod
    def insert(self, table: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        ...

    @abstractmethod
    def update(self, table: str, values: Row, filters: Filters) -> List[Row]:
        ...

    @abstractmethod
    def increment(
        self,
        table: str,
        column: str,
        delta: int,
        filters: Filters,
        floor: Optional[int] = 0,
    ) -> List[Row]:
        """Apply a signed delta to ``column`` in one statement, clamped at ``floor``."""
        ...

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> int:
        ...

    @abstractmethod
    def subscribe(
        self,
        table: str,
        event: str,
        callback: Callable[[ChangeEvent], None],
        column_filter: Optional[Filters] = None,
    ) -> Subscription:
        ...

    @abstractmethod
    def rpc(self, name: str, params: Optional[Row] = None) -> Row:
        ...
