"""SQLAlchemy-backed store.

Each public call runs in its own short transaction, so a multi-step
service operation composed of several calls is not atomic. ``rpc`` is
the exception: a registered procedure receives a transaction handle and
all of its reads and writes commit or roll back together.
"""
import functools
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import configure_mappers

import retail_admin.models  # noqa: F401  (registers every table on Base.metadata)
from retail_admin.database import Base, generate_id
from retail_admin.exceptions import RetailAdminError, StoreError
from retail_admin.logging_config import get_logger
from retail_admin.store.base import (
    DELETE, EVENT_TYPES, INSERT, UPDATE,
    ChangeEvent, Filters, OrderBy, Row, Store, Subscription,
)

logger = get_logger(__name__)

# table -> relationship name -> (target table, source column, target column, many)
Relations = Dict[str, Dict[str, Tuple[str, str, str, bool]]]


def relations_from_mappers(base=Base) -> Relations:
    """Derive expandable relationships from the ORM models."""
    relations: Relations = {}
    configure_mappers()
    for mapper in base.registry.mappers:
        table = mapper.local_table.name
        for rel in mapper.relationships:
            local, remote = rel.local_remote_pairs[0]
            relations.setdefault(table, {})[rel.key] = (
                rel.mapper.local_table.name, local.name, remote.name, rel.uselist,
            )
    return relations


def _translate_errors(method):
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc.__cause__ or exc)) from exc
    return wrapper


def _order_keys(order_by: OrderBy) -> List[str]:
    if order_by is None:
        return []
    if isinstance(order_by, str):
        return [order_by]
    return list(order_by)


class Transaction(Store):
    """Store operations bound to one open connection.

    Exposes the same select/insert/update/delete surface as ``Store`` so
    services can run unchanged inside a procedure.
    """

    def __init__(self, conn: sa.Connection, tables: Mapping[str, sa.Table], relations: Relations):
        self.conn = conn
        self.tables = tables
        self.relations = relations
        self.events: List[ChangeEvent] = []

    def _table(self, name: str) -> sa.Table:
        try:
            return self.tables[name]
        except KeyError:
            raise StoreError(f"Unknown table: {name}") from None

    @staticmethod
    def _column(table: sa.Table, name: str) -> sa.Column:
        try:
            return table.c[name]
        except KeyError:
            raise StoreError(f"Unknown column: {table.name}.{name}") from None

    def _where(self, table: sa.Table, filters: Optional[Filters]) -> list:
        clauses = []
        for name, value in (filters or {}).items():
            column = self._column(table, name)
            if value is None:
                clauses.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    @_translate_errors
    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: OrderBy = None,
        limit: Optional[int] = None,
        expand: Optional[Mapping[str, Any]] = None,
    ) -> List[Row]:
        t = self._table(table)
        stmt = sa.select(t).where(*self._where(t, filters))
        for key in _order_keys(order_by):
            column = self._column(t, key.lstrip("-"))
            stmt = stmt.order_by(column.desc() if key.startswith("-") else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = [dict(r._mapping) for r in self.conn.execute(stmt)]
        if expand and rows:
            self._expand(table, rows, expand)
        return rows

    def _expand(self, table: str, rows: List[Row], expand: Mapping[str, Any]) -> None:
        for name, nested in expand.items():
            try:
                target, source_col, target_col, many = self.relations[table][name]
            except KeyError:
                raise StoreError(f"Unknown relationship: {table}.{name}") from None

            keys = {row[source_col] for row in rows if row.get(source_col) is not None}
            order = "created_at" if "created_at" in self._table(target).c else None
            children = self.select(target, {target_col: list(keys)}, order_by=order,
                                   expand=nested or None) if keys else []

            if many:
                grouped: Dict[Any, List[Row]] = {}
                for child in children:
                    grouped.setdefault(child[target_col], []).append(child)
                for row in rows:
                    row[name] = grouped.get(row.get(source_col), [])
            else:
                index = {child[target_col]: child for child in children}
                for row in rows:
                    row[name] = index.get(row.get(source_col))

    @_translate_errors
    def insert(self, table: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        t = self._table(table)
        batch = [rows] if isinstance(rows, Mapping) else list(rows)
        ids = []
        for row in batch:
            values = dict(row)
            if "id" in t.c and values.get("id") is None:
                values["id"] = generate_id()
            self.conn.execute(sa.insert(t).values(**values))
            ids.append(values["id"])

        created = {r["id"]: r for r in self.select(table, {"id": ids})}
        result = [created[i] for i in ids]
        self.events.extend(ChangeEvent(table, INSERT, new=r) for r in result)
        return result

    @_translate_errors
    def update(self, table: str, values: Row, filters: Filters) -> List[Row]:
        if not filters:
            raise StoreError(f"Refusing unfiltered update on {table}")
        t = self._table(table)
        old = {r["id"]: r for r in self.select(table, filters)}
        if not old:
            return []
        self.conn.execute(sa.update(t).where(t.c.id.in_(list(old))).values(**values))
        new = self.select(table, {"id": list(old)})
        self.events.extend(ChangeEvent(table, UPDATE, new=r, old=old.get(r["id"])) for r in new)
        return new

    @_translate_errors
    def increment(self, table: str, column: str, delta: int, filters: Filters,
                  floor: Optional[int] = 0) -> List[Row]:
        if not filters:
            raise StoreError(f"Refusing unfiltered update on {table}")
        t = self._table(table)
        target = self._column(t, column)
        old = {r["id"]: r for r in self.select(table, filters)}
        if not old:
            return []
        expr = target + delta
        if floor is not None:
            expr = sa.case((expr < floor, floor), else_=expr)
        self.conn.execute(sa.update(t).where(t.c.id.in_(list(old))).values({column: expr}))
        new = self.select(table, {"id": list(old)})
        self.events.extend(ChangeEvent(table, UPDATE, new=r, old=old.get(r["id"])) for r in new)
        return new

    @_translate_errors
    def delete(self, table: str, filters: Filters) -> int:
        if not filters:
            raise StoreError(f"Refusing unfiltered delete on {table}")
        t = self._table(table)
        old = self.select(table, filters)
        if not old:
            return 0
        self.conn.execute(sa.delete(t).where(t.c.id.in_([r["id"] for r in old])))
        self.events.extend(ChangeEvent(table, DELETE, old=r) for r in old)
        return len(old)

    def subscribe(self, table, event, callback, column_filter=None) -> Subscription:
        raise StoreError("Subscriptions are not available inside a procedure")

    def rpc(self, name: str, params: Optional[Row] = None) -> Row:
        raise StoreError("Procedures cannot call other procedures")


Procedure = Callable[..., Row]


class SqlStore(Store):
    """Store implementation over a SQLAlchemy engine."""

    def __init__(self, engine: sa.Engine, metadata: sa.MetaData = None,
                 procedures: Optional[Dict[str, Procedure]] = None):
        self.engine = engine
        self.metadata = metadata if metadata is not None else Base.metadata
        self._relations = relations_from_mappers()
        self._procedures: Dict[str, Procedure] = dict(procedures or {})
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def create_all(self) -> None:
        self.metadata.create_all(bind=self.engine)

    def register_procedure(self, name: str, procedure: Procedure) -> None:
        self._procedures[name] = procedure

    def _run(self, work: Callable[[Transaction], Any]) -> Any:
        try:
            with self.engine.begin() as conn:
                tx = Transaction(conn, self.metadata.tables, self._relations)
                result = work(tx)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        self._publish(tx.events)
        return result

    def select(self, table, filters=None, order_by=None, limit=None, expand=None):
        return self._run(lambda tx: tx.select(table, filters, order_by, limit, expand))

    def insert(self, table, rows):
        return self._run(lambda tx: tx.insert(table, rows))

    def update(self, table, values, filters):
        return self._run(lambda tx: tx.update(table, values, filters))

    def increment(self, table, column, delta, filters, floor=0):
        return self._run(lambda tx: tx.increment(table, column, delta, filters, floor))

    def delete(self, table, filters):
        return self._run(lambda tx: tx.delete(table, filters))

    def rpc(self, name: str, params: Optional[Row] = None) -> Row:
        procedure = self._procedures.get(name)
        if procedure is None:
            raise StoreError(f"Unknown procedure: {name}")
        try:
            return self._run(lambda tx: procedure(tx, **(params or {})))
        except RetailAdminError as exc:
            logger.warning(
                f"Procedure {name} rolled back: {exc.message}",
                extra={"extra_fields": {"procedure": name, "code": exc.code}},
            )
            return {"success": False, "error": exc.message}

    def subscribe(self, table, event, callback, column_filter=None) -> Subscription:
        if event not in EVENT_TYPES:
            raise StoreError(f"Unknown event type: {event}")
        subscription = Subscription(table, event, callback, column_filter, _cancel=self._unsubscribe)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _publish(self, events: List[ChangeEvent]) -> None:
        if not events:
            return
        with self._lock:
            subscriptions = list(self._subscriptions)
        for change in events:
            for subscription in subscriptions:
                if not subscription.matches(change):
                    continue
                try:
                    subscription.callback(change)
                except Exception:
                    # Subscribers never break the mutation that notified them.
                    logger.error(
                        f"Change subscriber failed for {change.table} {change.event}",
                        exc_info=True,
                    )
