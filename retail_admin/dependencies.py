"""Shared FastAPI dependencies."""
from functools import lru_cache

from retail_admin.clock import Clock, SystemClock
from retail_admin.database import engine
from retail_admin.store.base import Store
from retail_admin.store.procedures import default_procedures
from retail_admin.store.sql import SqlStore


@lru_cache
def get_clock() -> Clock:
    return SystemClock()


@lru_cache
def get_store() -> Store:
    """The process-wide store over the configured database."""
    return SqlStore(engine, procedures=default_procedures(get_clock()))
