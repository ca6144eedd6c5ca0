"""
core/db.py -- SQLAlchemy engine factory shared by every store.

Both auth/store.py and vault/store.py build their engines here so the SQLite
connection settings stay identical:
  - check_same_thread=False: FastAPI runs sync handlers in a threadpool, so a
    pooled connection may be used by a thread other than its creator.
  - WAL journal mode, set per connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.

Layer rule: core/ is the kernel. No imports from api/, auth/, or vault/.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite threading and WAL settings applied."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
