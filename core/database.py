"""
core/database.py -- Engine construction shared by every SQLAlchemy store.

Each store (auth/store.py, catalog/store.py, ratings/store.py) owns its own
tables and mappers but builds its engine here so SQLite connection options
stay identical across them.

Layer rule: core/ is the kernel. No imports from api/, auth/, catalog/, ratings/.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases ignore the request.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite options every store needs.

    check_same_thread=False lets the pool hand a connection to whichever
    worker thread serves the request. timeout makes concurrent writers wait
    for the write lock instead of failing with "database is locked".
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
