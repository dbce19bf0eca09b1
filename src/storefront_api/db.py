import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.pool import AbstractConnectionPool, ThreadedConnectionPool

from storefront_api.config import Settings


logger = logging.getLogger(__name__)

# Applied to every connection right after checkout.
STRICT_MODE_SQL = "SET standard_conforming_strings = on"
TIME_ZONE_SQL = "SET TIME ZONE INTERVAL %(offset)s HOUR TO MINUTE"


# PUBLIC_INTERFACE
def create_pool(settings: Settings) -> ThreadedConnectionPool:
    """Create the PostgreSQL connection pool described by ``settings``."""
    logger.info(
        "Opening connection pool to %s:%s/%s (min=%d, max=%d)",
        settings.db_host,
        settings.db_port,
        settings.db_name,
        settings.db_pool_min,
        settings.db_pool_max,
    )
    return ThreadedConnectionPool(
        minconn=settings.db_pool_min,
        maxconn=settings.db_pool_max,
        **settings.connect_kwargs,
    )


# PUBLIC_INTERFACE
def configure_session(conn: PgConnection, time_zone: str) -> None:
    """Apply the session-level options every request relies on."""
    with conn.cursor() as cur:
        cur.execute(STRICT_MODE_SQL)
        cur.execute(TIME_ZONE_SQL, {"offset": time_zone})


# PUBLIC_INTERFACE
@contextmanager
def connection_scope(pool: AbstractConnectionPool, time_zone: str) -> Iterator[PgConnection]:
    """
    Check out one connection for the duration of a request.

    The connection is rolled back if the body raises and is always handed
    back to the pool. Checkout failures propagate unchanged.
    """
    conn = pool.getconn()
    try:
        configure_session(conn, time_zone)
        yield conn
    except Exception:
        if not conn.closed:
            conn.rollback()
        raise
    finally:
        pool.putconn(conn, close=bool(conn.closed))


def _dict_cursor(conn: PgConnection):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# PUBLIC_INTERFACE
def fetch_one(conn: PgConnection, query: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict, or None."""
    with _dict_cursor(conn) as cur:
        cur.execute(query, params or {})
        row = cur.fetchone()
        return dict(row) if row else None


# PUBLIC_INTERFACE
def execute(conn: PgConnection, query: str, params: Optional[Mapping[str, Any]] = None) -> int:
    """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
    with conn.cursor() as cur:
        cur.execute(query, params or {})
        affected = cur.rowcount
    conn.commit()
    return affected


# PUBLIC_INTERFACE
def execute_returning_one(conn: PgConnection, query: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Execute a statement with RETURNING and return the first row as dict."""
    with _dict_cursor(conn) as cur:
        cur.execute(query, params or {})
        row = cur.fetchone()
    if not row:
        conn.rollback()
        raise RuntimeError("Expected one row returned, got none.")
    conn.commit()
    return dict(row)
