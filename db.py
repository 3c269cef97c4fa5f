"""Database session, query results and SQL helpers built on psycopg3"""

import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import psycopg
from loguru import logger
from psycopg import errors
from psycopg_pool import ConnectionPool, PoolTimeout

CATALOG_TIMEOUT = 5.0   # seconds, schema/table/column lists
QUERY_TIMEOUT = 30.0    # seconds, previews and ad-hoc queries
CONNECT_TIMEOUT = 10.0  # seconds, opening the pool at startup
POOL_MAX_SIZE = 5
DEFAULT_PREVIEW_LIMIT = 100

NULL_TEXT = "NULL"

SCHEMAS_SQL = """
    SELECT schema_name
    FROM information_schema.schemata
    ORDER BY schema_name
"""

TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position
"""

_PLAIN_IDENT_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_MULTI_STATEMENT_RE = re.compile(r";\s*\S")
_TEMP_SCHEMA_RE = re.compile(r"^pg_(toast_)?temp_\d+$")


class QueryError(Exception):
    """Base class for every failure reported by a query execution."""


class ConnectionFailure(QueryError):
    """No usable connection: pool exhausted or network failure."""


class QueryFailure(QueryError):
    """The engine rejected the statement."""


class RowDecodeFailure(QueryError):
    """A value could not be converted while reading rows."""


class DeadlineExceeded(QueryError):
    """The query ran past its deadline and was cancelled."""


class PolicyRejected(QueryError):
    """The query text was refused before reaching the database."""


@dataclass(frozen=True)
class QueryResult:
    headers: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = ()

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column(self, index: int) -> list[str]:
        """Values of a single column, in row order."""
        return [row[index] for row in self.rows]


def quote_ident(name: str) -> str:
    """Quote an identifier unless it is already a plain lowercase name."""
    if not name or _PLAIN_IDENT_RE.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def has_multiple_statements(query: str) -> bool:
    # Semicolons inside literals or comments count too.
    return _MULTI_STATEMENT_RE.search(query) is not None


def check_single_statement(query: str) -> None:
    """Raise PolicyRejected if the text holds more than one statement."""
    if has_multiple_statements(query):
        raise PolicyRejected("Multiple statements detected; please run one at a time.")


def preview_query(schema: str, table: str, limit: int) -> str:
    """Build the bounded SELECT used to preview a table."""
    return f"SELECT * FROM {quote_ident(schema)}.{quote_ident(table)} LIMIT {int(limit)}"


def is_system_schema(name: str) -> bool:
    """pg_toast and the per-backend temporary schemas are hidden from browsing."""
    return name == "pg_toast" or _TEMP_SCHEMA_RE.match(name) is not None


def stringify(value: Any) -> str:
    if value is None:
        return NULL_TEXT
    return str(value)


def materialize(cursor) -> QueryResult:
    """
    Read every row from an executed cursor into a QueryResult.
    Rows are converted one at a time; any driver error while fetching
    aborts the call and no partial rows are returned.
    """
    if cursor.description is None:
        return QueryResult()

    headers = tuple(col.name for col in cursor.description)
    rows = []
    try:
        for record in cursor:
            cells = tuple(stringify(v) for v in record)
            if len(cells) != len(headers):
                raise RowDecodeFailure(
                    f"row has {len(cells)} values for {len(headers)} columns"
                )
            rows.append(cells)
    except psycopg.Error as e:
        raise RowDecodeFailure(f"row error: {e}") from e
    return QueryResult(headers=headers, rows=tuple(rows))


class Session:
    """Pooled PostgreSQL access shared by every query of the process."""

    def __init__(self, pool: ConnectionPool, preview_limit: int = DEFAULT_PREVIEW_LIMIT):
        if preview_limit <= 0:
            raise ValueError(f"preview limit must be positive, got {preview_limit}")
        self.pool = pool
        self._preview_limit = preview_limit
        # Connections with a query in flight
        self._active = set()
        self._active_lock = threading.Lock()

    @property
    def preview_limit(self) -> int:
        return self._preview_limit

    @classmethod
    def open(cls, conninfo: str, preview_limit: int = DEFAULT_PREVIEW_LIMIT,
             max_size: int = POOL_MAX_SIZE) -> "Session":
        """Create the pool and wait until a first connection succeeds."""
        pool = ConnectionPool(
            conninfo,
            min_size=1,
            max_size=max_size,
            kwargs={"autocommit": True},
            name="pgpeek",
            open=False,
        )
        try:
            pool.open(wait=True, timeout=CONNECT_TIMEOUT)
        except (PoolTimeout, psycopg.Error) as e:
            pool.close()
            raise ConnectionFailure(str(e)) from e
        logger.info("Connection pool opened (max {} connections)", max_size)
        return cls(pool, preview_limit)

    def close(self) -> None:
        """Close the pool and every connection in it."""
        self.pool.close()
        logger.info("Connection pool closed")

    def execute(self, query: str, params: Optional[Sequence[Any]] = None,
                timeout: float = QUERY_TIMEOUT) -> QueryResult:
        """
        Run one query and materialize its rows.
        The whole call, including waiting for a pooled connection, is bounded
        by `timeout` seconds. Raises a QueryError subclass on failure.
        """
        deadline = time.monotonic() + timeout
        try:
            with self.pool.connection(timeout=timeout) as conn:
                return self._run(conn, query, params, deadline - time.monotonic())
        except PoolTimeout as e:
            raise ConnectionFailure(f"no connection available: {e}") from e
        except psycopg.OperationalError as e:
            raise ConnectionFailure(str(e)) from e

    def _run(self, conn, query: str, params, remaining: float) -> QueryResult:
        expired = threading.Event()

        def cancel():
            expired.set()
            try:
                conn.cancel()
            except psycopg.Error as e:
                logger.warning("Cancel request failed: {}", e)

        timer = threading.Timer(max(remaining, 0.0), cancel)
        timer.daemon = True
        timer.start()
        with self._active_lock:
            self._active.add(conn)
        try:
            with conn.cursor() as cur:
                cur.execute(query, params)
                # Rows are client side now; stop the deadline before the connection is returned
                timer.cancel()
                return materialize(cur)
        except errors.QueryCanceled as e:
            if expired.is_set():
                raise DeadlineExceeded(f"query exceeded its deadline: {e}") from e
            raise QueryFailure(str(e)) from e
        except psycopg.OperationalError as e:
            raise ConnectionFailure(str(e)) from e
        except psycopg.Error as e:
            raise QueryFailure(str(e)) from e
        finally:
            timer.cancel()
            with self._active_lock:
                self._active.discard(conn)

    def cancel_all(self) -> int:
        """
        Ask the server to cancel every query still running on this session.
        The interrupted calls fail with QueryFailure. Returns how many
        cancel requests were sent.
        """
        with self._active_lock:
            active = list(self._active)
        for conn in active:
            try:
                conn.cancel()
            except psycopg.Error as e:
                logger.warning("Cancel request failed: {}", e)
        if active:
            logger.info("Cancelled {} running queries", len(active))
        return len(active)

