"""Postgres gateway: connection settings, pooled connection, ping, statement execution, and transactions."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, TypeVar

import psycopg
from psycopg import Connection, Cursor
from psycopg import connect as pg_connect
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool

from sqlreplay.core.errors import DatabaseConnectionError, ExecutionError
from sqlreplay.core.logging_utils import log_event

DEFAULT_TIMEOUT_SECONDS = 30.0
QUERY_DEBUG_ENV = "DB_QUERY_DEBUG"
PING_SQL = "SELECT 1"

Statement = str | bytes

T = TypeVar("T")


@dataclass(frozen=True)
class DBCredentials:
    """Connection credentials. A host starting with ``/`` is a Unix socket directory."""

    user: str
    password: str = field(repr=False)
    host: str
    port: int
    database: str
    cloud_sql_instance: Optional[str] = None


@dataclass(frozen=True)
class DBOptions:
    """Driver-level connect/statement timeout, in seconds."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS


class SqlGateway(Protocol):
    """Anything that can submit free-form SQL to the server."""

    def exec(self, sql: Statement) -> None:
        """Execute ``sql`` verbatim; raise ``ExecutionError`` on failure."""


def _query_text(query: Any) -> str:
    if isinstance(query, bytes):
        return query.decode("utf-8", errors="replace")
    if isinstance(query, str):
        return query
    return repr(query)


class QueryLoggingCursor(Cursor):
    """Cursor that writes every executed statement and its duration to stderr."""

    def execute(self, query, params=None, **kwargs):  # type: ignore[override]
        started = time.perf_counter()
        failed = False
        try:
            return super().execute(query, params, **kwargs)
        except Exception:
            failed = True
            raise
        finally:
            log_event(
                "db.query",
                {
                    "query": _query_text(query),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                    "failed": failed,
                },
            )


def resolve_network(credentials: DBCredentials) -> Tuple[str, str]:
    """Return ``(network, address)`` for the credentials.

    Hosts beginning with ``/`` select a Unix socket and the port is ignored;
    anything else is TCP with the address ``host:port``.
    """
    if credentials.host.startswith("/"):
        return "unix", credentials.host
    return "tcp", f"{credentials.host}:{credentials.port}"


def build_conninfo(credentials: DBCredentials, options: DBOptions | None = None) -> str:
    """Build a libpq conninfo string. TLS is disabled; the tool runs inside trusted pipelines."""
    opts = options or DBOptions()
    params: Dict[str, Any] = {
        "host": credentials.host,
        "user": credentials.user,
        "password": credentials.password,
        "dbname": credentials.database,
        "sslmode": "disable",
        "connect_timeout": max(1, int(round(opts.timeout))),
        "options": f"-c statement_timeout={int(opts.timeout * 1000)}",
    }
    network, _ = resolve_network(credentials)
    if network == "tcp":
        params["port"] = credentials.port
    return make_conninfo("", **params)


def query_debug_enabled(env: Optional[Dict[str, str]] = None) -> bool:
    source = os.environ if env is None else env
    return bool(source.get(QUERY_DEBUG_ENV, ""))


def _exec_on(conn: Connection, sql: Statement) -> None:
    try:
        conn.execute(sql, prepare=False)
    except psycopg.Error as exc:
        err = ExecutionError(f"unable to execute the sql on database: {exc}")
        log_event("db.exec_failed", {"error": str(exc)})
        raise err from exc


class TransactionExecutor:
    """Executor bound to one open transaction."""

    def __init__(self, conn: Connection):
        self._conn = conn

    def exec(self, sql: Statement) -> None:
        _exec_on(self._conn, sql)


class TransactionScope:
    """Runs callables inside a database transaction on the gateway's pool."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    def run(self, body: Callable[[TransactionExecutor], T]) -> T:
        """Run ``body`` in a transaction; roll back if it raises, commit otherwise.

        Args:
            body (Callable[[TransactionExecutor], T]): Work to run. Receives an
                executor whose ``exec`` runs inside the transaction.

        Returns:
            T: Whatever ``body`` returns.
        """
        with self._pool.connection() as conn:
            with conn.transaction():
                return body(TransactionExecutor(conn))


class Database:
    """Gateway owning the connection pool used for every statement."""

    def __init__(self, pool: ConnectionPool, credentials: DBCredentials, options: DBOptions):
        self._pool = pool
        self.credentials = credentials
        self.options = options
        self.tx = TransactionScope(pool)

    @classmethod
    def connect(cls, credentials: DBCredentials) -> "Database":
        """Connect with the default 30 second timeout."""
        return cls.connect_with_timeout(credentials, DBOptions(timeout=DEFAULT_TIMEOUT_SECONDS))

    @classmethod
    def connect_with_timeout(cls, credentials: DBCredentials, options: DBOptions | None = None) -> "Database":
        """Ping the server with ``SELECT 1``, open the pool, and return the gateway.

        The ping runs on a direct connection so a refused connection or a
        rejected login fails at once with the driver's own error.

        Args:
            credentials (DBCredentials): Server address and login.
            options (DBOptions | None): Timeout settings; defaults to 30 seconds.

        Returns:
            Database: Connected gateway.

        Raises:
            DatabaseConnectionError: When building the conninfo, opening the
                pool, or the ping query fails. No pool is left open.
        """
        opts = options or DBOptions()
        network, address = resolve_network(credentials)
        pool: ConnectionPool | None = None
        try:
            conninfo = build_conninfo(credentials, opts)
            kwargs: Dict[str, Any] = {"autocommit": True}
            if query_debug_enabled():
                kwargs["cursor_factory"] = QueryLoggingCursor
            with pg_connect(conninfo, **kwargs) as conn:
                conn.execute(PING_SQL)
            pool = ConnectionPool(
                conninfo=conninfo,
                min_size=1,
                max_size=1,
                kwargs=kwargs,
                timeout=opts.timeout,
                name="sqlreplay",
                open=False,
            )
            pool.open(wait=True, timeout=opts.timeout)
        except Exception as exc:
            if pool is not None:
                pool.close()
            log_event("db.connect_failed", {"network": network, "address": address, "error": str(exc)})
            raise DatabaseConnectionError(f"unable to connect to database: {exc}") from exc
        log_event(
            "db.connect",
            {
                "network": network,
                "address": address,
                "database": credentials.database,
                "cloud_sql_instance": credentials.cloud_sql_instance,
            },
        )
        return cls(pool, credentials, opts)

    def exec(self, sql: Statement) -> None:
        """Execute ``sql`` (text or raw file bytes) verbatim on one pooled connection. No rows are returned."""
        try:
            with self._pool.connection() as conn:
                _exec_on(conn, sql)
        except ExecutionError:
            raise
        except psycopg.Error as exc:
            log_event("db.exec_failed", {"error": str(exc)})
            raise ExecutionError(f"unable to execute the sql on database: {exc}") from exc

    def run_in_transaction(self, body: Callable[[TransactionExecutor], T]) -> T:
        return self.tx.run(body)

    def close(self) -> None:
        self._pool.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
