"""Pytest fixtures: fake connection pools for the gateway and a recording gateway for the runner."""

import sys
import types
from contextlib import contextmanager
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlreplay.core.errors import ExecutionError
from sqlreplay.db import connection

ENV_KEYS = [
    "INPUT_DB_USER",
    "INPUT_DB_PASSWORD",
    "INPUT_DB_HOST",
    "INPUT_DB_PORT",
    "INPUT_DB",
    "INPUT_SCRIPTS_DIR",
    "INPUT_DB_TIMEOUT",
    "INPUT_RELATIONS_FILE",
    "INPUT_CLOUD_SQL_INSTANCE",
    "DEBUG",
    "DB_QUERY_DEBUG",
    "SQLREPLAY_CONFIG",
]


class FakeConnection:
    def __init__(self, pool):
        self._pool = pool
        self.info = types.SimpleNamespace(dsn=pool.conninfo)

    def execute(self, query, params=None, **kwargs):
        self._pool.executed.append(query)
        err = self._pool.controller.failures.get(query)
        if err is not None:
            raise err
        return None

    @contextmanager
    def transaction(self):
        self._pool.events.append("begin")
        try:
            yield self
        except BaseException:
            self._pool.events.append("rollback")
            raise
        else:
            self._pool.events.append("commit")


class FakeDirectConnection:
    """Stand-in for a connection returned by ``psycopg.connect``."""

    def __init__(self, controller, conninfo, kwargs):
        self.controller = controller
        self.conninfo = conninfo
        self.kwargs = kwargs
        self.closed = False

    def execute(self, query, params=None, **kwargs):
        self.controller.pings.append(query)
        err = self.controller.failures.get(query)
        if err is not None:
            raise err
        return None

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class FakeConnectionPool:
    def __init__(self, controller, conninfo=None, min_size=1, max_size=8, kwargs=None, open=True, timeout=30.0, name=None):
        self.controller = controller
        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self.kwargs = kwargs or {}
        self.open_on_create = open
        self.timeout = timeout
        self.name = name
        self.opened = False
        self.closed = False
        self.executed = []
        self.events = []

    def open(self, wait=False, timeout=30.0):
        if self.controller.open_error is not None:
            raise self.controller.open_error
        self.opened = True

    def connection(self):
        pool = self

        class _Ctx:
            def __enter__(self_inner):
                return FakeConnection(pool)

            def __exit__(self_inner, exc_type, exc, tb):
                return False

        return _Ctx()

    def close(self):
        self.closed = True


class PoolController:
    """Creates fake pools and direct connections and holds the failures they should raise."""

    def __init__(self):
        self.pools = []
        self.failures = {}
        self.open_error = None
        self.connect_error = None
        self.pings = []
        self.direct = []

    def connect(self, conninfo, **kwargs):
        if self.connect_error is not None:
            raise self.connect_error
        conn = FakeDirectConnection(self, conninfo, kwargs)
        self.direct.append(conn)
        return conn

    def factory(self, *args, **kwargs):
        pool = FakeConnectionPool(self, *args, **kwargs)
        self.pools.append(pool)
        return pool

    @property
    def pool(self):
        return self.pools[-1]


class RecordingGateway:
    """Gateway double that records statements and fails on marked ones."""

    def __init__(self, fail_markers=()):
        self.statements = []
        self.fail_markers = tuple(fail_markers)

    def exec(self, sql):
        text = sql.decode("utf-8", errors="replace") if isinstance(sql, bytes) else sql
        if any(marker in text for marker in self.fail_markers):
            raise ExecutionError('unable to execute the sql on database: syntax error at or near "TABLEE"')
        self.statements.append(sql)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_pool(monkeypatch):
    controller = PoolController()
    monkeypatch.setattr(connection, "ConnectionPool", controller.factory)
    monkeypatch.setattr(connection, "pg_connect", controller.connect)
    return controller


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def write_scripts(tmp_path):
    """Write ``{relative_path: sql}`` under ``tmp_path/sql`` and return that directory."""

    def _write(files):
        root = tmp_path / "sql"
        root.mkdir(exist_ok=True)
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root

    return _write
