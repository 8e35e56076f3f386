from datetime import datetime

import pytest

from monitor.config import ConnectionParams, MonitorConfig
from storage.base import NoRowsError, StorageBackend, StorageError


class FakeClock:
    """monotonic() only moves when sleep() is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBackend(StorageBackend):
    """
    Scripted ClickHouse stand-in.

    `rows` maps a SQL prefix to the row returned for it, or to an
    exception instance to raise. Commands are recorded; tables listed in
    `failing_tables` reject their DELETE.
    """

    def __init__(self, rows=None, failing_tables=()):
        self.rows = dict(rows or {})
        self.failing_tables = set(failing_tables)
        self.queries = []
        self.commands = []
        self.connected = False
        self.closed = False

    def connect(self):
        self.connected = True

    def ping(self):
        self.query_row("SELECT 1")

    def query_row(self, sql):
        self.queries.append(sql)
        for prefix, value in self.rows.items():
            if sql.startswith(prefix):
                if isinstance(value, Exception):
                    raise value
                return value
        raise NoRowsError(f"no rows returned by: {sql}")

    def execute(self, sql):
        self.commands.append(sql)
        for table in self.failing_tables:
            if sql.startswith(f"ALTER TABLE {table} "):
                raise StorageError(f"Code: 60. Table default.{table} doesn't exist")
        return {}

    def close(self):
        self.closed = True


BOUNDARY = datetime(2022, 3, 1, 12, 30, 5)


def usage_rows(free=400, disk_total=2000, used=700, count=1000, boundary=BOUNDARY):
    return {
        "SELECT 1": (1,),
        "SELECT free_space, total_space FROM system.disks": (free, disk_total),
        "SELECT SUM(bytes) FROM system.parts": (used,),
        "SELECT COUNT() FROM": (count,),
        "SELECT timeInserted FROM": (boundary,),
    }


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_config():
    def _make(**overrides):
        values = {
            "table_name": "flows",
            "mv_names": ("flows_pod_view", "flows_node_view"),
            "allocated_space": 1000,
            "threshold": 0.6,
            "delete_percentage": 0.1,
            "connection": ConnectionParams(url="http://localhost:8123", username="default", password="secret"),
            "monitor_exec_interval": 0.01,
        }
        values.update(overrides)
        return MonitorConfig(**values)

    return _make
