import pytest
from conftest import FakeBackend, usage_rows

from monitor.config import ConnectionParams
from monitor.connection import connect
from monitor.errors import ConnectionTimeout
from storage.base import StorageError
from storage.clickhouse_backend import ClickHouseBackend
from storage.factory import get_storage_backend

PARAMS = ConnectionParams(url="http://clickhouse:8123", username="default", password="secret")


def test_connects_and_pings(fake_clock):
    created = []

    def factory(db_type, **kwargs):
        created.append((db_type, kwargs))
        return FakeBackend(usage_rows())

    backend = connect(PARAMS, 60.0, 10.0, factory=factory, sleep=fake_clock.sleep, clock=fake_clock.monotonic)

    assert backend.connected
    assert backend.queries == ["SELECT 1"]
    assert created == [("clickhouse", {"url": PARAMS.url, "username": "default", "password": "secret"})]
    assert fake_clock.sleeps == []


def test_retries_until_server_is_up(fake_clock):
    attempts = []

    def factory(db_type, **kwargs):
        rows = usage_rows()
        if len(attempts) < 2:
            rows["SELECT 1"] = StorageError("Connection refused")
        backend = FakeBackend(rows)
        attempts.append(backend)
        return backend

    backend = connect(PARAMS, 60.0, 10.0, factory=factory, sleep=fake_clock.sleep, clock=fake_clock.monotonic)

    assert backend is attempts[-1]
    assert len(attempts) == 3
    # failed handles are closed, the live one is not
    assert [b.closed for b in attempts] == [True, True, False]
    assert fake_clock.sleeps == [10.0, 10.0]


def test_gives_up_after_timeout(fake_clock):
    def factory(db_type, **kwargs):
        return FakeBackend({"SELECT 1": StorageError("Connection refused")})

    with pytest.raises(ConnectionTimeout) as exc_info:
        connect(PARAMS, 60.0, 10.0, factory=factory, sleep=fake_clock.sleep, clock=fake_clock.monotonic)
    assert "connect to ClickHouse" in str(exc_info.value)
    assert fake_clock.now == 60.0


def test_request_timeout_reaches_the_backend(fake_clock):
    created = []

    def factory(db_type, **kwargs):
        created.append(kwargs)
        return FakeBackend(usage_rows())

    connect(
        PARAMS,
        60.0,
        10.0,
        request_timeout=60.0,
        factory=factory,
        sleep=fake_clock.sleep,
        clock=fake_clock.monotonic,
    )
    assert created[0]["timeout"] == 60.0


def test_request_timeout_is_accepted_by_clickhouse_backend(fake_clock):
    built = []

    def factory(db_type, **kwargs):
        built.append(get_storage_backend(db_type, **kwargs))
        return FakeBackend(usage_rows())

    connect(
        PARAMS,
        60.0,
        10.0,
        request_timeout=45.0,
        factory=factory,
        sleep=fake_clock.sleep,
        clock=fake_clock.monotonic,
    )
    assert isinstance(built[0], ClickHouseBackend)
    assert built[0].timeout == 45.0
    assert built[0].session is None
