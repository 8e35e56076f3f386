import json
import logging
import re
from typing import Any

import requests
from dateutil import parser as dtp

from .base import NoRowsError, StorageBackend, StorageError

logger = logging.getLogger(__name__)

# Nullable(UInt64), LowCardinality(String), DateTime('UTC') ...
WRAPPER_RE = re.compile(r"^(?:Nullable|LowCardinality)\((?P<inner>.*)\)$")


def _convert(value: Any, ch_type: str) -> Any:
    """Turn a JSONCompact cell into the matching Python value."""
    if value is None:
        return None
    m = WRAPPER_RE.match(ch_type)
    while m:
        ch_type = m.group("inner")
        m = WRAPPER_RE.match(ch_type)

    if ch_type.startswith(("UInt", "Int")):
        return int(value)
    if ch_type.startswith(("Float", "Decimal")):
        return float(value)
    if ch_type.startswith(("DateTime", "Date")):
        return dtp.parse(value)
    return value


class ClickHouseBackend(StorageBackend):
    def __init__(self, url: str, username: str, password: str, timeout: float = 10.0):
        """
        ClickHouse backend speaking the HTTP interface.
        :param url: Base URL of the server, e.g. http://clickhouse:8123
        :param username: ClickHouse user.
        :param password: Password for that user.
        :param timeout: Per-request socket timeout in seconds.
        """
        self.url = url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.session: requests.Session | None = None

    def connect(self):
        session = requests.Session()
        session.auth = (self.username, self.password)
        session.params = {
            "default_format": "JSONCompact",
            # keep UInt64 as JSON numbers instead of quoted strings
            "output_format_json_quote_64bit_integers": "0",
        }
        self.session = session

    def _post(self, sql: str) -> requests.Response:
        if self.session is None:
            raise StorageError("ClickHouse backend is not connected")
        try:
            response = self.session.post(self.url + "/", data=sql.encode("utf-8"), timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageError(f"request to ClickHouse failed: {exc}") from exc
        if response.status_code != 200:
            # ClickHouse puts the exception text in the body
            raise StorageError(
                f"ClickHouse returned {response.status_code}: {response.text.strip()[:500]}"
            )
        return response

    def ping(self):
        if self.session is None:
            raise StorageError("ClickHouse backend is not connected")
        try:
            response = self.session.get(self.url + "/ping", timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StorageError(f"failed to ping ClickHouse: {exc}") from exc
        # /ping skips authentication, so make sure the credentials work too
        self.query_row("SELECT 1")

    def query_row(self, sql: str) -> tuple[Any, ...]:
        response = self._post(sql)
        try:
            body = response.json()
        except ValueError as exc:
            raise StorageError(f"malformed ClickHouse response: {exc}") from exc

        rows = body.get("data") or []
        if not rows:
            raise NoRowsError(f"no rows returned by: {sql}")
        types = [col.get("type", "") for col in body.get("meta", [])]
        row = rows[0]
        if len(types) != len(row):
            types = [""] * len(row)
        try:
            return tuple(_convert(v, t) for v, t in zip(row, types))
        except (ValueError, TypeError, OverflowError) as exc:
            raise StorageError(f"unexpected value in ClickHouse response: {exc}") from exc

    def execute(self, sql: str) -> dict[str, Any]:
        response = self._post(sql)
        summary = response.headers.get("X-ClickHouse-Summary")
        if not summary:
            return {}
        try:
            return json.loads(summary)
        except ValueError:
            logger.debug("Unparseable X-ClickHouse-Summary header: %s", summary)
            return {}

    def close(self):
        if self.session is not None:
            self.session.close()
            self.session = None
