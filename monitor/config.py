"""Configuration record for the monitor, loaded once from the environment."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .size import parse_size

IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

REQUIRED_MONITOR_VARS = ("TABLE_NAME", "MV_NAMES", "STORAGE_SIZE", "THRESHOLD", "DELETE_PERCENTAGE")
REQUIRED_CONNECTION_VARS = ("CLICKHOUSE_USERNAME", "CLICKHOUSE_PASSWORD", "DB_URL")


def _check_identifier(name: str) -> str:
    if not IDENT_RE.match(name):
        raise ValueError(f"not a valid table name: {name!r}")
    return name


class ConnectionParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, repr=False)

    @field_validator("url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("DB_URL must be the ClickHouse HTTP endpoint (http:// or https://)")
        return v


class MonitorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    table_name: str = Field(..., min_length=1)
    mv_names: tuple[str, ...] = ()
    allocated_space: int = Field(..., gt=0)
    threshold: float = Field(..., gt=0, le=1)
    delete_percentage: float = Field(..., gt=0, le=1)
    connection: ConnectionParams

    # the monitor stops for this many intervals after a deletion so the
    # MergeTree engine can release the space
    skip_rounds_num: int = Field(3, ge=0)
    conn_timeout: float = Field(60.0, ge=0)
    conn_retry_interval: float = Field(10.0, gt=0)
    query_timeout: float = Field(10.0, ge=0)
    query_retry_interval: float = Field(1.0, gt=0)
    monitor_exec_interval: float = Field(60.0, gt=0)
    log_level: str = "INFO"

    @field_validator("table_name")
    @classmethod
    def _table_name(cls, v: str) -> str:
        return _check_identifier(v)

    @field_validator("mv_names")
    @classmethod
    def _mv_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(_check_identifier(name) for name in v)

    @field_validator("log_level")
    @classmethod
    def _log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v!r}")
        return level

    @property
    def tables(self) -> tuple[str, ...]:
        """Monitored table first, then its materialized views."""
        return (self.table_name, *self.mv_names)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> MonitorConfig:
        """
        Build the configuration from environment variables.

        Raises ConfigError when a required variable is missing or any
        value fails to parse. MV_NAMES must be set but may be empty.
        """
        env = os.environ if environ is None else environ

        required = REQUIRED_MONITOR_VARS + REQUIRED_CONNECTION_VARS
        missing = [k for k in required if (k not in env if k == "MV_NAMES" else not env.get(k))]
        if missing:
            raise ConfigError(
                "Unable to load environment variables, "
                + ", ".join(required)
                + " must be defined (missing: "
                + ", ".join(missing)
                + ")"
            )

        values = {
            "table_name": env["TABLE_NAME"].strip(),
            "mv_names": tuple(env["MV_NAMES"].split()),
            "allocated_space": parse_size(env["STORAGE_SIZE"]),
            "threshold": env["THRESHOLD"].strip(),
            "delete_percentage": env["DELETE_PERCENTAGE"].strip(),
            "connection": {
                "url": env["DB_URL"].strip(),
                "username": env["CLICKHOUSE_USERNAME"],
                "password": env["CLICKHOUSE_PASSWORD"],
            },
        }
        optional = {
            "skip_rounds_num": "SKIP_ROUNDS_NUM",
            "monitor_exec_interval": "MONITOR_INTERVAL_SEC",
            "conn_timeout": "CONN_TIMEOUT_SEC",
            "conn_retry_interval": "CONN_RETRY_INTERVAL_SEC",
            "query_timeout": "QUERY_TIMEOUT_SEC",
            "query_retry_interval": "QUERY_RETRY_INTERVAL_SEC",
            "log_level": "LOG_LEVEL",
        }
        for field, var in optional.items():
            if env.get(var):
                values[field] = env[var].strip()

        try:
            return cls(**values)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigError(f"Invalid monitor configuration: {problems}") from exc
