"""
ClickHouse storage monitor.

Samples disk usage of a ClickHouse server on a fixed period and, when the
monitored table grows past the configured share of its storage budget,
deletes the oldest rows of that table and of its materialized views.
"""

from .errors import (
    ConfigError as ConfigError,
)
from .errors import (
    ConnectionTimeout as ConnectionTimeout,
)
from .errors import (
    InvalidSizeFormat as InvalidSizeFormat,
)
from .errors import (
    InvariantViolation as InvariantViolation,
)
from .errors import (
    MonitorError as MonitorError,
)
from .errors import (
    QueryTimeout as QueryTimeout,
)
from .errors import (
    UnknownDimension as UnknownDimension,
)
from .size import parse_size as parse_size

__all__ = [
    "ConfigError",
    "ConnectionTimeout",
    "InvalidSizeFormat",
    "InvariantViolation",
    "MonitorError",
    "QueryTimeout",
    "UnknownDimension",
    "parse_size",
]
