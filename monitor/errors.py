# monitor/errors.py


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class ConfigError(MonitorError):
    """Missing or malformed configuration. Fatal before the loop starts."""


class InvalidSizeFormat(ConfigError):
    def __init__(self, text: str):
        super().__init__(f"invalid storage size: {text!r}")
        self.text = text


class UnknownDimension(ConfigError):
    def __init__(self, dimension: str):
        super().__init__(f"unknown storage size dimension: {dimension!r}")
        self.dimension = dimension


class OperationTimeout(MonitorError):
    """An operation kept failing until its retry deadline passed."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"failed to {operation} after {timeout:g}s")
        self.operation = operation
        self.timeout = timeout


class ConnectionTimeout(OperationTimeout):
    pass


class QueryTimeout(OperationTimeout):
    pass


class InvariantViolation(MonitorError):
    """The monitor reached a state that should be unreachable."""
