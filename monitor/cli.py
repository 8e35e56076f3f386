# monitor/cli.py
import argparse
import logging

from .config import MonitorConfig
from .connection import connect
from .errors import ConfigError, ConnectionTimeout, InvariantViolation
from .loop import Monitor

logger = logging.getLogger(__name__)


def _host_port(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {value!r}")
    return host or "0.0.0.0", int(port)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Delete the oldest ClickHouse records when storage runs low")
    ap.add_argument("--once", action="store_true", help="run a single round and exit")
    ap.add_argument("--serve", type=_host_port, metavar="HOST:PORT", help="also expose the status API")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = MonitorConfig.from_env()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1
    logging.getLogger().setLevel(config.log_level)
    logger.info(
        "Config: table=%s views=%s allocated=%d threshold=%s deletePercentage=%s",
        config.table_name,
        ",".join(config.mv_names) or "-",
        config.allocated_space,
        config.threshold,
        config.delete_percentage,
    )

    try:
        backend = connect(
            config.connection,
            config.conn_timeout,
            config.conn_retry_interval,
            # never below one retry interval
            request_timeout=max(config.query_timeout, config.query_retry_interval),
        )
    except ConnectionTimeout as exc:
        logger.error("Error when connecting to ClickHouse: %s", exc)
        return 1

    monitor = Monitor(config, backend)
    try:
        if args.serve:
            from api.main import serve_in_background

            serve_in_background(monitor, *args.serve)
        monitor.check_storage_condition()
        monitor.run(max_ticks=1 if args.once else None)
    except InvariantViolation as exc:
        logger.critical("Monitor reached an invalid state, exiting: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping monitor")
        monitor.stop()
    finally:
        backend.close()
    return 0
