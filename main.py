"""Log manager: rotates live log files on a wall-clock schedule and purges old archives."""

import argparse
import logging
import signal
import sys
import time
from dataclasses import replace

from log_manager.config import DEFAULT_CONFIG_PATH, load_config
from log_manager.errors import ConfigError
from log_manager.manager import LogManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [log-manager] %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_running = True


def _signal_handler(sig, _frame):
    global _running
    logger.info("Shutdown signal received (signal %d), stopping...", sig)
    _running = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="log-manager",
        description="Rotate and prune append-only log files on a schedule.",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_PATH,
        help=f"Path to YAML config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--directory",
        help="Directory holding live and archived logs (overrides config)",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="Run a single rotation cycle now and exit",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        if args.directory:
            config = replace(config, directory=args.directory)
        manager = LogManager(config)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.info(
        "Config: directory=%s, streams=%s, max_age=%dd, count_gate=%s, timezone=%s",
        config.directory,
        ", ".join(f"{s.live_file}->{s.archive_prefix}" for s in config.streams),
        config.retention.max_age_days, config.retention.count_gate,
        config.timezone or "local",
    )

    if args.once:
        manager.run_cycle()
        return 0

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    manager.start()
    try:
        while _running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass

    manager.stop()
    logger.info("Shut down cleanly")
    return 0


if __name__ == "__main__":
    sys.exit(main())
