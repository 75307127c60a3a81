"""Command-line entry point for the edge updater."""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from edge_updater.config import LOG_FILE, UpdaterConfig
from edge_updater.models.status import UpdateResult
from edge_updater.services.coordinator import UpdateCoordinator
from edge_updater.utils.logging import setup_logger

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="edge-updater",
        description=(
            "Check the release manifest and, if a newer build exists, install it "
            "and restart the service, rolling back if it will not start."
        ),
    )
    parser.add_argument("--log-file", default=LOG_FILE, help="Rotating log file path")
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to the console only (systemd journal)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Minimum level written to console and log file",
    )
    return parser.parse_args(argv)


async def run_update(config: Optional[UpdaterConfig] = None) -> UpdateResult:
    """Run one update transaction."""
    coordinator = UpdateCoordinator(config=config)
    return await coordinator.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point; returns the process exit code.

    Exit codes:
        0: up to date, updated, or rolled back with the service running
        1: failed before touching the device
        2: critical failure, operator action required
    """
    args = parse_args(argv)
    log_file = None if args.no_log_file else args.log_file
    logger = setup_logger(
        "edge_updater", log_file, level=getattr(logging, args.log_level)
    )
    logger.info("Edge updater starting...")

    result = asyncio.run(run_update())

    logger.info(
        f"Edge updater finished: outcome={result.outcome.value}, "
        f"critical={result.critical}, exit_code={result.exit_code}"
    )
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
