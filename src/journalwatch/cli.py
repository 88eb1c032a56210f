#!/usr/bin/env python3
"""
CLI for watching a journal directory.

Usage:
    journalwatch
    journalwatch /path/to/journal/dir -f FSDJump -f Docked
    journalwatch --commands commands.json --start-at-end
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .actions import CommandMap, CommandRunner, RecordHandler
from .config import WatcherConfig
from .exceptions import JournalWatchError, SetupError, ShutdownError
from .process import JournalWatcher
from .shutdown import Shutdown


logger = logging.getLogger("journalwatch.cli")


class GracefulShutdown:
    """Kill the shutdown on SIGINT/SIGTERM."""

    def __init__(self, shutdown: Shutdown):
        self.shutdown = shutdown
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.shutdown.kill(JournalWatchError(f"interrupted by signal {signum}"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="journalwatch",
        description="Watch a journal directory and report decoded records",
    )
    parser.add_argument("directory", nargs="?", help="Journal directory (default: the game's save directory)")
    parser.add_argument(
        "-f", "--filter", dest="filters", action="append", default=[], metavar="EVENT",
        help="Only report this event; may be repeated (NavRoute is always reported)",
    )
    parser.add_argument("--commands", type=Path, help="JSON file mapping event names to commands to run")
    parser.add_argument("--start-at-end", action="store_true", help="Skip the backlog of the current journal")
    parser.add_argument("--queue-size", type=int, help="Capacity of the record queue")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def build_config(args: argparse.Namespace) -> WatcherConfig:
    """Combine the environment and command-line flags; flags win."""
    config = WatcherConfig.from_env()
    if args.directory:
        config.journal_dir = Path(args.directory).expanduser()
    if args.filters:
        # Route plotting is always reported once any filter is given.
        config.event_filter = set(args.filters) | {"NavRoute"}
    if args.start_at_end:
        config.start_at_end = True
    if args.queue_size:
        config.record_queue_size = args.queue_size
    return config


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = build_config(args)
        commands = CommandMap.load(args.commands) if args.commands else CommandMap()
    except (JournalWatchError, ValueError) as e:
        logger.error(str(e))
        return 1

    logger.info(f"Using: {config.journal_dir}")
    for name in sorted(config.event_filter):
        logger.info(f"Filter: {name}")

    shutdown = Shutdown()
    GracefulShutdown(shutdown)

    runner = CommandRunner(shutdown)
    handler = RecordHandler(commands, runner)

    with JournalWatcher(config, shutdown) as watcher:
        try:
            watcher.start_async()
        except SetupError as e:
            logger.error(str(e))
            return 1

        if len(commands):
            runner.start()

        for record in watcher.iter_records():
            try:
                handler.handle(record)
            except ShutdownError:
                break

    runner.join()

    if isinstance(shutdown.cause, SetupError):
        logger.error(f"Setup failed: {shutdown.cause}")
        return 1
    logger.info("done...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
