"""Command-line entry point.

Usage:
    python -m icy_relay [OPTIONS]

Options:
    --settings PATH      Settings file (default: settings.json, created on first start)
    --station-url URL    Override the station URL
    --local-url URL      Override the local listen URL
    --title-file PATH    Override the title file path
    --log-level LEVEL    Override the log level
    --log-path DIR       Write a rotating JSON log to DIR

Examples:
    # First start writes settings.json with defaults and exits
    python -m icy_relay

    # Relay another station for one run
    python -m icy_relay --station-url http://example.com:8000/stream
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import replace
from typing import List, Optional

from .config import SETTINGS_FILE_NAME, Config
from .logging_setup import setup_logging
from .server import RelayServer, RelayStartupError

logger = logging.getLogger("icy_relay")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="icy_relay",
        description="Relay an internet radio station to localhost and publish the current track title",
    )
    parser.add_argument("--settings", default=SETTINGS_FILE_NAME, help="Settings file path")
    parser.add_argument("--station-url", help="Station stream URL")
    parser.add_argument("--local-url", help="Local listen URL, e.g. http://localhost:51111/")
    parser.add_argument("--title-file", help="File receiving the current track title")
    parser.add_argument("--log-level", help="Logging level")
    parser.add_argument("--log-path", help="Directory for the JSON log file")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Build the configuration from file, environment and command line.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    config = Config.from_env(Config.from_file(args.settings))

    overrides = {
        "station_url": args.station_url,
        "local_url": args.local_url,
        "title_file_path": args.title_file,
        "log_level": args.log_level.upper() if args.log_level else None,
        "log_path": args.log_path,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    config.validate()
    return config


async def run(config: Config) -> None:
    """Serve until SIGINT/SIGTERM, then shut the server down."""
    server = RelayServer(config)
    server.publisher.ensure_directory()

    loop = asyncio.get_running_loop()
    shutdown_tasks = set()

    def request_shutdown() -> None:
        task = asyncio.ensure_future(server.shutdown())
        shutdown_tasks.add(task)
        task.add_done_callback(shutdown_tasks.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except (NotImplementedError, RuntimeError):
            # Windows: KeyboardInterrupt cancels the main task instead.
            pass

    try:
        await server.serve_forever()
    finally:
        await server.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_path)

    try:
        asyncio.run(run(config))
    except RelayStartupError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
