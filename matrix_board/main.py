#!/usr/bin/env python3
"""
Matrix Board Server - Main Application Entry Point

Acts as an interface between the 9x34 LED matrix module and applet programs.

    matrix-board [-t] [-p PORT] [-f FRAMERATE] [-c CONFIG] [--mock]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import (
    BoardConfig,
    DEFAULT_FRAMERATE,
    DEFAULT_PORT,
    default_config,
    load_from_toml,
)
from .server_app import ServerApp

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matrix-board",
        description="LED matrix controller: composites applet clients onto the 9x34 panel",
    )
    parser.add_argument(
        "-t", "--test", action="store_true", help="Run a frame test and exit"
    )
    parser.add_argument(
        "-p", "--port", type=int, help=f"Port to listen on (default {DEFAULT_PORT})"
    )
    parser.add_argument(
        "-f",
        "--framerate",
        type=float,
        help=f"Refresh rate in fps, 0 for unpaced (default {DEFAULT_FRAMERATE:g})",
    )
    parser.add_argument("--host", help="Address to listen on (default 127.0.0.1)")
    parser.add_argument("-c", "--config", help="Path to configuration file")
    parser.add_argument(
        "--mock", action="store_true", help="Use the mock LED matrix driver"
    )
    parser.add_argument(
        "--status-port", type=int, help="Enable the status API on this port"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> BoardConfig:
    """Load the config file (if any) and apply command-line overrides."""
    if args.config:
        cfg = load_from_toml(args.config)
    elif Path("config.toml").exists():
        cfg = load_from_toml("config.toml")
    else:
        cfg = default_config()

    return cfg.with_overrides(
        host=args.host,
        port=args.port,
        framerate=args.framerate,
        mock=args.mock,
        status_port=args.status_port,
    )


async def run_server(config: BoardConfig, test: bool = False) -> None:
    """Run the frame test or serve applets until stopped."""
    app = ServerApp(config=config)
    if test:
        await app.run_frame_test()
        return
    await app.run()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT
    )

    try:
        config = config_from_args(args)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        asyncio.run(run_server(config, test=args.test))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
