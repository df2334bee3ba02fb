"""Command-line entry point for the relay server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Any

from term_relay.gateway import ConnectionGateway
from term_relay.logging.console import ConsoleSessionLogger
from term_relay.types import LoggingMode, RelayServerConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="term-relay",
        description="Relay browser terminal WebSockets to SSH servers.",
    )
    parser.add_argument("--host", help="address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="port to listen on (default: $PORT or 5001)")
    parser.add_argument("--path", help="WebSocket upgrade path (default: /ws/ssh)")
    parser.add_argument(
        "--connect-timeout",
        type=int,
        dest="connect_timeout_ms",
        metavar="MS",
        help="SSH connect timeout in milliseconds",
    )
    parser.add_argument(
        "--known-hosts",
        help="known_hosts file used to verify SSH host keys (default: no verification)",
    )
    parser.add_argument("--log-file", help="also append log records to this file")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="log per-frame traffic and debug output",
    )
    return parser


def config_from_args(
    args: argparse.Namespace,
    base: RelayServerConfig | None = None,
) -> RelayServerConfig:
    """Overlay command-line options on an environment-derived config."""
    config = base or RelayServerConfig.from_env()
    overrides: dict[str, Any] = {
        name: getattr(args, name)
        for name in ("host", "port", "path", "connect_timeout_ms", "known_hosts", "log_file")
        if getattr(args, name) is not None
    }
    if args.verbose:
        overrides["logging_mode"] = LoggingMode.VERBOSE
    return replace(config, **overrides)


def configure_logging(config: RelayServerConfig) -> list[logging.Handler]:
    """Attach stderr (and optional file) handlers to the root logger."""
    level = logging.DEBUG if config.logging_mode == LoggingMode.VERBOSE else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, mode="a", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    # asyncssh logs every channel and auth step at INFO
    logging.getLogger("asyncssh").setLevel(logging.WARNING)
    return handlers


def _log_uncaught(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    logger.error("Uncaught error: %s", context.get("message"), exc_info=exc)


async def run(config: RelayServerConfig) -> None:
    """Run the gateway until cancelled."""
    asyncio.get_running_loop().set_exception_handler(_log_uncaught)
    gateway = ConnectionGateway(config, events_logger=ConsoleSessionLogger(config.logging_mode))
    await gateway.serve_forever()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    configure_logging(config)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as exc:
        logger.error("Cannot start relay on port %s: %s", config.port, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
