"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

    python -m chatserver [BIND_ADDRESS] [options]

                ▲
                └── Looks for chatserver/__main__.py

1. Read configuration from the environment (CHAT_* variables)
2. Apply command-line overrides on top
3. Bind and serve; a bind failure exits with status 1

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServerConfig, parse_bind_address
from .server import ChatServer


logger = logging.getLogger("chatserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatserver",
        description="Rusty chat server: a tiny concurrent HTTP chat endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m chatserver                          # 127.0.0.1:8080 (or CHAT_HOST/CHAT_PORT)
  python -m chatserver 0.0.0.0:80               # All interfaces, port 80
  python -m chatserver --max-connections 0      # No concurrency ceiling
  python -m chatserver -l DEBUG --log-format json
        """,
    )

    parser.add_argument(
        "bind",
        nargs="?",
        default=None,
        help="Address to listen on as host:port (default: from environment, else 127.0.0.1:8080)",
    )
    parser.add_argument(
        "--max-connections", "-c",
        type=int,
        default=None,
        help="Connections handled at once, 0 = unbounded (default: 256)",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Per-connection deadline in seconds (default: 30)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"chatserver {__version__}",
    )
    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then anything given on the command line."""
    config = ServerConfig.from_env()

    if args.bind:
        config.host, config.port = parse_bind_address(args.bind)
    if args.max_connections is not None:
        config.max_connections = args.max_connections or None
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        server = ChatServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        server.run(banner=True)
    except OSError as e:
        logger.error(f"Could not start server on {config.bind_address}: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
