"""
=============================================================================
USERSVC - Command Line Entry Point
=============================================================================

Run the user service from the command line:

    DATABASE_URL=postgresql://localhost/users python -m usersvc
    DATABASE_URL=... python -m usersvc --port 9090 --log-level DEBUG

Startup is all-or-nothing. A missing DATABASE_URL, an unreachable store or
a failed schema initialization exits with status 1 before the listener
is bound.

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServiceConfig
from .server import create_server, setup_logging
from .users import StoreError


logger = logging.getLogger("usersvc")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usersvc",
        description="Minimal user record service over raw sockets, backed by PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  DATABASE_URL             PostgreSQL connection string (required)
  USERSVC_HOST/PORT        Listener address (default 0.0.0.0:8080)
  USERSVC_LOG_LEVEL        Logging level (default INFO)

Examples:
  DATABASE_URL=postgresql://localhost/users usersvc
  DATABASE_URL=postgresql://localhost/users usersvc --port 9090
        """
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: $USERSVC_HOST or 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: $USERSVC_PORT or 8080)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: $USERSVC_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"usersvc {__version__}"
    )

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ServiceConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level:
        config.log_level = args.log_level

    setup_logging(config.log_level)

    try:
        server = create_server(config)
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except StoreError as e:
        logger.critical(f"Failed to initialize database: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        server.repository.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
