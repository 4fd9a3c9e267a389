"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

    # Serve the current directory on localhost:3000
    python -m staticserver

    # Another directory, another port, reachable from the LAN
    static-http-server -d ./public -p 8080 -s 0.0.0.0

    # Fake a JSON API under /mock/
    static-http-server --echo-mock
    static-http-server --mock myproject.fake_api:handler

Options not given on the command line fall back to HTTP_* environment
variables (see ServerConfig.from_env), then to the defaults.

=============================================================================
"""

import argparse
import importlib
import inspect
import sys
from typing import Any, List, Optional

from . import __version__
from .config import ServerConfig
from .pipeline import EchoMockHandler, as_mock_handler
from .server import HTTPServer


def load_mock_handler(spec: str) -> Any:
    """
    Import a mock handler from a "module:attribute" string.

    A class is instantiated without arguments; anything else must be
    callable.

    Raises:
        ValueError: Malformed spec or missing attribute.
        ImportError: Module cannot be imported.
        TypeError: Attribute is not usable as a handler.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected MODULE:ATTR, got {spec!r}")

    module = importlib.import_module(module_name)
    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module {module_name!r} has no attribute {attr!r}") from None

    if inspect.isclass(obj):
        obj = obj()
    return as_mock_handler(obj)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="static-http-server",
        description="Static file server with caching, compression, CORS and mock APIs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to listen on (default: 3000)"
    )
    parser.add_argument(
        "-s", "--host",
        default=None,
        help="Host to bind to (default: localhost, use 0.0.0.0 for LAN access)"
    )
    parser.add_argument(
        "--port-retries",
        type=int,
        default=10,
        metavar="N",
        help="Try up to N following ports if the port is in use (default: 10)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "-d", "--directory",
        default=None,
        help="Directory to serve (default: current directory)"
    )
    mock = parser.add_mutually_exclusive_group()
    mock.add_argument(
        "--mock",
        metavar="MODULE:ATTR",
        default=None,
        help="Mock handler answering requests under /mock/"
    )
    mock.add_argument(
        "--echo-mock",
        action="store_true",
        help="Answer /mock/user by echoing query and body as JSON"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE AND LOGGING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "-w", "--workers",
        type=int,
        default=None,
        help="Worker threads to start with; up to twice as many under load (default: 4)"
    )
    parser.add_argument(
        "-l", "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    overrides = {
        "port_retries": args.port_retries,
        "log_format": args.log_format,
    }
    if args.port is not None:
        overrides["port"] = args.port
    if args.host is not None:
        overrides["host"] = args.host
    if args.directory is not None:
        overrides["root_directory"] = args.directory
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.workers is not None:
        overrides["min_workers"] = args.workers
        overrides["max_workers"] = args.workers * 2
    return ServerConfig.from_env(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    mock_handler = None
    if args.echo_mock:
        mock_handler = EchoMockHandler(prefix=config.mock_prefix)
    elif args.mock:
        try:
            mock_handler = load_mock_handler(args.mock)
        except (ImportError, ValueError, TypeError) as e:
            parser.error(f"--mock: {e}")

    try:
        server = HTTPServer(config, mock_handler=mock_handler)
    except ValueError as e:
        parser.error(str(e))

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
