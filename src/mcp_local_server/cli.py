"""Command-line entry point.

Loads the configuration, builds the plugin registry and runs the selected
transport until end-of-input (stdio) or a termination signal.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

from mcp_local_server import __version__
from mcp_local_server.config import (
    LOG_LEVELS,
    TRANSPORTS,
    ConfigLoadError,
    ServerConfig,
    load_config,
)
from mcp_local_server.log import configure_logging
from mcp_local_server.plugins.builtin import BuiltinPlugin
from mcp_local_server.plugins.registry import CapabilityRegistry, RegistryError
from mcp_local_server.plugins.web import WebAnalyzerPlugin
from mcp_local_server.protocol.streamable_http import StreamableHttpServer
from mcp_local_server.protocol.transport import StdioServer
from mcp_local_server.server import MCPServer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-local-server",
        description="Local MCP server (JSON-RPC 2.0 over stdio or streamable HTTP)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to server YAML config (default: built-in defaults)",
    )
    parser.add_argument("--transport", "-t", choices=TRANSPORTS, help="Transport to serve")
    parser.add_argument("--host", help="HTTP bind host")
    parser.add_argument("--port", "-p", type=int, help="HTTP port (0 picks a free port)")
    parser.add_argument("--path", help="HTTP endpoint path")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="Log level")
    parser.add_argument("--log-file", help="Also write diagnostics to this file")
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"mcp-local-server {__version__}",
    )
    return parser


def apply_overrides(config: ServerConfig, args: argparse.Namespace) -> ServerConfig:
    """Overlay command-line values on the loaded configuration.

    Raises:
        ConfigLoadError: If the combined configuration is invalid.
    """
    if args.transport:
        config.transport = args.transport
    if args.host:
        config.http.host = args.host
    if args.port is not None:
        config.http.port = args.port
    if args.path:
        config.http.path = args.path
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_file:
        config.logging.file = args.log_file
    config.validate()
    return config


def build_registry() -> CapabilityRegistry:
    """Create the registry of plugins served by this process.

    New plugins are added to this list; their tools and resources appear in
    ``tools/list`` and ``resources/list`` automatically.
    """
    return CapabilityRegistry([BuiltinPlugin(), WebAnalyzerPlugin()])


def install_signal_handlers(stop: Callable[[], None]) -> None:
    """Route SIGINT and SIGTERM to ``stop``, run on a helper thread.

    The HTTP accept loop cannot be shut down from the thread running it,
    and a signal handler runs on that thread.
    """

    def handler(signum: int, frame: object) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        threading.Thread(target=stop, name="shutdown", daemon=True).start()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, handler)


def _serve_stdio(server: MCPServer) -> int:
    stdio = StdioServer(server)
    install_signal_handlers(stdio.stop)
    stdio.serve()
    return 0


def _serve_http(server: MCPServer, config: ServerConfig) -> int:
    http = StreamableHttpServer(server, config.http)
    try:
        http.bind()
    except OSError as e:
        logger.error("Cannot listen on %s:%s: %s", config.http.host, config.http.port, e)
        return 1

    install_signal_handlers(http.stop)
    try:
        http.serve_forever()
    finally:
        http.stop()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the MCP server.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config) if args.config else ServerConfig()
        apply_overrides(config, args)
    except ConfigLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        configure_logging(config.logging.numeric_level, config.logging.file or None)
    except OSError as e:
        print(f"Error opening log file: {e}", file=sys.stderr)
        return 1

    try:
        registry = build_registry()
    except RegistryError as e:
        logger.error("Error loading plugins: %s", e)
        return 1

    server = MCPServer(registry, server_info=config.server_info)
    logger.info(
        "%s %s starting (%s transport)",
        config.name,
        config.server_version,
        config.transport,
    )
    if args.config:
        logger.info("Config loaded from: %s", args.config)

    try:
        if config.transport == "http":
            return _serve_http(server, config)
        return _serve_stdio(server)
    finally:
        server.close()
        logger.info("Server stopped")
