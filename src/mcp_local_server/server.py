"""MCP Server - message dispatcher.

Integrates the codec, the lifecycle state machine and the capability
registry. Both transports feed raw messages into ``handle_message`` and
write back whatever it returns.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from mcp_local_server.plugins.registry import CapabilityRegistry
from mcp_local_server.protocol.handlers import ResourcesHandler, ToolsHandler
from mcp_local_server.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    format_error,
    format_response,
    parse_message,
)
from mcp_local_server.protocol.lifecycle import (
    INITIALIZED_METHODS,
    LifecycleManager,
    ProtocolError,
)

logger = logging.getLogger(__name__)

Route = Callable[[dict[str, Any]], dict[str, Any]]


class MCPServer:
    """MCP Server implementation.

    Provides a complete MCP server that handles:
    - Lifecycle management (initialize/initialized)
    - Tool listing and execution
    - Resource listing and reading

    ``handle_message`` may be called from several threads at once. The
    registry is immutable and the lifecycle guards its own state, so one
    slow tool only holds up the thread that called it.
    """

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        server_info: dict[str, str] | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            registry: Tools and resources to serve (empty if omitted).
            server_info: ``{"name", "version"}`` reported by initialize.
        """
        self._registry = registry or CapabilityRegistry()
        if server_info:
            self._lifecycle = LifecycleManager(server_info=dict(server_info))
        else:
            self._lifecycle = LifecycleManager()
        self._tools_handler = ToolsHandler(self._registry)
        self._resources_handler = ResourcesHandler(self._registry)

        self._routes: dict[str, Route] = {
            "tools/list": lambda params: self._tools_handler.handle_list().to_dict(),
            "tools/call": lambda params: self._tools_handler.handle_call(params).to_dict(),
            "resources/list": lambda params: self._resources_handler.handle_list().to_dict(),
            "resources/read": lambda params: self._resources_handler.handle_read(params).to_dict(),
        }

    @property
    def lifecycle(self) -> LifecycleManager:
        """Lifecycle state of the connection."""
        return self._lifecycle

    @property
    def registry(self) -> CapabilityRegistry:
        """Capability registry served by this server."""
        return self._registry

    def list_tools(self) -> list[dict[str, Any]]:
        """List all registered tools.

        Returns:
            List of tool definitions.
        """
        return self._registry.list_tools()

    def handle_message(self, raw_message: str) -> str | None:
        """Handle an incoming JSON-RPC message.

        Args:
            raw_message: Raw JSON-RPC message string.

        Returns:
            Response string or None for notifications.
        """
        try:
            message = parse_message(raw_message)
        except JsonRpcError as e:
            logger.debug("Rejected message: %s", e.message)
            return format_error(e.request_id, e.code, e.message, e.data)

        if isinstance(message, JsonRpcNotification):
            self._handle_notification(message)
            return None
        return self._handle_request(message)

    def _handle_notification(self, notification: JsonRpcNotification) -> None:
        """Handle a notification (no response, even on failure).

        Args:
            notification: The notification to handle.
        """
        try:
            if notification.method in INITIALIZED_METHODS:
                self._lifecycle.handle_initialized()
            else:
                logger.debug("Ignoring notification: %s", notification.method)
        except Exception:
            logger.exception("Error handling notification %s", notification.method)

    def _handle_request(self, request: JsonRpcRequest) -> str | None:
        """Handle a request and return response.

        Args:
            request: The request to handle.

        Returns:
            JSON-RPC response string, or None for a request-form initialized.
        """
        method = request.method
        params = request.params or {}
        msg_id = request.id

        # initialized never replies, whatever form it arrives in
        if method in INITIALIZED_METHODS:
            self._handle_notification(JsonRpcNotification(method=method, params=request.params))
            return None

        try:
            if method == "initialize":
                result = self._lifecycle.handle_initialize(params)
            else:
                self._lifecycle.require_ready()
                route = self._routes.get(method)
                if route is None:
                    raise JsonRpcError(METHOD_NOT_FOUND, f"Method not found: {method}")
                result = route(params)
        except ProtocolError as e:
            return format_error(msg_id, INVALID_REQUEST, str(e))
        except JsonRpcError as e:
            return format_error(msg_id, e.code, e.message, e.data)
        except Exception as e:
            logger.exception("Error handling %s", method)
            return format_error(msg_id, INTERNAL_ERROR, str(e) or type(e).__name__)

        return format_response(msg_id, result)

    def close(self) -> None:
        """Close the server and clean up resources."""
        self._registry.close()

    def __enter__(self) -> MCPServer:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
