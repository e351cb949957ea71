"""MCP tools/* and resources/* handlers.

Handles tool and resource requests, routing them through the capability
registry. Parameter problems and plugin failures are raised as
``JsonRpcError`` so the server can turn them into error responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mcp_local_server.plugins.registry import (
    CapabilityRegistry,
    ResourceNotFoundError,
    ResourceReadError,
    ToolExecutionError,
    ToolNotFoundError,
)
from mcp_local_server.protocol.jsonrpc import INTERNAL_ERROR, INVALID_PARAMS, JsonRpcError


@dataclass
class ToolsListResult:
    """Result of tools/list request."""

    tools: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        Returns:
            Dictionary in MCP tools/list result format.
        """
        return {"tools": self.tools}


@dataclass
class ToolsCallResult:
    """Result of tools/call request."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        Returns:
            Dictionary in MCP tools/call result format.
        """
        return {"content": [{"type": "text", "text": self.text}]}


@dataclass
class ResourcesListResult:
    """Result of resources/list request."""

    resources: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"resources": self.resources}


@dataclass
class ResourcesReadResult:
    """Result of resources/read request."""

    uri: str
    mime_type: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"contents": [{"uri": self.uri, "mimeType": self.mime_type, "text": self.text}]}


class ToolsHandler:
    """Handles tools/list and tools/call MCP requests."""

    def __init__(self, registry: CapabilityRegistry) -> None:
        """Initialize the handler.

        Args:
            registry: Capability registry for routing calls.
        """
        self._registry = registry

    def handle_list(self) -> ToolsListResult:
        """Handle tools/list request.

        Returns:
            ToolsListResult with all available tools.
        """
        return ToolsListResult(tools=self._registry.list_tools())

    def handle_call(self, params: dict[str, Any]) -> ToolsCallResult:
        """Handle tools/call request.

        Args:
            params: Request params with ``name`` and optional ``arguments``.

        Returns:
            ToolsCallResult wrapping the tool's text output.

        Raises:
            JsonRpcError: INVALID_PARAMS for a missing or unknown tool,
                INTERNAL_ERROR when the tool itself fails.
        """
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise JsonRpcError(INVALID_PARAMS, "Tool name is required")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "Tool arguments must be an object")

        try:
            text = self._registry.call_tool(name, arguments)
        except ToolNotFoundError as e:
            raise JsonRpcError(INVALID_PARAMS, str(e)) from e
        except ToolExecutionError as e:
            raise JsonRpcError(INTERNAL_ERROR, f"Tool execution failed: {e}") from e
        return ToolsCallResult(text=text)


class ResourcesHandler:
    """Handles resources/list and resources/read MCP requests."""

    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    def handle_list(self) -> ResourcesListResult:
        """Handle resources/list request."""
        return ResourcesListResult(resources=self._registry.list_resources())

    def handle_read(self, params: dict[str, Any]) -> ResourcesReadResult:
        """Handle resources/read request.

        Args:
            params: Request params with ``uri``.

        Returns:
            ResourcesReadResult with the resource's text content.

        Raises:
            JsonRpcError: INVALID_PARAMS for a missing or unknown URI,
                INTERNAL_ERROR when the read fails.
        """
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise JsonRpcError(INVALID_PARAMS, "Resource URI is required")

        try:
            text = self._registry.read_resource(uri)
        except ResourceNotFoundError as e:
            raise JsonRpcError(INVALID_PARAMS, str(e)) from e
        except ResourceReadError as e:
            raise JsonRpcError(INTERNAL_ERROR, f"Resource read failed: {e}") from e

        resource = self._registry.get_resource(uri)
        mime_type = resource.mime_type if resource else "text/plain"
        return ResourcesReadResult(uri=uri, mime_type=mime_type, text=text)
