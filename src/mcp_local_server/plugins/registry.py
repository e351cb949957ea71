"""Capability registry - routes tool calls and resource reads to plugins.

The registry is built once from the startup plugin list and is read-only
afterwards, so lookups from concurrent transport workers need no locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from mcp_local_server.plugins.base import PluginBase, ResourceDefinition, ToolDefinition

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when plugins cannot be assembled into a registry."""

    pass


class ToolNotFoundError(Exception):
    """Raised when a tool is not found."""

    pass


class ToolExecutionError(Exception):
    """Raised when a tool fails to execute."""

    pass


class ResourceNotFoundError(Exception):
    """Raised when a resource is not found."""

    pass


class ResourceReadError(Exception):
    """Raised when a resource fails to read."""

    pass


class CapabilityRegistry:
    """Immutable index of the tools and resources offered by plugins.

    Tool names and resource URIs are unique keys; a duplicate is a startup
    error rather than a silent override.
    """

    def __init__(self, plugins: Iterable[PluginBase] = ()) -> None:
        """Build the registry.

        Args:
            plugins: Plugins to index, in listing order.

        Raises:
            RegistryError: If two plugins claim the same tool name or URI.
        """
        self._plugins: tuple[PluginBase, ...] = tuple(plugins)

        tools: dict[str, tuple[ToolDefinition, PluginBase]] = {}
        resources: dict[str, tuple[ResourceDefinition, PluginBase]] = {}

        for plugin in self._plugins:
            for tool in plugin.get_tools():
                if tool.name in tools:
                    owner = tools[tool.name][1].name
                    raise RegistryError(
                        f"Tool '{tool.name}' from plugin '{plugin.name}' "
                        f"is already provided by '{owner}'"
                    )
                tools[tool.name] = (tool, plugin)
            for resource in plugin.get_resources():
                if resource.uri in resources:
                    owner = resources[resource.uri][1].name
                    raise RegistryError(
                        f"Resource '{resource.uri}' from plugin '{plugin.name}' "
                        f"is already provided by '{owner}'"
                    )
                resources[resource.uri] = (resource, plugin)

        self._tools: Mapping[str, tuple[ToolDefinition, PluginBase]] = MappingProxyType(tools)
        self._resources: Mapping[str, tuple[ResourceDefinition, PluginBase]] = MappingProxyType(
            resources
        )
        logger.debug(
            "Registry built: %d plugins, %d tools, %d resources",
            len(self._plugins),
            len(tools),
            len(resources),
        )

    @property
    def plugins(self) -> tuple[PluginBase, ...]:
        """Registered plugins."""
        return self._plugins

    @property
    def tool_names(self) -> list[str]:
        """Names of all registered tools."""
        return list(self._tools)

    @property
    def resource_uris(self) -> list[str]:
        """URIs of all registered resources."""
        return list(self._resources)

    def list_tools(self) -> list[dict[str, Any]]:
        """List all available tools in MCP format.

        Returns:
            List of tool definitions in MCP format.
        """
        return [tool.to_dict() for tool, _ in self._tools.values()]

    def list_resources(self) -> list[dict[str, Any]]:
        """List all available resources in MCP format.

        Returns:
            List of resource definitions in MCP format.
        """
        return [resource.to_dict() for resource, _ in self._resources.values()]

    def get_resource(self, uri: str) -> ResourceDefinition | None:
        """Get the definition of a registered resource, or None."""
        entry = self._resources.get(uri)
        return entry[0] if entry else None

    def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Call a tool by name.

        Args:
            tool_name: Name of the tool to call.
            arguments: Arguments to pass to the tool.

        Returns:
            Text result of the tool execution.

        Raises:
            ToolNotFoundError: If the tool is not registered.
            ToolExecutionError: If the tool fails to execute.
        """
        entry = self._tools.get(tool_name)
        if entry is None:
            raise ToolNotFoundError(f"Tool not found: {tool_name}")

        plugin = entry[1]
        try:
            result = plugin.execute(tool_name, arguments)
        except Exception as e:
            logger.warning("Tool %s failed: %s", tool_name, e)
            raise ToolExecutionError(str(e) or type(e).__name__) from e
        return result if isinstance(result, str) else str(result)

    def read_resource(self, uri: str) -> str:
        """Read a resource by URI.

        Args:
            uri: URI of the resource.

        Returns:
            Text content of the resource.

        Raises:
            ResourceNotFoundError: If the resource is not registered.
            ResourceReadError: If the plugin fails to read it.
        """
        entry = self._resources.get(uri)
        if entry is None:
            raise ResourceNotFoundError(f"Resource not found: {uri}")

        plugin = entry[1]
        try:
            content = plugin.read_resource(uri)
        except Exception as e:
            logger.warning("Resource %s failed: %s", uri, e)
            raise ResourceReadError(str(e) or type(e).__name__) from e
        return content if isinstance(content, str) else str(content)

    def get_tool_schema(self, tool_name: str) -> dict[str, Any] | None:
        """Get the input schema for a tool.

        Args:
            tool_name: Name of the tool.

        Returns:
            Input schema dict or None if tool not found.
        """
        entry = self._tools.get(tool_name)
        if entry is None:
            return None
        return entry[0].input_schema

    def close(self) -> None:
        """Close all registered plugins.

        Errors from one plugin are logged and do not prevent the others
        from being closed.
        """
        for plugin in self._plugins:
            try:
                plugin.close()
            except Exception:
                logger.exception("Error closing plugin %s", plugin.name)
