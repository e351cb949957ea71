"""Plugin base class and data structures.

Defines the interface that all plugins must implement. The server never
looks inside a plugin: it lists the definitions a plugin returns and calls
``execute`` / ``read_resource`` with the client's arguments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool provided by a plugin."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP tool format.

        Returns:
            Dictionary in MCP tools/list format.
        """
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class ResourceDefinition:
    """Definition of a readable resource provided by a plugin."""

    uri: str
    name: str
    description: str
    mime_type: str = "text/plain"

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP resource format.

        Returns:
            Dictionary in MCP resources/list format.
        """
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


class PluginBase(ABC):
    """Abstract base class for all plugins.

    Plugins must implement this interface to provide tools
    to the MCP server. Resources are optional.

    ``execute`` and ``read_resource`` may be called from several threads at
    once when the HTTP transport is used; plugins that keep state must
    guard it themselves. Any exception they raise is reported to the client
    as an internal error.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the plugin identifier."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Return the plugin version."""
        pass

    @abstractmethod
    def get_tools(self) -> list[ToolDefinition]:
        """Return tool definitions provided by this plugin.

        Returns:
            List of ToolDefinition objects.
        """
        pass

    @abstractmethod
    def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments.

        Returns:
            Text result of the tool.
        """
        pass

    def get_resources(self) -> list[ResourceDefinition]:
        """Return resource definitions provided by this plugin."""
        return []

    def read_resource(self, uri: str) -> str:
        """Read a resource.

        Args:
            uri: URI of one of this plugin's resources.

        Returns:
            Text content of the resource.
        """
        raise KeyError(uri)

    def close(self) -> None:
        """Release any resources held by the plugin."""
        return None
