"""Plugin system for MCP tools and resources."""

from mcp_local_server.plugins.base import PluginBase, ResourceDefinition, ToolDefinition
from mcp_local_server.plugins.builtin import BuiltinPlugin
from mcp_local_server.plugins.registry import (
    CapabilityRegistry,
    RegistryError,
    ResourceNotFoundError,
    ResourceReadError,
    ToolExecutionError,
    ToolNotFoundError,
)
from mcp_local_server.plugins.web import WebAnalyzerPlugin

__all__ = [
    "BuiltinPlugin",
    "CapabilityRegistry",
    "PluginBase",
    "RegistryError",
    "ResourceDefinition",
    "ResourceNotFoundError",
    "ResourceReadError",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolNotFoundError",
    "WebAnalyzerPlugin",
]
