"""Pytest configuration and shared fixtures."""

import json
import threading
from typing import Any

import pytest

from mcp_local_server.plugins.base import PluginBase, ResourceDefinition, ToolDefinition
from mcp_local_server.plugins.registry import CapabilityRegistry
from mcp_local_server.protocol.lifecycle import MCP_PROTOCOL_VERSION
from mcp_local_server.server import MCPServer


class StubPlugin(PluginBase):
    """Plugin with predictable tools and resources for protocol tests.

    ``slow`` blocks until ``release`` is set, so tests can hold a call in
    flight while others run.
    """

    def __init__(self) -> None:
        self.release = threading.Event()
        self.closed = False

    @property
    def name(self) -> str:
        return "stub"

    @property
    def version(self) -> str:
        return "1.0.0"

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="echo",
                description="Echoes input",
                input_schema={
                    "type": "object",
                    "properties": {"message": {"type": "string"}},
                    "required": ["message"],
                },
            ),
            ToolDefinition(name="fail", description="Always fails", input_schema={}),
            ToolDefinition(name="slow", description="Waits for release", input_schema={}),
        ]

    def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        if tool_name == "echo":
            return arguments["message"]
        if tool_name == "fail":
            raise RuntimeError("boom")
        if tool_name == "slow":
            self.release.wait(10)
            return "done"
        raise ValueError(f"Unknown tool: {tool_name}")

    def get_resources(self) -> list[ResourceDefinition]:
        return [
            ResourceDefinition(uri="note://hello", name="Hello", description="A greeting"),
            ResourceDefinition(
                uri="note://broken",
                name="Broken",
                description="Always fails to read",
                mime_type="application/json",
            ),
        ]

    def read_resource(self, uri: str) -> str:
        if uri == "note://hello":
            return "hello"
        if uri == "note://broken":
            raise OSError("disk gone")
        raise KeyError(uri)

    def close(self) -> None:
        self.closed = True


def rpc(method: str, params: dict[str, Any] | None = None, msg_id: Any = 1) -> str:
    """Build a JSON-RPC request line."""
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def notify(method: str, params: dict[str, Any] | None = None) -> str:
    """Build a JSON-RPC notification line."""
    message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


INITIALIZE_PARAMS = {
    "protocolVersion": MCP_PROTOCOL_VERSION,
    "capabilities": {},
    "clientInfo": {"name": "test-client", "version": "1.0"},
}


@pytest.fixture
def stub_plugin() -> StubPlugin:
    """Create a stub plugin."""
    plugin = StubPlugin()
    yield plugin
    plugin.release.set()


@pytest.fixture
def registry(stub_plugin: StubPlugin) -> CapabilityRegistry:
    """Create a registry holding the stub plugin."""
    return CapabilityRegistry([stub_plugin])


@pytest.fixture
def server(registry: CapabilityRegistry) -> MCPServer:
    """Create a server that has not been initialized."""
    return MCPServer(registry, server_info={"name": "test-server", "version": "9.9.9"})


@pytest.fixture
def initialized_server(server: MCPServer) -> MCPServer:
    """Create a server that completed the initialize handshake."""
    server.handle_message(rpc("initialize", INITIALIZE_PARAMS))
    server.handle_message(notify("notifications/initialized"))
    return server
