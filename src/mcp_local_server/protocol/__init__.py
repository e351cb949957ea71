"""MCP Protocol layer for JSON-RPC communication."""

from mcp_local_server.protocol.jsonrpc import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    format_error,
    format_notification,
    format_response,
    is_request,
    parse_message,
)
from mcp_local_server.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    LifecycleManager,
    LifecycleState,
    ProtocolError,
)
from mcp_local_server.protocol.sse import EventIdCounter, SessionManager, SseConnection
from mcp_local_server.protocol.streamable_http import StreamableHttpServer
from mcp_local_server.protocol.transport import StdioServer, StdioTransport

__all__ = [
    "EventIdCounter",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "LifecycleManager",
    "LifecycleState",
    "MCP_PROTOCOL_VERSION",
    "ProtocolError",
    "SessionManager",
    "SseConnection",
    "StdioServer",
    "StdioTransport",
    "StreamableHttpServer",
    "format_error",
    "format_notification",
    "format_response",
    "is_request",
    "parse_message",
]
