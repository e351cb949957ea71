"""MCP lifecycle management.

Handles the initialize/initialized handshake and tracks connection state.
The state is shared by every transport worker, so transitions are guarded
by a lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# Protocol version advertised in every initialize result
MCP_PROTOCOL_VERSION = "2024-11-05"

# Method names accepted for the "client is ready" notification
INITIALIZED_METHODS = frozenset({"initialized", "notifications/initialized"})


class LifecycleState(Enum):
    """MCP connection lifecycle states."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class ProtocolError(Exception):
    """Raised when protocol constraints are violated."""

    pass


@dataclass
class LifecycleManager:
    """Manages MCP connection lifecycle.

    ``initialize`` may be called in any state and always answers with the
    same result. The ``initialized`` notification is what makes the server
    ready; until then every other method is rejected.
    """

    server_info: dict[str, str] = field(
        default_factory=lambda: {"name": "mcp-local-server", "version": "1.0.0"}
    )
    capabilities: dict[str, Any] = field(default_factory=lambda: {"tools": {}, "resources": {}})
    state: LifecycleState = LifecycleState.UNINITIALIZED
    client_info: dict[str, str] | None = None
    client_capabilities: dict[str, Any] | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_ready(self) -> bool:
        """Check if the connection is ready for operations."""
        return self.state == LifecycleState.READY

    @property
    def connected_client(self) -> dict[str, str] | None:
        """Get information about the connected client.

        Returns:
            Client info dict with 'name' and 'version', or None if not initialized.
        """
        return self.client_info

    def require_ready(self) -> None:
        """Assert that the connection is ready.

        Raises:
            ProtocolError: If the initialized notification has not arrived yet.
        """
        if self.state != LifecycleState.READY:
            raise ProtocolError("Server not initialized")

    def handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle initialize request.

        Args:
            params: Initialize request parameters.

        Returns:
            Initialize response result.
        """
        with self._lock:
            self.client_info = params.get("clientInfo")
            self.client_capabilities = params.get("capabilities") or {}
            if self.state == LifecycleState.UNINITIALIZED:
                self.state = LifecycleState.INITIALIZING

        requested = params.get("protocolVersion")
        if requested and requested != MCP_PROTOCOL_VERSION:
            logger.info(
                "Client requested protocol %s, answering with %s", requested, MCP_PROTOCOL_VERSION
            )

        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": self.capabilities,
            "serverInfo": self.server_info,
        }

    def handle_initialized(self) -> LifecycleState:
        """Handle initialized notification.

        Returns:
            The state the connection was in before the transition.
        """
        with self._lock:
            previous = self.state
            self.state = LifecycleState.READY

        if previous == LifecycleState.UNINITIALIZED:
            logger.warning("Received initialized before initialize")
        elif previous == LifecycleState.INITIALIZING:
            logger.info("MCP server initialized")
        return previous
