"""Streamable HTTP transport for MCP communication.

``POST <path>`` submits one JSON-RPC message. The reply comes back as a
JSON body (202), or, when the client accepts ``text/event-stream`` and the
message was a request, as the first event of an SSE stream on the same
response. ``GET <path>`` opens an SSE stream for a session.

The listener is a ``ThreadingHTTPServer``: every connection gets its own
thread and there is no upper bound on their number. SSE streams hold their
thread for as long as they stay open, so a production deployment needs a
connection limit in front of this server.
"""

from __future__ import annotations

import logging
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from mcp_local_server.config import LOOPBACK_HOSTS, HttpConfig
from mcp_local_server.protocol.jsonrpc import is_request
from mcp_local_server.protocol.sse import SessionManager

if TYPE_CHECKING:
    from mcp_local_server.server import MCPServer

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
LAST_EVENT_ID_HEADER = "Last-Event-ID"
ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Accept, Origin, Mcp-Session-Id, Last-Event-ID"
EVENT_STREAM = "text/event-stream"

_MAX_CHUNK_LINE_BYTES = 1024


class RequestBodyTooLarge(ValueError):
    """Raised when a request body exceeds the configured limit."""

    pass


class _Listener(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], transport: StreamableHttpServer) -> None:
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        self.transport = transport
        super().__init__(address, McpRequestHandler)

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.exception("Unhandled error serving %s", client_address)


class McpRequestHandler(BaseHTTPRequestHandler):
    """Handles one HTTP request against the MCP endpoint."""

    server_version = "mcp-local-server/1.0"
    server: _Listener

    _response_started = False

    @property
    def transport(self) -> StreamableHttpServer:
        return self.server.transport

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)

    def send_response(self, code: int, message: str | None = None) -> None:
        self._response_started = True
        super().send_response(code, message)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self._run(self._handle_options)

    def do_POST(self) -> None:  # noqa: N802
        self._run(self._handle_post)

    def do_GET(self) -> None:  # noqa: N802
        self._run(self._handle_get)

    def do_PUT(self) -> None:  # noqa: N802
        self._run(self._handle_not_allowed)

    do_DELETE = do_PUT  # noqa: N815
    do_PATCH = do_PUT  # noqa: N815
    do_HEAD = do_PUT  # noqa: N815

    def _run(self, handler: Any) -> None:
        """Validate path and origin, then run ``handler``; faults become 500."""
        try:
            if not self.transport.matches_path(self.path):
                self._reject(404)
                return

            origin = self.headers.get("Origin")
            if origin and not self.transport.is_allowed_origin(origin):
                logger.warning("Rejected request from origin %s", origin)
                self._reject(403)
                return

            handler()
        except Exception:
            logger.exception("Error handling HTTP %s %s", self.command, self.path)
            if self._response_started:
                return
            try:
                self._send_body(500, b"")
            except OSError as e:
                logger.debug("Could not send 500 response: %s", e)

    def _send_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Credentials", "false")
        self.send_header("Access-Control-Expose-Headers", SESSION_HEADER)

    def _send_body(
        self,
        code: int,
        body: bytes,
        content_type: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.send_response(code)
        self._send_cors_headers()
        if content_type:
            self.send_header("Content-Type", content_type)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def _reject(self, code: int, headers: dict[str, str] | None = None) -> None:
        """Send an empty error response after consuming a small declared body.

        Unread input makes closing the socket send a reset.
        """
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if 0 < length <= self.transport.config.max_body_bytes:
            self.rfile.read(length)
        self._send_body(code, b"", headers=headers)

    def _read_chunked(self, limit: int) -> bytes:
        body = bytearray()
        while True:
            line = self.rfile.readline(_MAX_CHUNK_LINE_BYTES + 2)
            if not line:
                raise ValueError("Unexpected EOF while reading chunked request body")
            if len(line) > _MAX_CHUNK_LINE_BYTES + 1 and not line.endswith(b"\n"):
                raise ValueError("Chunk size line too long")

            size_token = line.strip().split(b";", 1)[0].strip()
            try:
                chunk_size = int(size_token, 16)
            except ValueError as exc:
                raise ValueError("Invalid chunk size") from exc

            if chunk_size == 0:
                while True:
                    trailer = self.rfile.readline(_MAX_CHUNK_LINE_BYTES + 2)
                    if not trailer or trailer in (b"\r\n", b"\n"):
                        break
                break

            if len(body) + chunk_size > limit:
                raise RequestBodyTooLarge("Request body too large")

            chunk = self.rfile.read(chunk_size)
            if len(chunk) != chunk_size:
                raise ValueError("Unexpected EOF while reading chunk data")
            body.extend(chunk)

            terminator = self.rfile.readline(2)
            if terminator not in (b"\r\n", b"\n"):
                raise ValueError("Invalid chunk terminator")

        return bytes(body)

    def _read_body(self) -> bytes:
        limit = self.transport.config.max_body_bytes
        transfer_encoding = str(self.headers.get("Transfer-Encoding") or "").lower()
        if "chunked" in transfer_encoding:
            return self._read_chunked(limit)

        length_raw = self.headers.get("Content-Length")
        if not length_raw:
            return b""
        try:
            length = int(length_raw)
        except ValueError as exc:
            raise ValueError("Invalid Content-Length header") from exc
        if length < 0:
            raise ValueError("Invalid Content-Length header")
        if length > limit:
            raise RequestBodyTooLarge("Request body too large")
        return self.rfile.read(length) if length else b""

    def _accepts_event_stream(self) -> bool:
        return EVENT_STREAM in str(self.headers.get("Accept") or "").lower()

    def _handle_options(self) -> None:
        self._send_body(
            200,
            b"",
            headers={
                "Access-Control-Allow-Methods": ALLOWED_METHODS,
                "Access-Control-Allow-Headers": ALLOWED_HEADERS,
                "Access-Control-Max-Age": "600",
            },
        )

    def _handle_not_allowed(self) -> None:
        self._reject(405, {"Allow": ALLOWED_METHODS})

    def _handle_post(self) -> None:
        try:
            raw = self._read_body()
        except RequestBodyTooLarge as e:
            logger.warning("Rejected POST body: %s", e)
            self._send_body(413, b"")
            return
        except ValueError as e:
            logger.warning("Malformed POST body: %s", e)
            self._send_body(400, b"")
            return

        body = raw.decode("utf-8", errors="replace")
        if not body.strip():
            self._send_body(400, b"")
            return

        session_id = self.headers.get(SESSION_HEADER) or None
        response = self.transport.mcp.handle_message(body)

        if self._accepts_event_stream() and is_request(body):
            self._stream(session_id, response)
            return

        payload = (response or "").encode("utf-8")
        headers = {SESSION_HEADER: session_id} if session_id else None
        self._send_body(202, payload, "application/json", headers)

    def _handle_get(self) -> None:
        session_id = self.headers.get(SESSION_HEADER) or None
        last_event_id = self.headers.get(LAST_EVENT_ID_HEADER)
        if last_event_id:
            # Accepted for compatibility; missed events are not replayed
            logger.info(
                "Session %s resuming after event %s (no replay)", session_id, last_event_id
            )
        self._stream(session_id, None)

    def _stream(self, session_id: str | None, initial_message: str | None) -> None:
        """Turn this response into an SSE stream and hold it open."""
        transport = self.transport
        session_id = session_id or SessionManager.new_session_id()

        self.send_response(200)
        self._send_cors_headers()
        self.send_header("Content-Type", EVENT_STREAM)
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "keep-alive")
        self.send_header(SESSION_HEADER, session_id)
        self.end_headers()
        # The stream ends by closing the socket
        self.close_connection = True

        connection = transport.sessions.open(self.wfile, session_id)
        logger.info("SSE stream opened for session %s", session_id)
        try:
            if initial_message:
                connection.send_message(initial_message)
            connection.keep_alive(transport.config.keepalive_interval, transport.stop_event)
        finally:
            transport.sessions.remove(connection)
            connection.close()
            logger.info("SSE stream closed for session %s", session_id)


class StreamableHttpServer:
    """HTTP listener serving one MCP endpoint path.

    ``serve_forever`` runs the accept loop on the calling thread; ``stop``
    must be called from another thread (a signal handler should hand it to
    a helper thread).
    """

    def __init__(
        self,
        server: MCPServer,
        config: HttpConfig | None = None,
        sessions: SessionManager | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            server: Dispatcher for incoming messages.
            config: Listener settings.
            sessions: Session table (a fresh one if omitted).
        """
        self._server = server
        self._config = config or HttpConfig()
        self._sessions = sessions or SessionManager()
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._listener: _Listener | None = None
        self._serving = False

    @property
    def mcp(self) -> MCPServer:
        return self._server

    @property
    def config(self) -> HttpConfig:
        return self._config

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def server_address(self) -> tuple[str, int]:
        """Bound ``(host, port)``; binds the listener if needed."""
        self.bind()
        assert self._listener is not None
        host, port = self._listener.server_address[:2]
        return str(host), int(port)

    @property
    def url(self) -> str:
        host, port = self.server_address
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{port}{self._config.path}"

    def bind(self) -> None:
        """Create the listening socket (port 0 picks a free port)."""
        with self._lock:
            if self._listener is None:
                self._listener = _Listener((self._config.host, self._config.port), self)

    def matches_path(self, request_path: str) -> bool:
        """True if ``request_path`` (query ignored) is the endpoint path."""
        path = urlsplit(request_path).path
        return (path.rstrip("/") or "/") == (self._config.path.rstrip("/") or "/")

    def is_allowed_origin(self, origin: str) -> bool:
        """Apply the origin policy.

        Explicitly configured origins win (``"*"`` admits everything).
        Without them, a loopback listener admits only local origins and any
        other listener admits all. This keeps browsers on other sites away
        from a local server; it is not an authentication mechanism.
        """
        allowed = self._config.allowed_origins
        if allowed:
            return "*" in allowed or origin in allowed
        if self._config.is_loopback:
            try:
                parts = urlsplit(origin)
                hostname = parts.hostname
            except ValueError:
                return False
            return parts.scheme in ("http", "https") and hostname in LOOPBACK_HOSTS
        return True

    def send_to_session(self, session_id: str, message: str) -> bool:
        """Push a server-initiated message to a live session."""
        return self._sessions.send(session_id, message)

    def serve_forever(self, poll_interval: float = 0.5) -> None:
        """Run the accept loop until ``stop`` is called."""
        self.bind()
        with self._lock:
            if self._stop_event.is_set():
                return
            self._serving = True
        assert self._listener is not None

        logger.info("Streamable HTTP server started on %s", self.url)
        try:
            self._listener.serve_forever(poll_interval)
        finally:
            logger.info("Streamable HTTP accept loop exited")

    def stop(self) -> None:
        """Stop accepting, close every SSE stream and release the listener."""
        with self._lock:
            if self._stop_event.is_set():
                return
            self._stop_event.set()
            serving = self._serving
            listener = self._listener

        self._sessions.close_all()
        if listener is not None:
            if serving:
                listener.shutdown()
            listener.server_close()
        logger.info("Streamable HTTP server stopped")
