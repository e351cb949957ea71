"""STDIO transport layer for MCP communication.

Reads and writes JSON-RPC messages over stdin/stdout using MCP stdio framing.
One message per line in both directions; diagnostics go to the logging
system (stderr), never to stdout.
"""

from __future__ import annotations

import io
import logging
import queue
import sys
import threading
from typing import TYPE_CHECKING, TextIO

from mcp_local_server.protocol.jsonrpc import INTERNAL_ERROR, format_error, is_request

if TYPE_CHECKING:
    from mcp_local_server.server import MCPServer

logger = logging.getLogger(__name__)

# Queued by stop(); races the next line read from stdin
_STOP = object()


class StdioTransport:
    """STDIO transport for MCP communication.

    Reads JSON-RPC messages from stdin and writes responses to stdout.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            stdin: Input stream (defaults to sys.stdin).
            stdout: Output stream (defaults to sys.stdout).
        """
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout

    @classmethod
    def from_process_streams(cls) -> StdioTransport:
        """Create a transport over the process's binary stdin/stdout.

        Input is decoded as UTF-8 and tolerates a leading byte-order mark;
        output is UTF-8 without one, with ``\\n`` line endings.
        """
        stdin = io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8-sig", errors="replace")
        stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", newline="\n")
        return cls(stdin=stdin, stdout=stdout)

    def read_message(self) -> str | None:
        """Read a message from stdin.

        Reads lines until a non-empty line is found.

        Returns:
            Message string (stripped), or None on EOF.
        """
        while True:
            try:
                line = self._stdin.readline()
            except (OSError, ValueError) as e:
                logger.error("Error reading stdin: %s", e)
                return None

            if not line:  # EOF
                return None

            line = line.strip()
            if line:  # Skip empty lines
                return line

    def write_message(self, message: str) -> None:
        """Write a message to stdout.

        Args:
            message: JSON string to write.
        """
        self._stdout.write(message + "\n")
        self._stdout.flush()


class StdioServer:
    """Read-dispatch-write loop over a ``StdioTransport``.

    Messages are dispatched one at a time, in order, on the thread that
    calls ``serve``. A daemon reader thread performs the blocking reads so
    that ``stop`` can interrupt a read that would otherwise never return;
    it reads at most one line ahead of the dispatcher.
    """

    def __init__(self, server: MCPServer, transport: StdioTransport | None = None) -> None:
        """Initialize the loop.

        Args:
            server: Dispatcher for incoming messages.
            transport: Line transport (defaults to the process streams).
        """
        self._server = server
        self._transport = transport or StdioTransport.from_process_streams()
        self._inbox: queue.Queue[object] = queue.Queue()
        self._credit = threading.Semaphore(1)
        self._stopped = threading.Event()

    def stop(self) -> None:
        """Ask the loop to exit. Safe to call from any thread, more than once."""
        if not self._stopped.is_set():
            self._stopped.set()
            self._inbox.put(_STOP)

    def _pump(self) -> None:
        while not self._stopped.is_set():
            self._credit.acquire()
            message = self._transport.read_message()
            self._inbox.put(message)
            if message is None:
                return

    def serve(self) -> None:
        """Run until end-of-input, ``stop``, or loss of the output stream."""
        reader = threading.Thread(target=self._pump, name="stdio-reader", daemon=True)
        reader.start()
        logger.info("STDIO transport started")

        while True:
            item = self._inbox.get()
            if item is _STOP:
                logger.info("Stop requested, shutting down")
                break
            if item is None:
                logger.info("EOF received, shutting down")
                break

            try:
                if not self._process(item):
                    break
            finally:
                self._credit.release()

        self._stopped.set()

    def _process(self, message: str) -> bool:
        """Dispatch one line and write the reply.

        Returns:
            False when the output stream is gone and the loop should end.
        """
        try:
            response = self._server.handle_message(message)
        except Exception as e:
            logger.exception("Error processing STDIO message")
            if not is_request(message):
                return True
            response = format_error(None, INTERNAL_ERROR, str(e) or type(e).__name__)

        if response is None:
            return True

        try:
            self._transport.write_message(response)
        except (BrokenPipeError, ConnectionResetError, ValueError) as e:
            # Broken pipe or closed file: nobody is reading any more
            logger.info("Output stream closed: %s", e)
            return False
        except OSError as e:
            logger.error("Error writing response: %s", e)
        return True
