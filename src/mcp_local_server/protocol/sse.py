"""Server-Sent-Events framing, connections and session tracking.

An ``SseConnection`` writes events onto one HTTP response stream. The
``SessionManager`` owns the table of live connections keyed by session id
and the event-id counter they draw from.
"""

from __future__ import annotations

import logging
import re
import threading
import uuid
from typing import BinaryIO

logger = logging.getLogger(__name__)

# Seconds between keep-alive events on an idle stream
KEEPALIVE_INTERVAL = 30.0

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def format_event(event_type: str, data: str, event_id: int | str | None = None) -> str:
    """Frame one SSE event.

    Each line of ``data`` gets its own ``data:`` field so that no field
    contains a raw line break; the event ends with a blank line.

    Args:
        event_type: Value of the ``event:`` field.
        data: Event payload.
        event_id: Optional value of the ``id:`` field.

    Returns:
        The framed event text.
    """
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event_type}")
    for segment in _LINE_BREAK.split(data):
        lines.append(f"data: {segment}")
    return "\n".join(lines) + "\n\n"


class EventIdCounter:
    """Thread-safe, strictly increasing event id source starting at 1."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return the next event id."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def last(self) -> int:
        """The most recently issued id (0 if none)."""
        return self._value


class SseConnection:
    """One open SSE stream.

    Writes are serialised with a lock because the keep-alive loop and
    server-initiated messages can send from different threads. The first
    failed write closes the connection; later sends do nothing.
    """

    def __init__(self, sink: BinaryIO, session_id: str, event_ids: EventIdCounter) -> None:
        """Initialize the connection.

        Args:
            sink: Binary stream of the HTTP response body.
            session_id: Session this stream belongs to.
            event_ids: Shared source of event ids.
        """
        self._sink = sink
        self._session_id = session_id
        self._event_ids = event_ids
        self._write_lock = threading.Lock()
        self._closed = threading.Event()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_open(self) -> bool:
        return not self._closed.is_set()

    def send_event(self, event_type: str, data: str, event_id: int | str | None = None) -> bool:
        """Write one event to the stream.

        Args:
            event_type: SSE event type.
            data: Event payload.
            event_id: Optional event id.

        Returns:
            True if the event was written, False if the connection is closed.
        """
        payload = format_event(event_type, data, event_id).encode("utf-8")
        with self._write_lock:
            if self._closed.is_set():
                return False
            try:
                self._sink.write(payload)
                self._sink.flush()
            except (OSError, ValueError) as e:
                logger.info("SSE session %s write failed: %s", self._session_id, e)
                self._closed.set()
                return False
        return True

    def send_message(self, data: str) -> bool:
        """Send a ``message`` event carrying the next event id."""
        return self.send_event("message", data, self._event_ids.next())

    def keep_alive(
        self,
        interval: float = KEEPALIVE_INTERVAL,
        stop: threading.Event | None = None,
    ) -> None:
        """Send ping events until the connection closes or ``stop`` is set.

        Blocks the calling thread. The wait between pings ends early when
        the connection is closed; ``stop`` is checked after every wait.

        Args:
            interval: Seconds between pings.
            stop: Shared shutdown signal.
        """
        while self.is_open and not (stop is not None and stop.is_set()):
            if self._closed.wait(interval):
                break
            if stop is not None and stop.is_set():
                break
            self.send_event("ping", "keep-alive")

    def close(self) -> None:
        """Mark the connection closed and wake its keep-alive loop."""
        self._closed.set()


class SessionManager:
    """Table of live SSE connections keyed by session id.

    Holds at most one connection per session id. All connections created by
    one manager draw event ids from the same counter, so ids increase across
    every session of a server rather than per session.
    """

    def __init__(self, event_ids: EventIdCounter | None = None) -> None:
        self._connections: dict[str, SseConnection] = {}
        self._lock = threading.Lock()
        self._event_ids = event_ids or EventIdCounter()
        self._closed = False

    @property
    def event_ids(self) -> EventIdCounter:
        return self._event_ids

    @staticmethod
    def new_session_id() -> str:
        """Generate a fresh session id."""
        return str(uuid.uuid4())

    def open(self, sink: BinaryIO, session_id: str | None = None) -> SseConnection:
        """Create a connection for ``session_id`` and register it.

        A connection already registered under the same id is closed and
        replaced. After ``close_all`` the returned connection is already
        closed and is not registered.

        Args:
            sink: Binary stream of the HTTP response body.
            session_id: Client-supplied session id, or None to generate one.

        Returns:
            The new connection.
        """
        connection = SseConnection(sink, session_id or self.new_session_id(), self._event_ids)
        with self._lock:
            if self._closed:
                connection.close()
                return connection
            previous = self._connections.get(connection.session_id)
            self._connections[connection.session_id] = connection

        if previous is not None:
            logger.info("Replacing SSE stream for session %s", connection.session_id)
            previous.close()
        logger.debug("SSE session %s opened", connection.session_id)
        return connection

    def get(self, session_id: str) -> SseConnection | None:
        with self._lock:
            return self._connections.get(session_id)

    def remove(self, connection: SseConnection) -> bool:
        """Unregister a connection if it is still the one held for its session.

        Returns:
            True if the connection was removed.
        """
        with self._lock:
            if self._connections.get(connection.session_id) is not connection:
                return False
            del self._connections[connection.session_id]
        logger.debug("SSE session %s removed", connection.session_id)
        return True

    def send(self, session_id: str, message: str) -> bool:
        """Send a ``message`` event to a live session.

        Returns:
            True if the session exists and the write succeeded.
        """
        connection = self.get(session_id)
        if connection is None:
            return False
        return connection.send_message(message)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._connections)

    def close_all(self) -> None:
        """Close and forget every connection; refuse new ones afterwards."""
        with self._lock:
            self._closed = True
            connections = list(self._connections.values())
            self._connections.clear()

        for connection in connections:
            connection.close()
        if connections:
            logger.info("Closed %d SSE session(s)", len(connections))

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
