"""JSON-RPC 2.0 message parsing and formatting.

Implements the JSON-RPC 2.0 envelope used by both transports. Every
formatted message is a single line of JSON: ``json.dumps`` escapes embedded
newlines, so one line (stdio) or one SSE event (HTTP) is always one message.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Maximum message size (1 MB)
MAX_MESSAGE_SIZE = 1_048_576

RequestId = int | float | str | None


class JsonRpcError(Exception):
    """JSON-RPC error with code and message."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any | None = None,
        request_id: RequestId = None,
    ) -> None:
        """Initialize the error.

        Args:
            code: JSON-RPC error code.
            message: Human-readable error message.
            data: Optional additional error data.
            request_id: Id of the offending message, when one could be read.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data
        self.request_id = request_id


@dataclass
class JsonRpcRequest:
    """Represents a JSON-RPC request (has id)."""

    id: RequestId
    method: str
    params: dict[str, Any] | None = None


@dataclass
class JsonRpcNotification:
    """Represents a JSON-RPC notification (no id)."""

    method: str
    params: dict[str, Any] | None = None


def _is_valid_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    if isinstance(value, bool):
        return False
    return value is None or isinstance(value, int | float | str)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _loads(raw: str) -> Any:
    # NaN and Infinity would be echoed back as invalid JSON
    return json.loads(raw, parse_constant=_reject_constant)


def parse_message(raw: str) -> JsonRpcRequest | JsonRpcNotification:
    """Parse a JSON-RPC message from a string.

    A message with an ``id`` key is a request, even when the id is null.

    Args:
        raw: Raw JSON string.

    Returns:
        Parsed request or notification.

    Raises:
        JsonRpcError: If the message is invalid.
    """
    # Check message size before parsing to prevent DoS
    if len(raw) > MAX_MESSAGE_SIZE:
        raise JsonRpcError(
            PARSE_ERROR, f"Message too large: {len(raw)} bytes exceeds {MAX_MESSAGE_SIZE} limit"
        )

    try:
        data = _loads(raw)
    except ValueError as e:
        raise JsonRpcError(PARSE_ERROR, f"Parse error: {e}") from e
    except RecursionError as e:
        raise JsonRpcError(PARSE_ERROR, "Parse error: nesting too deep") from e

    if not isinstance(data, dict):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: message must be an object")

    # Echo the id back on envelope errors when it is usable
    msg_id = data.get("id")
    echo_id = msg_id if _is_valid_id(msg_id) else None

    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise JsonRpcError(
            INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'", request_id=echo_id
        )

    method = data.get("method")
    if not isinstance(method, str):
        raise JsonRpcError(
            INVALID_REQUEST, "Invalid Request: method must be a string", request_id=echo_id
        )

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise JsonRpcError(
            INVALID_REQUEST, "Invalid Request: params must be an object", request_id=echo_id
        )

    if "id" not in data:
        return JsonRpcNotification(method=method, params=params)

    if not _is_valid_id(msg_id):
        raise JsonRpcError(
            INVALID_REQUEST, "Invalid Request: id must be a string, number or null"
        )
    return JsonRpcRequest(id=msg_id, method=method, params=params)


def is_request(raw: str) -> bool:
    """Tell whether a raw message is a request (a JSON object with an id).

    Never raises: anything that does not parse is not a request.
    """
    try:
        data = _loads(raw)
    except (ValueError, RecursionError):
        return False
    return isinstance(data, dict) and "id" in data


def _encode(**members: Any) -> str:
    return json.dumps({"jsonrpc": JSONRPC_VERSION, **members})


def format_response(msg_id: RequestId, result: Any) -> str:
    """Encode a success response echoing ``msg_id``."""
    return _encode(id=msg_id, result=result)


def format_error(
    msg_id: RequestId,
    code: int,
    message: str,
    data: Any | None = None,
) -> str:
    """Encode an error response.

    ``msg_id`` is None when the offending message had no usable id, as
    with parse errors. ``data`` is omitted from the envelope when None.
    """
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return _encode(id=msg_id, error=error)


def format_notification(method: str, params: dict[str, Any] | None = None) -> str:
    """Encode a server-initiated notification, e.g. for an SSE push."""
    if params is None:
        return _encode(method=method)
    return _encode(method=method, params=params)
