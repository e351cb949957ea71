"""Built-in tools and resources.

Small, dependency-free tools that make a fresh server useful for testing
clients: echo, arithmetic, a deliberately slow tool, text and JSON
helpers, and an in-memory dictionary store exposed as a resource.
"""

from __future__ import annotations

import json
import re
import threading
import time
from datetime import datetime
from typing import Any

from mcp_local_server.plugins.base import PluginBase, ResourceDefinition, ToolDefinition

TIME_RESOURCE_URI = "time://current"
DATASTORE_RESOURCE_URI = "datastore://summary"

MIN_DELAY_SECONDS = 1
MAX_DELAY_SECONDS = 60

POSITIVE_WORDS = (
    "good",
    "great",
    "excellent",
    "amazing",
    "wonderful",
    "fantastic",
    "love",
    "like",
    "happy",
    "joy",
)
NEGATIVE_WORDS = (
    "bad",
    "terrible",
    "awful",
    "hate",
    "dislike",
    "sad",
    "angry",
    "disappointed",
    "frustrated",
)


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"'{field_name}' must be a number, got {value!r}") from e


def _string_arg(arguments: dict[str, Any], key: str, default: str = "") -> str:
    value = arguments.get(key)
    if value is None:
        return default
    return value if isinstance(value, str) else json.dumps(value)


def _merge(target: Any, source: Any) -> Any:
    """Deep-merge ``source`` into ``target``: objects recurse, arrays concatenate."""
    if isinstance(target, dict) and isinstance(source, dict):
        merged = dict(target)
        for key, value in source.items():
            merged[key] = _merge(merged[key], value) if key in merged else value
        return merged
    if isinstance(target, list) and isinstance(source, list):
        return target + source
    return source


def _extract_path(document: Any, path: str) -> Any:
    """Follow a dotted path such as ``items.0.name`` (a leading ``$.`` is allowed)."""
    path = path.strip()
    if path.startswith("$"):
        path = path[1:].lstrip(".")
    current = document
    for part in filter(None, re.split(r"\.|\[(\d+)\]", path)):
        if isinstance(current, dict):
            if part not in current:
                raise KeyError(f"Path not found: {path}")
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            raise KeyError(f"Path not found: {path}")
    return current


class BuiltinPlugin(PluginBase):
    """Plugin providing the server's built-in tools and resources.

    The dictionary store is shared by every client of the server and is
    guarded by a lock.
    """

    def __init__(self) -> None:
        self._dictionaries: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()
        self._handlers = {
            "echo": self._echo,
            "misezan": self._misezan,
            "delay_response": self._delay_response,
            "text_analyzer": self._text_analyzer,
            "json_manipulator": self._json_manipulator,
            "dictionary_manager": self._dictionary_manager,
        }

    @property
    def name(self) -> str:
        """Return plugin identifier."""
        return "builtin"

    @property
    def version(self) -> str:
        """Return plugin version."""
        return "1.0.0"

    def get_tools(self) -> list[ToolDefinition]:
        """Return available tools.

        Returns:
            List of built-in tool definitions.
        """
        return [
            ToolDefinition(
                name="echo",
                description="Echo input messages (test tool)",
                input_schema={
                    "type": "object",
                    "properties": {
                        "message": {"type": "string", "description": "Message to echo"},
                    },
                    "required": ["message"],
                },
            ),
            ToolDefinition(
                name="misezan",
                description="Misezan (見せ算), the fifth arithmetic operation: max(a, b) - min(a, b)",
                input_schema={
                    "type": "object",
                    "properties": {
                        "a": {"type": "number", "description": "First number"},
                        "b": {"type": "number", "description": "Second number"},
                    },
                    "required": ["a", "b"],
                },
            ),
            ToolDefinition(
                name="delay_response",
                description="Respond after a real delay (1-60 seconds)",
                input_schema={
                    "type": "object",
                    "properties": {
                        "seconds": {
                            "type": "number",
                            "description": "Delay in seconds (1-60)",
                            "minimum": MIN_DELAY_SECONDS,
                            "maximum": MAX_DELAY_SECONDS,
                        },
                        "message": {
                            "type": "string",
                            "description": "Message to return after delay",
                        },
                    },
                    "required": ["seconds"],
                },
            ),
            ToolDefinition(
                name="text_analyzer",
                description="Text pattern analysis, regex, and string operations",
                input_schema={
                    "type": "object",
                    "properties": {
                        "operation": {
                            "type": "string",
                            "enum": ["analyze", "regex", "transform", "sentiment"],
                        },
                        "text": {"type": "string", "description": "Text to analyze"},
                        "pattern": {"type": "string", "description": "Regex pattern"},
                        "transform": {
                            "type": "string",
                            "enum": ["upper", "lower", "reverse", "count"],
                        },
                    },
                    "required": ["operation", "text"],
                },
            ),
            ToolDefinition(
                name="json_manipulator",
                description="Parse, validate, extract from, format and merge JSON",
                input_schema={
                    "type": "object",
                    "properties": {
                        "operation": {
                            "type": "string",
                            "enum": ["parse", "validate", "extract", "format", "merge"],
                        },
                        "json_data": {"type": "string", "description": "JSON document"},
                        "path": {
                            "type": "string",
                            "description": "Dotted path for extraction, e.g. items.0.name",
                        },
                        "merge_with": {"type": "string", "description": "JSON to merge with"},
                    },
                    "required": ["operation", "json_data"],
                },
            ),
            ToolDefinition(
                name="dictionary_manager",
                description="In-memory named dictionaries shared by all clients",
                input_schema={
                    "type": "object",
                    "properties": {
                        "operation": {
                            "type": "string",
                            "enum": ["create", "set", "get", "delete", "list", "clear"],
                        },
                        "dict_name": {"type": "string", "description": "Dictionary name"},
                        "key": {"type": "string"},
                        "value": {"type": "string"},
                    },
                    "required": ["operation", "dict_name"],
                },
            ),
        ]

    def get_resources(self) -> list[ResourceDefinition]:
        return [
            ResourceDefinition(
                uri=TIME_RESOURCE_URI,
                name="Current Time",
                description="Current local date and time",
            ),
            ResourceDefinition(
                uri=DATASTORE_RESOURCE_URI,
                name="Data Store Summary",
                description="Summary of the dictionaries held by dictionary_manager",
                mime_type="application/json",
            ),
        ]

    def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments.

        Returns:
            Text result of the tool.

        Raises:
            ValueError: If the tool is unknown or an argument is invalid.
        """
        handler = self._handlers.get(tool_name)
        if handler is None:
            raise ValueError(f"Unknown tool: {tool_name}")
        return handler(arguments)

    def read_resource(self, uri: str) -> str:
        if uri == TIME_RESOURCE_URI:
            return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if uri == DATASTORE_RESOURCE_URI:
            return self._datastore_summary()
        raise KeyError(uri)

    def _echo(self, arguments: dict[str, Any]) -> str:
        return f"Echo: {_string_arg(arguments, 'message', 'No message provided')}"

    def _misezan(self, arguments: dict[str, Any]) -> str:
        a = _to_number(arguments.get("a", 0), "a")
        b = _to_number(arguments.get("b", 0), "b")
        result = max(a, b) - min(a, b)
        return f"見せ算: {_format_number(a)} 見せ算 {_format_number(b)} = {_format_number(result)}"

    def _delay_response(self, arguments: dict[str, Any]) -> str:
        seconds = int(_to_number(arguments.get("seconds", MIN_DELAY_SECONDS), "seconds"))
        seconds = max(MIN_DELAY_SECONDS, min(MAX_DELAY_SECONDS, seconds))
        message = _string_arg(arguments, "message", "Delay completed")
        time.sleep(seconds)
        return f"Delayed {seconds} seconds: {message}"

    def _text_analyzer(self, arguments: dict[str, Any]) -> str:
        operation = _string_arg(arguments, "operation").lower()
        text = _string_arg(arguments, "text")

        if operation == "analyze":
            words = text.split()
            average = sum(len(w) for w in words) / len(words) if words else 0.0
            line_count = text.count("\n") + 1
            return (
                "Text Analysis:\n"
                f"Characters: {len(text)}\n"
                f"Words: {len(words)}\n"
                f"Lines: {line_count}\n"
                f"Avg word length: {average:.1f}"
            )

        if operation == "regex":
            pattern = _string_arg(arguments, "pattern")
            try:
                matches = [m.group(0) for m in re.finditer(pattern, text)]
            except re.error as e:
                raise ValueError(f"Invalid regex pattern: {e}") from e
            return f"Regex matches for '{pattern}':\nFound {len(matches)} matches\n" + "\n".join(
                matches
            )

        if operation == "transform":
            transform = _string_arg(arguments, "transform").lower()
            if transform == "upper":
                return text.upper()
            if transform == "lower":
                return text.lower()
            if transform == "reverse":
                return text[::-1]
            if transform == "count":
                return f"Character count: {len(text)}"
            return "Available transforms: upper, lower, reverse, count"

        if operation == "sentiment":
            lowered = text.lower()
            positive = sum(1 for w in POSITIVE_WORDS if w in lowered)
            negative = sum(1 for w in NEGATIVE_WORDS if w in lowered)
            if positive > negative:
                overall = "Positive"
            elif negative > positive:
                overall = "Negative"
            else:
                overall = "Neutral"
            return (
                "Sentiment Analysis:\n"
                f"Positive words: {positive}\n"
                f"Negative words: {negative}\n"
                f"Overall: {overall}"
            )

        return "Available operations: analyze, regex, transform, sentiment"

    def _json_manipulator(self, arguments: dict[str, Any]) -> str:
        operation = _string_arg(arguments, "operation").lower()
        if operation not in ("parse", "validate", "extract", "format", "merge"):
            return "Available operations: parse, validate, extract, format, merge"

        try:
            document = json.loads(_string_arg(arguments, "json_data"))
            if operation == "merge":
                other = json.loads(_string_arg(arguments, "merge_with"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e

        if operation == "parse":
            pretty = json.dumps(document, indent=2, ensure_ascii=False)
            return f"JSON parsed successfully:\n{pretty}"
        if operation == "validate":
            return "JSON is valid"
        if operation == "extract":
            value = _extract_path(document, _string_arg(arguments, "path"))
            shown = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
            return f"Extracted value: {shown}"
        if operation == "format":
            return json.dumps(document, indent=2, ensure_ascii=False)
        return json.dumps(_merge(document, other), indent=2, ensure_ascii=False)

    def _dictionary_manager(self, arguments: dict[str, Any]) -> str:
        operation = _string_arg(arguments, "operation").lower()
        dict_name = _string_arg(arguments, "dict_name")
        key = _string_arg(arguments, "key")
        value = _string_arg(arguments, "value")

        with self._lock:
            store = self._dictionaries.get(dict_name)

            if operation == "create":
                self._dictionaries[dict_name] = {}
                return f"Dictionary '{dict_name}' created"
            if operation == "set":
                self._dictionaries.setdefault(dict_name, {})[key] = value
                return f"Set {key} = {value} in '{dict_name}'"
            if operation == "get":
                if store is not None and key in store:
                    return f"{key} = {store[key]}"
                return f"Key '{key}' not found in '{dict_name}'"
            if operation == "delete":
                if store is not None and key in store:
                    del store[key]
                    return f"Deleted '{key}' from '{dict_name}'"
                return f"Key '{key}' not found in '{dict_name}'"
            if operation == "list":
                if store is None:
                    return f"Dictionary '{dict_name}' not found"
                items = "\n".join(f"{k}: {v}" for k, v in store.items())
                return f"Dictionary '{dict_name}':\n{items}"
            if operation == "clear":
                if store is None:
                    return f"Dictionary '{dict_name}' not found"
                store.clear()
                return f"Cleared dictionary '{dict_name}'"

        return "Available operations: create, set, get, delete, list, clear"

    def _datastore_summary(self) -> str:
        with self._lock:
            names = sorted(self._dictionaries)
            total_items = sum(len(d) for d in self._dictionaries.values())

        summary = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "dictionaries": {
                "count": len(names),
                "names": names,
                "total_items": total_items,
            },
            "statistics": {"total_data_structures": len(names)},
        }
        return json.dumps(summary, indent=2)
