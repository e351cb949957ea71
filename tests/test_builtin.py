"""Tests for the built-in plugin."""

import json
import re
from unittest.mock import patch

import pytest

from mcp_local_server.plugins.base import PluginBase
from mcp_local_server.plugins.builtin import (
    DATASTORE_RESOURCE_URI,
    TIME_RESOURCE_URI,
    BuiltinPlugin,
)
from mcp_local_server.plugins.registry import CapabilityRegistry, ToolExecutionError


@pytest.fixture
def plugin() -> BuiltinPlugin:
    return BuiltinPlugin()


class TestBuiltinPlugin:
    """Tests for plugin metadata."""

    def test_implements_plugin_interface(self, plugin: BuiltinPlugin):
        """Should implement PluginBase."""
        assert isinstance(plugin, PluginBase)
        assert plugin.name == "builtin"
        assert plugin.version == "1.0.0"

    def test_provides_tools_and_resources(self, plugin: BuiltinPlugin):
        """Should list all built-in tools and both resources."""
        names = [tool.name for tool in plugin.get_tools()]

        assert names == [
            "echo",
            "misezan",
            "delay_response",
            "text_analyzer",
            "json_manipulator",
            "dictionary_manager",
        ]
        assert [r.uri for r in plugin.get_resources()] == [
            TIME_RESOURCE_URI,
            DATASTORE_RESOURCE_URI,
        ]

    def test_every_tool_has_object_schema(self, plugin: BuiltinPlugin):
        """Each schema is an object schema with required fields declared."""
        for tool in plugin.get_tools():
            assert tool.input_schema["type"] == "object"
            assert set(tool.input_schema["required"]) <= set(tool.input_schema["properties"])

    def test_rejects_unknown_tool(self, plugin: BuiltinPlugin):
        """Should raise for a tool it does not provide."""
        with pytest.raises(ValueError, match="Unknown tool"):
            plugin.execute("nope", {})


class TestSimpleTools:
    """Tests for echo, misezan and delay_response."""

    def test_echo(self, plugin: BuiltinPlugin):
        """Should prefix the message."""
        assert plugin.execute("echo", {"message": "hi there"}) == "Echo: hi there"

    def test_echo_without_message(self, plugin: BuiltinPlugin):
        """Should fall back to a placeholder."""
        assert plugin.execute("echo", {}) == "Echo: No message provided"

    def test_misezan_is_absolute_difference(self, plugin: BuiltinPlugin):
        """max(a, b) - min(a, b), integers shown without a fraction."""
        assert plugin.execute("misezan", {"a": 3, "b": 10}) == "見せ算: 3 見せ算 10 = 7"

    def test_misezan_fractions(self, plugin: BuiltinPlugin):
        """Fractional inputs keep their fraction."""
        assert plugin.execute("misezan", {"a": 2.5, "b": 1}) == "見せ算: 2.5 見せ算 1 = 1.5"

    def test_misezan_rejects_non_numbers(self, plugin: BuiltinPlugin):
        """Non-numeric input raises."""
        with pytest.raises(ValueError, match="'a' must be a number"):
            plugin.execute("misezan", {"a": "lots", "b": 1})

    @pytest.mark.parametrize(("requested", "slept"), [(0, 1), (5, 5), (120, 60), ("3", 3)])
    def test_delay_is_clamped(self, plugin: BuiltinPlugin, requested, slept):
        """The delay is clamped to 1..60 seconds."""
        with patch("mcp_local_server.plugins.builtin.time.sleep") as sleep:
            result = plugin.execute("delay_response", {"seconds": requested, "message": "ok"})

        sleep.assert_called_once_with(slept)
        assert result == f"Delayed {slept} seconds: ok"

    def test_delay_default_message(self, plugin: BuiltinPlugin):
        """Should use the default completion message."""
        with patch("mcp_local_server.plugins.builtin.time.sleep"):
            result = plugin.execute("delay_response", {"seconds": 1})

        assert result == "Delayed 1 seconds: Delay completed"


class TestTextAnalyzer:
    """Tests for text_analyzer."""

    def test_analyze(self, plugin: BuiltinPlugin):
        """Should count characters, words and lines."""
        result = plugin.execute(
            "text_analyzer", {"operation": "analyze", "text": "hello world\nbye"}
        )

        assert result == (
            "Text Analysis:\nCharacters: 15\nWords: 3\nLines: 2\nAvg word length: 4.3"
        )

    def test_analyze_empty_text(self, plugin: BuiltinPlugin):
        """Empty text has no words and a zero average."""
        result = plugin.execute("text_analyzer", {"operation": "analyze", "text": ""})

        assert "Words: 0" in result
        assert "Avg word length: 0.0" in result

    def test_regex(self, plugin: BuiltinPlugin):
        """Should list every match."""
        result = plugin.execute(
            "text_analyzer", {"operation": "regex", "text": "a1b22c", "pattern": r"\d+"}
        )

        assert result == "Regex matches for '\\d+':\nFound 2 matches\n1\n22"

    def test_invalid_regex_raises(self, plugin: BuiltinPlugin):
        """A bad pattern raises so the caller sees an error."""
        with pytest.raises(ValueError, match="Invalid regex"):
            plugin.execute("text_analyzer", {"operation": "regex", "text": "x", "pattern": "("})

    @pytest.mark.parametrize(
        ("transform", "expected"),
        [
            ("upper", "ABC DEF"),
            ("lower", "abc def"),
            ("reverse", "feD cbA"),
            ("count", "Character count: 7"),
            ("shout", "Available transforms: upper, lower, reverse, count"),
        ],
    )
    def test_transform(self, plugin: BuiltinPlugin, transform, expected):
        """Should apply the requested transform."""
        result = plugin.execute(
            "text_analyzer", {"operation": "transform", "text": "Abc Def", "transform": transform}
        )

        assert result == expected

    def test_sentiment(self, plugin: BuiltinPlugin):
        """Should count positive and negative words."""
        result = plugin.execute(
            "text_analyzer",
            {"operation": "sentiment", "text": "I love this, it is great, not sad"},
        )

        assert "Positive words: 2" in result
        assert "Negative words: 1" in result
        assert result.endswith("Overall: Positive")

    def test_unknown_operation(self, plugin: BuiltinPlugin):
        """Should list the available operations."""
        result = plugin.execute("text_analyzer", {"operation": "poem", "text": "x"})

        assert result.startswith("Available operations")


class TestJsonManipulator:
    """Tests for json_manipulator."""

    DOC = json.dumps({"items": [{"name": "a"}, {"name": "b"}], "meta": {"n": 2}})

    def run(self, plugin, **arguments):
        return plugin.execute("json_manipulator", arguments)

    def test_validate(self, plugin: BuiltinPlugin):
        """Valid JSON is reported valid."""
        assert self.run(plugin, operation="validate", json_data=self.DOC) == "JSON is valid"

    def test_parse_and_format(self, plugin: BuiltinPlugin):
        """parse and format pretty-print the document."""
        parsed = self.run(plugin, operation="parse", json_data='{"a":1}')
        formatted = self.run(plugin, operation="format", json_data='{"a":1}')

        assert parsed == 'JSON parsed successfully:\n{\n  "a": 1\n}'
        assert formatted == '{\n  "a": 1\n}'

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("items.1.name", "Extracted value: b"),
            ("$.items[0]", 'Extracted value: {"name": "a"}'),
            ("meta.n", "Extracted value: 2"),
        ],
    )
    def test_extract(self, plugin: BuiltinPlugin, path, expected):
        """Dotted and indexed paths are followed."""
        assert self.run(plugin, operation="extract", json_data=self.DOC, path=path) == expected

    def test_extract_missing_path(self, plugin: BuiltinPlugin):
        """A path that does not exist raises."""
        with pytest.raises(KeyError):
            self.run(plugin, operation="extract", json_data=self.DOC, path="items.7")

    def test_merge(self, plugin: BuiltinPlugin):
        """Objects merge recursively and arrays concatenate."""
        result = self.run(
            plugin,
            operation="merge",
            json_data='{"a": {"x": 1}, "l": [1], "k": "old"}',
            merge_with='{"a": {"y": 2}, "l": [2], "k": "new"}',
        )

        assert json.loads(result) == {"a": {"x": 1, "y": 2}, "l": [1, 2], "k": "new"}

    def test_invalid_json_raises(self, plugin: BuiltinPlugin):
        """Bad input raises instead of returning a success-looking string."""
        with pytest.raises(ValueError, match="Invalid JSON"):
            self.run(plugin, operation="validate", json_data="{nope")

    def test_invalid_json_is_internal_error_through_registry(self, plugin: BuiltinPlugin):
        """The registry wraps the failure for the dispatcher."""
        registry = CapabilityRegistry([plugin])

        with pytest.raises(ToolExecutionError, match="Invalid JSON"):
            registry.call_tool("json_manipulator", {"operation": "parse", "json_data": "{"})


class TestDictionaryManager:
    """Tests for dictionary_manager and the datastore resource."""

    def run(self, plugin, operation, **arguments):
        return plugin.execute(
            "dictionary_manager", {"operation": operation, "dict_name": "prefs", **arguments}
        )

    def test_set_get_delete(self, plugin: BuiltinPlugin):
        """Values can be stored, read back and removed."""
        assert self.run(plugin, "create") == "Dictionary 'prefs' created"
        assert self.run(plugin, "set", key="color", value="blue") == "Set color = blue in 'prefs'"
        assert self.run(plugin, "get", key="color") == "color = blue"
        assert self.run(plugin, "delete", key="color") == "Deleted 'color' from 'prefs'"
        assert self.run(plugin, "get", key="color") == "Key 'color' not found in 'prefs'"

    def test_set_creates_dictionary(self, plugin: BuiltinPlugin):
        """set on a missing dictionary creates it."""
        self.run(plugin, "set", key="a", value="1")
        self.run(plugin, "set", key="b", value="2")

        assert self.run(plugin, "list") == "Dictionary 'prefs':\na: 1\nb: 2"

    def test_missing_dictionary(self, plugin: BuiltinPlugin):
        """list and clear report a missing dictionary."""
        assert self.run(plugin, "list") == "Dictionary 'prefs' not found"
        assert self.run(plugin, "clear") == "Dictionary 'prefs' not found"

    def test_clear(self, plugin: BuiltinPlugin):
        """clear empties the dictionary but keeps it."""
        self.run(plugin, "set", key="a", value="1")

        assert self.run(plugin, "clear") == "Cleared dictionary 'prefs'"
        assert self.run(plugin, "list") == "Dictionary 'prefs':\n"

    def test_datastore_summary(self, plugin: BuiltinPlugin):
        """The resource summarises the stored dictionaries."""
        self.run(plugin, "set", key="a", value="1")
        self.run(plugin, "set", key="b", value="2")

        summary = json.loads(plugin.read_resource(DATASTORE_RESOURCE_URI))

        assert summary["dictionaries"] == {"count": 1, "names": ["prefs"], "total_items": 2}
        assert summary["statistics"]["total_data_structures"] == 1
        assert "timestamp" in summary


class TestResources:
    """Tests for the time resource."""

    def test_current_time_format(self, plugin: BuiltinPlugin):
        """Should use YYYY-MM-DD HH:MM:SS."""
        value = plugin.read_resource(TIME_RESOURCE_URI)

        assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", value)

    def test_unknown_resource(self, plugin: BuiltinPlugin):
        """Should raise KeyError for other URIs."""
        with pytest.raises(KeyError):
            plugin.read_resource("time://later")
