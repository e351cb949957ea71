"""Web page analysis plugin.

Parses URLs and inspects HTML for title, links, images and basic SEO
markers. The ``fetch`` operation downloads the page first.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlsplit

import httpx

from mcp_local_server.plugins.base import PluginBase, ToolDefinition

# User agent to use for requests
USER_AGENT = "MCP-LocalServer/1.0 (Web Analyzer Plugin)"

DEFAULT_URL = "https://example.com"

_DEFAULT_PORTS = {"http": 80, "https": 443, "ftp": 21, "ws": 80, "wss": 443}

_TITLE_PATTERN = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_LINK_PATTERN = re.compile(r"""<a[^>]*href=["']([^"']*)["'][^>]*>""", re.IGNORECASE)
_IMAGE_PATTERN = re.compile(r"""<img[^>]*src=["']([^"']*)["'][^>]*>""", re.IGNORECASE)


def parse_url(url: str) -> str:
    """Describe the parts of an absolute URL.

    Raises:
        ValueError: If the URL has no scheme or host, or a bad port.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Invalid URL: {url}")
    port = parts.port or _DEFAULT_PORTS.get(parts.scheme.lower(), "")
    query = f"?{parts.query}" if parts.query else ""
    return (
        "URL Analysis:\n"
        f"Scheme: {parts.scheme}\n"
        f"Host: {parts.hostname}\n"
        f"Port: {port}\n"
        f"Path: {parts.path or '/'}\n"
        f"Query: {query}"
    )


def analyze_html(html: str) -> str:
    title = _TITLE_PATTERN.search(html)
    return (
        "HTML Analysis:\n"
        f"Title: {title.group(1).strip() if title else 'Not found'}\n"
        f"Links: {len(_LINK_PATTERN.findall(html))}\n"
        f"Images: {len(_IMAGE_PATTERN.findall(html))}\n"
        f"Size: {len(html)} characters"
    )


def seo_check(html: str) -> str:
    lowered = html.lower()
    has_title = "<title>" in lowered
    has_meta_description = 'meta name="description"' in lowered
    has_h1 = re.search(r"<h1[\s>]", lowered) is not None
    score = sum((has_title, has_meta_description, has_h1))
    return (
        "SEO Analysis:\n"
        f"Has Title: {has_title}\n"
        f"Has Meta Description: {has_meta_description}\n"
        f"Has H1: {has_h1}\n"
        f"SEO Score: {score}/3"
    )


class WebAnalyzerPlugin(PluginBase):
    """Web analysis plugin.

    Provides a web_analyzer tool; only ``fetch`` touches the network.
    """

    def __init__(self, client: httpx.Client | None = None) -> None:
        """Initialize the plugin with a reusable HTTP client."""
        self._client = client or httpx.Client(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=10.0,
        )

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._client.close()

    @property
    def name(self) -> str:
        """Return plugin identifier."""
        return "web"

    @property
    def version(self) -> str:
        """Return plugin version."""
        return "1.0.0"

    def get_tools(self) -> list[ToolDefinition]:
        """Return available tools.

        Returns:
            List containing the web_analyzer tool definition.
        """
        return [
            ToolDefinition(
                name="web_analyzer",
                description=(
                    "Web page structure analysis: URL parsing, HTML tag extraction, "
                    "SEO checks, and fetching a page to analyze it."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "operation": {
                            "type": "string",
                            "enum": ["parse_url", "analyze_html", "seo_check", "fetch"],
                        },
                        "url": {"type": "string", "description": "URL to analyze or fetch"},
                        "html": {"type": "string", "description": "HTML content to analyze"},
                    },
                    "required": ["operation"],
                },
            )
        ]

    def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments.

        Returns:
            Analysis report.

        Raises:
            ValueError: If the tool is unknown or the URL is invalid.
            RuntimeError: If fetching the page fails.
        """
        if tool_name != "web_analyzer":
            raise ValueError(f"Unknown tool: {tool_name}")

        operation = str(arguments.get("operation") or "").lower()
        url = str(arguments.get("url") or DEFAULT_URL)
        html = str(arguments.get("html") or "")

        if operation == "parse_url":
            return parse_url(url)
        if operation == "analyze_html":
            return analyze_html(html)
        if operation == "seo_check":
            return seo_check(html)
        if operation == "fetch":
            return self._fetch(url)
        return "Available operations: parse_url, analyze_html, seo_check, fetch"

    def _fetch(self, url: str) -> str:
        """Download ``url`` and analyze the returned HTML."""
        parse_url(url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise RuntimeError("Fetch timed out") from e
        except httpx.HTTPStatusError as e:
            raise RuntimeError(f"Fetch failed (HTTP {e.response.status_code})") from e
        except httpx.HTTPError as e:
            raise RuntimeError(f"Fetch failed: {e}") from e

        html = response.text
        sections = [
            f"Fetched {response.url} ({response.status_code})",
            analyze_html(html),
            seo_check(html),
        ]
        return "\n\n".join(sections)
