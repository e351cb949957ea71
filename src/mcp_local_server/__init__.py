"""Local MCP server speaking JSON-RPC 2.0 over stdio or streamable HTTP."""

__version__ = "1.0.0"
