#!/usr/bin/env python3
"""MCP Local Server - Main entry point.

A local MCP server speaking JSON-RPC 2.0 over stdio (one message per line)
or over streamable HTTP with Server-Sent-Events responses.

================================================================================
DEVELOPER GUIDE: Registering New Plugins
================================================================================

1. CREATE YOUR PLUGIN
   Create a new module in src/mcp_local_server/plugins/ implementing the
   PluginBase interface (see plugins/base.py). Tools are required,
   resources are optional.

2. REGISTER THE PLUGIN
   Add an instance to the list in build_registry() in
   src/mcp_local_server/cli.py:

       from mcp_local_server.plugins.dbquery import DBQueryPlugin

       return CapabilityRegistry(
           [BuiltinPlugin(), WebAnalyzerPlugin(), DBQueryPlugin(os.environ["DB_CONN"])]
       )

   Tool names and resource URIs must be unique across plugins; a clash
   stops the server at startup.

NOTES
-----
- Never hardcode credentials - use environment variables
- Under the HTTP transport plugins are called from several threads at
  once; guard any shared state
- Exceptions raised by a plugin are reported to the client as internal
  errors carrying the exception message

TESTING
-------
See tests/test_web.py for an example of how to mock external dependencies.

================================================================================
"""

from __future__ import annotations

import sys

from mcp_local_server.cli import main

if __name__ == "__main__":
    sys.exit(main())
