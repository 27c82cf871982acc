"""Main entry point for the Browser Pool MCP Server."""

import sys

from browser_pool_mcp.templates.initialization.cli import main

if __name__ == "__main__":
    sys.exit(main())
