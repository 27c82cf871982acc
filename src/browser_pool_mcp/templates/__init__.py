"""Entry-point templates: MCP server wiring and command line."""
