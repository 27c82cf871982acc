from browser_pool_mcp.templates.servers.server import ALL_TOOLS, FORWARDED_TOOLS, build_server, handle_tool_call, serve

__all__ = ["ALL_TOOLS", "FORWARDED_TOOLS", "build_server", "handle_tool_call", "serve"]
