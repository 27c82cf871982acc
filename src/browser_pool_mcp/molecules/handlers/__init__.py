from browser_pool_mcp.molecules.handlers.error_formatter import ErrorResponseFormatter, ToolResult

__all__ = ["ErrorResponseFormatter", "ToolResult"]
