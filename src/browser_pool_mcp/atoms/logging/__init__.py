"""Logging atoms for the Browser Pool MCP Server."""

from browser_pool_mcp.atoms.logging.logger import Logger, configure_log_dir, get_logger

__all__ = ["Logger", "configure_log_dir", "get_logger"]
