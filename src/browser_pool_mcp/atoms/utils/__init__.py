"""
Utility atoms for the Browser Pool MCP Server.

Provides configuration constants and the validated settings model.
"""

from browser_pool_mcp.atoms.utils.config_constants import (
    BASE_PORT,
    INSTANCE_TIMEOUT,
    MAX_INSTANCES,
    PORT_RANGE,
)
from browser_pool_mcp.atoms.utils.settings import PoolSettings

__all__ = [
    "BASE_PORT",
    "INSTANCE_TIMEOUT",
    "MAX_INSTANCES",
    "PORT_RANGE",
    "PoolSettings",
]
