"""
Browser Pool MCP Server Package

This package runs an MCP server over stdio that gives its client a dedicated,
isolated Playwright MCP worker, managing a bounded pool of such workers with
least-recently-used eviction and idle reaping.
"""

import importlib.metadata
import logging

from .pages.application.coordinator import PoolCoordinator
from .templates.initialization.cli import main
from .templates.servers.server import ALL_TOOLS, FORWARDED_TOOLS

try:
    __version__ = importlib.metadata.version("browser-pool-mcp")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"
    logging.getLogger(__name__).warning(
        "Could not determine package version from metadata. Defaulting to %s",
        __version__,
    )


__all__ = [
    "main",
    "PoolCoordinator",
    "ALL_TOOLS",
    "FORWARDED_TOOLS",
    "__version__",
]
