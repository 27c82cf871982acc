"""
Module for formatting error responses in a standardized way.
"""

from typing import Any, Dict, Optional

from browser_pool_mcp.atoms.errors.application_errors import BaseApplicationError
from browser_pool_mcp.atoms.logging.logger import Logger, get_logger

ToolResult = Dict[str, Any]


class ErrorResponseFormatter:
    """
    Formats exceptions into tool results the caller protocol accepts.

    A tool result is {"content": [...], "isError": True} for errors. The
    message is what a person reading the client transcript sees.
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self._logger = logger or get_logger(__name__)

    @staticmethod
    def message_for(exc: BaseException) -> str:
        if isinstance(exc, BaseApplicationError):
            return exc.user_friendly_message
        return str(exc) or type(exc).__name__

    def to_tool_result(self, exc: BaseException, context: Optional[str] = None) -> ToolResult:
        """
        Convert an exception to an error-flagged tool result.

        Args:
            exc: The exception to convert.
            context: Optional label (usually the tool name) for the log line.
        """
        where = f" in {context}" if context else ""
        self._logger.debug(f"[browser-pool] Error{where}: {type(exc).__name__}: {exc}", exc_info=exc)

        return {
            "content": [{"type": "text", "text": f"Error: {self.message_for(exc)}"}],
            "isError": True,
        }
