"""
Proxy dispatcher: forwards tool calls to the session's worker.

Every call returns a tool result. Failures, whether while obtaining a worker
or while calling it, come back as an error-flagged result instead of an
exception, and never kill the worker.
"""

import asyncio
import json
from typing import Any, Dict, Optional

from browser_pool_mcp.atoms.errors.application_errors import BaseApplicationError, ProxyCallError
from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.managers.session_registry import SessionRegistry
from browser_pool_mcp.molecules.handlers.error_formatter import ErrorResponseFormatter, ToolResult

LOG_PREVIEW_CHARS = 500


def _preview(value: Any) -> str:
    try:
        text = json.dumps(value)
    except (TypeError, ValueError):
        text = repr(value)
    return text[:LOG_PREVIEW_CHARS]


def text_result(text: str) -> ToolResult:
    return {"content": [{"type": "text", "text": text}]}


class ProxyDispatcher:
    """Routes named operations to the worker assigned to this session."""

    def __init__(self, registry: SessionRegistry, formatter: Optional[ErrorResponseFormatter] = None) -> None:
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self.registry = registry
        self.formatter = formatter or ErrorResponseFormatter(self.logger)

    async def call(self, operation: str, args: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Forward an operation and its arguments to the session's worker.

        Returns:
            The worker's result unchanged when it carries a content list, the
            raw result wrapped as text when it has no content key, or an
            error-flagged result on any failure.
        """
        args = args or {}
        self.logger.debug(f"[proxyToolCall] {operation} with args: {_preview(args)}")

        try:
            worker = await self.registry.get_or_create()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"[proxyToolCall] Could not obtain a worker for {operation}: {e}")
            return self.formatter.to_tool_result(e, operation)

        self.logger.debug(f"[proxyToolCall] got client for port {worker.port}")
        worker.touch()
        worker.in_flight += 1
        try:
            if worker.channel is None:
                raise ProxyCallError(f"Worker on port {worker.port} has no open channel", port=worker.port)
            result = await worker.channel.call_tool(operation, args)
            self.logger.debug(f"[proxyToolCall] Result: {_preview(result)}")
            return self._normalize(result, worker.port)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e if isinstance(e, BaseApplicationError) else ProxyCallError(str(e) or type(e).__name__, port=worker.port)
            self.logger.error(f"[proxyToolCall] ERROR: {error.user_friendly_message}", exc_info=e)
            return self.formatter.to_tool_result(error, operation)
        finally:
            worker.in_flight -= 1
            worker.touch()

    @staticmethod
    def _normalize(result: Any, port: int) -> ToolResult:
        if not isinstance(result, dict):
            raise ProxyCallError(f"Malformed response from port {port}: expected an object", port=port)
        if "content" not in result:
            try:
                return text_result(json.dumps(result))
            except (TypeError, ValueError) as e:
                raise ProxyCallError(f"Malformed response from port {port}: {e}", port=port) from e
        if not isinstance(result["content"], list):
            raise ProxyCallError(f"Malformed response from port {port}: content is not a list", port=port)
        return result

    def status(self) -> ToolResult:
        """The pool status query, rendered as a text tool result."""
        status = self.registry.status()
        return text_result(json.dumps(status.to_wire(), indent=2))

    async def echo(self, message: str) -> ToolResult:
        """Answer without touching the pool; checks the async response path end to end."""
        self.logger.debug(f"[pool_test] called with: {message}")
        await asyncio.sleep(0.1)
        return text_result(f"Received: {message}")
