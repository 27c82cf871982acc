"""
Persistent MCP call channel to one worker.

The SSE transport and the client session are entered and exited by a single
owner task, because the underlying anyio cancel scopes must be closed by the
task that opened them. Callers interact with the channel through open(),
call_tool() and close().
"""

import asyncio
from typing import Any, Dict, Optional

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.types import Implementation

from browser_pool_mcp.atoms.errors.application_errors import ConnectionFailureError, ProxyCallError
from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.utils.config_constants import SERVER_NAME, SERVER_VERSION

DEFAULT_HANDSHAKE_TIMEOUT = 30.0  # seconds
DEFAULT_CLOSE_TIMEOUT = 3.0  # seconds


class WorkerChannel:
    """MCP client session over SSE, owned by a background task."""

    def __init__(
        self,
        url: str,
        port: Optional[int] = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ) -> None:
        self.url = url
        self.port = port
        self.handshake_timeout = handshake_timeout
        self.close_timeout = close_timeout

        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self._session: Optional[ClientSession] = None
        self._owner_task: Optional[asyncio.Task[None]] = None
        self._opened: Optional[asyncio.Future[None]] = None
        self._closing = asyncio.Event()
        self.error: Optional[BaseException] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._closing.is_set()

    async def open(self) -> "WorkerChannel":
        """
        Connect and complete the MCP initialize handshake.

        Raises:
            ConnectionFailureError: If the transport or the handshake fails.
        """
        if self._owner_task is not None:
            return self

        loop = asyncio.get_running_loop()
        self._opened = loop.create_future()
        self._owner_task = asyncio.create_task(self._own_session(), name=f"worker-channel:{self.url}")

        try:
            await self._opened
        except ConnectionFailureError:
            raise
        except Exception as e:
            raise ConnectionFailureError(f"Failed to connect to {self.url}: {e}", port=self.port) from e

        self.logger.debug(f"[browser-pool] MCP client connected to {self.url}")
        return self

    async def _own_session(self) -> None:
        assert self._opened is not None
        try:
            async with sse_client(self.url) as (read_stream, write_stream):
                async with ClientSession(
                    read_stream,
                    write_stream,
                    client_info=Implementation(name=SERVER_NAME, version=SERVER_VERSION),
                ) as session:
                    try:
                        await asyncio.wait_for(session.initialize(), timeout=self.handshake_timeout)
                    except asyncio.TimeoutError as e:
                        raise ConnectionFailureError(
                            f"MCP handshake with {self.url} timed out after {self.handshake_timeout}s",
                            port=self.port,
                        ) from e
                    self._session = session
                    self._opened.set_result(None)
                    await self._closing.wait()
        except asyncio.CancelledError:
            if not self._opened.done():
                self._opened.set_exception(
                    ConnectionFailureError(f"Connection to {self.url} was cancelled", port=self.port)
                )
            raise
        except Exception as e:
            self.error = e
            if not self._opened.done():
                self._opened.set_exception(e)
            else:
                self.logger.warning(f"[browser-pool] Channel to {self.url} broke: {e}")
        finally:
            self._session = None

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Invoke a tool on the worker.

        Returns:
            The raw result as a JSON-compatible dict.

        Raises:
            ProxyCallError: If the channel is not open.
        """
        session = self._session
        if session is None or self._closing.is_set():
            detail = f": {self.error}" if self.error else ""
            raise ProxyCallError(f"Channel to {self.url} is not open{detail}", port=self.port)

        result = await session.call_tool(name, arguments or {})
        return result.model_dump(mode="json", exclude_none=True)

    async def close(self) -> None:
        """Close the session and transport. Safe to call more than once."""
        self._closing.set()
        task = self._owner_task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.close_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"[browser-pool] Channel to {self.url} did not close in time; cancelling")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


async def connect_channel(url: str, port: Optional[int] = None, **kwargs: Any) -> WorkerChannel:
    """Open a WorkerChannel to the given SSE endpoint."""
    channel = WorkerChannel(url, port=port, **kwargs)
    await channel.open()
    return channel
