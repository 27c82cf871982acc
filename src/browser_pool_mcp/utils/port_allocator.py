"""
Port allocation for pooled worker processes.

This module provides the PortAllocator class, which hands out ports from a
small fixed range. Ports already tracked by this manager are skipped, and
every remaining candidate is probed with an exclusive bind so that ports
held by other processes on the host (including other pool managers) are
never handed out.
"""

import asyncio
import socket
from typing import Awaitable, Callable, Iterable, Optional

from browser_pool_mcp.atoms.errors.application_errors import PortExhaustedError
from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.utils.config_constants import (
    BASE_PORT,
    MAX_PORT_ATTEMPTS,
    PORT_PROBE_HOST,
    PORT_RANGE,
)

# Returns True when the port is free on the host
PortProbe = Callable[[int], Awaitable[bool]]


def _bind_probe_sync(host: str, port: int) -> bool:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, port))
        return True
    except OSError:
        return False


async def probe_port(port: int, host: str = PORT_PROBE_HOST) -> bool:
    """
    Check whether a port can be bound exclusively right now.

    The socket is released immediately, so the answer is only a hint: another
    process may claim the port before the worker binds it.
    """
    if not (0 < port < 65536):
        return False
    return await asyncio.to_thread(_bind_probe_sync, host, port)


class PortAllocator:
    """
    Allocates ports from [base_port, base_port + port_range] with a rotating cursor.

    The cursor advances past each allocated port so a port freed by a kill is
    not immediately handed out again.
    """

    def __init__(
        self,
        base_port: int = BASE_PORT,
        port_range: int = PORT_RANGE,
        max_attempts: int = MAX_PORT_ATTEMPTS,
        probe: Optional[PortProbe] = None,
    ) -> None:
        """
        Initialize the PortAllocator.

        Args:
            base_port: The first port of the range.
            port_range: Width of the range; the last port is base_port + port_range.
            max_attempts: Consecutive rejected candidates before giving up.
            probe: Host-level availability check. Defaults to an exclusive bind probe.
        """
        self.base_port = base_port
        self.max_port = base_port + port_range
        self.max_attempts = max_attempts
        self._probe: PortProbe = probe if probe is not None else probe_port
        self._cursor = base_port

        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        self.logger.debug(
            f"PortAllocator initialized with range {self.base_port}-{self.max_port}, "
            f"max attempts {self.max_attempts}"
        )

    @property
    def cursor(self) -> int:
        """The port the next scan starts from."""
        return self._cursor

    def _next(self, port: int) -> int:
        port += 1
        if port > self.max_port:
            port = self.base_port
        return port

    async def allocate(self, excluded: Iterable[int] = ()) -> int:
        """
        Find a free port.

        Args:
            excluded: Ports already tracked locally; these are never probed.

        Returns:
            A port that was free on the host at probe time.

        Raises:
            PortExhaustedError: If max_attempts consecutive candidates were rejected.
        """
        excluded_ports = set(excluded)
        port = self._cursor

        for _ in range(self.max_attempts):
            if port not in excluded_ports and await self._probe(port):
                self._cursor = self._next(port)
                self.logger.debug(f"Port {port} allocated; next scan starts at {self._cursor}")
                return port
            self.logger.verbose(f"Port {port} rejected")
            port = self._next(port)

        self.logger.error(
            f"No available ports in range {self.base_port}-{self.max_port} "
            f"after {self.max_attempts} attempts"
        )
        raise PortExhaustedError(
            f"No available ports in range {self.base_port}-{self.max_port}",
            details={"attempts": self.max_attempts, "excluded": sorted(excluded_ports)},
        )

    async def claim(self, excluded: Iterable[int] = ()) -> int:
        """
        Claim a port for a new worker: probe-bind, release, hand out.

        This is the seam a different coordination mechanism (for example a
        shared lock service) would replace; callers only depend on this method.
        """
        return await self.allocate(excluded)
