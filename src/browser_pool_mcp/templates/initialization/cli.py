import argparse
import asyncio
import functools
import logging
import os
import signal
import sys
import traceback
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from browser_pool_mcp.atoms.errors.application_errors import ConfigurationError
from browser_pool_mcp.atoms.logging.logger import Logger, configure_log_dir, get_logger
from browser_pool_mcp.atoms.utils.settings import PoolSettings
from browser_pool_mcp.pages.application.coordinator import PoolCoordinator
from browser_pool_mcp.templates.servers.server import serve

# Where debug.log lands unless --log-dir is given
DEFAULT_LOG_DIR = Path("./logs")

# Seconds to wait for the stdio server after shutdown before exiting anyway
SERVER_STOP_TIMEOUT = 2.0


def _setup_signal_handlers(shutdown_event: asyncio.Event, logger: Logger) -> None:
    """Set up signal handlers for graceful shutdown."""

    def _signal_handler(sig: int, *_: Any) -> None:
        signame = signal.Signals(sig).name
        logger.warning(f"Received signal {signame} ({sig}). Initiating shutdown...")
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Shutdown already in progress.")

    loop = asyncio.get_running_loop()
    for sig_enum in (signal.SIGINT, signal.SIGTERM):
        sig_num = int(sig_enum)
        try:
            loop.add_signal_handler(sig_num, functools.partial(_signal_handler, sig_num))
        except (NotImplementedError, ValueError, OSError) as e:
            logger.warning(
                f"Could not register signal handler for {sig_enum.name} using loop.add_signal_handler: {e}. "
                "Trying signal.signal."
            )
            try:
                signal.signal(sig_num, lambda s, f: loop.call_soon_threadsafe(_signal_handler, s))
            except (ValueError, OSError) as sig_e:
                logger.error(f"Failed to register signal handler for {sig_enum.name} using signal.signal: {sig_e}")

    logger.debug("Signal handlers registered.")


def _force_exit(code: int) -> None:
    """Flush logs and leave the process without waiting on blocked threads."""
    logging.shutdown()
    sys.stderr.flush()
    os._exit(code)


async def run(
    settings: PoolSettings,
    coordinator: Optional[PoolCoordinator] = None,
    shutdown_event: Optional[asyncio.Event] = None,
    server: Callable[[PoolCoordinator], Awaitable[None]] = serve,
    stop_timeout: float = SERVER_STOP_TIMEOUT,
) -> None:
    """
    Run one pool manager until the client disconnects or a shutdown signal arrives.

    Every tracked worker is killed before the server task is awaited. The
    stdio server reads stdin from a thread that cannot be cancelled, so if it
    has not stopped within stop_timeout the process exits right away.

    Args:
        settings: Pool settings.
        coordinator: Pre-built coordinator; built from settings when omitted.
        shutdown_event: Event that requests shutdown. When omitted, one is
            created and wired to SIGINT and SIGTERM.
        server: Coroutine function serving the coordinator.
        stop_timeout: Seconds to wait for the server task after cancelling it.
    """
    logger = get_logger("browser_pool_mcp")
    coordinator = coordinator or PoolCoordinator(settings)

    if shutdown_event is None:
        shutdown_event = asyncio.Event()
        _setup_signal_handlers(shutdown_event, logger)

    server_task = asyncio.create_task(server(coordinator), name="mcp-stdio-server")
    shutdown_task = asyncio.create_task(shutdown_event.wait(), name="shutdown-signal")
    try:
        await asyncio.wait({server_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        shutdown_task.cancel()
        await coordinator.shutdown()

        if not server_task.done():
            server_task.cancel()
        done, _ = await asyncio.wait({server_task}, timeout=stop_timeout)

    if server_task not in done:
        logger.warning(f"MCP server did not stop within {stop_timeout}s after shutdown; exiting")
        _force_exit(0)
        return
    if server_task.cancelled():
        logger.debug("MCP server task cancelled.")
        return
    # Re-raise a server failure for main() to report
    server_task.result()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="browser-pool-mcp",
        description="MCP server that gives each client its own isolated Playwright MCP worker.",
    )
    parser.add_argument("--base-port", type=int, default=None, help="First worker port (default: 9000)")
    parser.add_argument("--port-range", type=int, default=None, help="Number of ports above the base port (default: 100)")
    parser.add_argument("--max-instances", type=int, default=None, help="Maximum live workers (default: 10)")
    parser.add_argument(
        "--instance-timeout", type=float, default=None, help="Idle seconds before a worker is killed (default: 1800)"
    )
    parser.add_argument(
        "--ready-timeout", type=float, default=None, help="Seconds to wait for a worker to start (default: 45)"
    )
    parser.add_argument(
        "--worker-command",
        type=str,
        default=None,
        help="Worker command line with a {port} placeholder "
        "(default: 'npx @playwright/mcp@latest --port {port} --isolated')",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help=f"Directory for debug.log when BROWSER_POOL_DEBUG=1 (default: {DEFAULT_LOG_DIR})",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the browser-pool-mcp command."""
    args = build_parser().parse_args(argv)

    try:
        settings = PoolSettings.from_env(
            base_port=args.base_port,
            port_range=args.port_range,
            max_instances=args.max_instances,
            instance_timeout=args.instance_timeout,
            ready_timeout=args.ready_timeout,
            worker_command=args.worker_command,
            log_dir=args.log_dir,
        )
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1

    configure_log_dir(settings.log_dir or DEFAULT_LOG_DIR)
    get_logger(__name__).verbose(f"Resolved settings: {settings.model_dump(mode='json')}")

    try:
        asyncio.run(run(settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nServer interrupted. Exiting.", file=sys.stderr)
    except Exception as e:
        print(f"[browser-pool] Fatal: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                signal.signal(sig, signal.SIG_DFL)
            except (ValueError, OSError, AttributeError):
                pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
