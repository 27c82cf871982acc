from browser_pool_mcp.atoms.errors.application_errors import (
    BaseApplicationError,
    ConfigurationError,
    ConnectionFailureError,
    InvalidStateTransition,
    PoolError,
    PortExhaustedError,
    ProxyCallError,
    SpawnFailureError,
    StartupTimeoutError,
    UnexpectedExitError,
)

__all__ = [
    "BaseApplicationError",
    "ConfigurationError",
    "ConnectionFailureError",
    "InvalidStateTransition",
    "PoolError",
    "PortExhaustedError",
    "ProxyCallError",
    "SpawnFailureError",
    "StartupTimeoutError",
    "UnexpectedExitError",
]
