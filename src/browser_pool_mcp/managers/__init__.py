"""
Managers for the worker pool: registry, lifecycle and session affinity.
"""

from browser_pool_mcp.managers.process_manager import WorkerLifecycleManager
from browser_pool_mcp.managers.session_registry import SessionRegistry
from browser_pool_mcp.managers.worker_pool import WorkerPool

__all__ = ["SessionRegistry", "WorkerLifecycleManager", "WorkerPool"]
