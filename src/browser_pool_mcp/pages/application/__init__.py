from browser_pool_mcp.pages.application.coordinator import PoolCoordinator

__all__ = ["PoolCoordinator"]
