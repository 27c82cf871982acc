from browser_pool_mcp.molecules.monitoring.idle_reaper import IdleReaper

__all__ = ["IdleReaper"]
