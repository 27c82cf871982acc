from browser_pool_mcp.organisms.processors.proxy_dispatcher import ProxyDispatcher

__all__ = ["ProxyDispatcher"]
