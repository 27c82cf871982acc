from browser_pool_mcp.utils.port_allocator import PortAllocator, PortProbe, probe_port

__all__ = ["PortAllocator", "PortProbe", "probe_port"]
