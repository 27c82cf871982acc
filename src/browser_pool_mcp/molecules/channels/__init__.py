from browser_pool_mcp.molecules.channels.worker_channel import WorkerChannel, connect_channel

__all__ = ["WorkerChannel", "connect_channel"]
