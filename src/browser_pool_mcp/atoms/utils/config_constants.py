"""
Configuration constants for the Browser Pool MCP Server.

Provides default values for common configuration parameters.
This is an atomic component containing only immutable constants.
"""

# Server identity reported to MCP clients and to workers
SERVER_NAME = "browser-pool"
SERVER_VERSION = "1.0.0"

# Worker port range: [BASE_PORT, BASE_PORT + PORT_RANGE]
BASE_PORT = 9000
PORT_RANGE = 100
PORT_PROBE_HOST = "127.0.0.1"
MAX_PORT_ATTEMPTS = 100

# Pool capacity and idle reaping
MAX_INSTANCES = 10
INSTANCE_TIMEOUT = 30 * 60  # seconds
REAP_INTERVAL = 60  # seconds

# Worker startup
WORKER_HOST = "localhost"
HEALTH_PATH = "/sse"
STARTUP_DELAY = 3.0  # seconds, lets npx download and boot the worker
READY_TIMEOUT = 45.0  # seconds
READY_POLL_INTERVAL = 1.0  # seconds
HEALTH_REQUEST_TIMEOUT = 2.0  # seconds
TERMINATION_TIMEOUT = 5.0  # seconds

# Command used to launch one worker; "{port}" is substituted at spawn time
WORKER_COMMAND = ["npx", "@playwright/mcp@latest", "--port", "{port}", "--isolated"]

# Environment variable prefix for settings overrides
SETTINGS_ENV_PREFIX = "BROWSER_POOL_"
