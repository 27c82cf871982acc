from typing import Any, Dict, List, Optional, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Tool

from browser_pool_mcp.atoms.logging.logger import get_logger
from browser_pool_mcp.atoms.utils.config_constants import SERVER_NAME, SERVER_VERSION
from browser_pool_mcp.pages.application.coordinator import PoolCoordinator


def _tool(name: str, description: str, properties: Optional[Dict[str, Any]] = None, required: Sequence[str] = ()) -> Tool:
    schema: Dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = list(required)
    return Tool(name=name, description=description, inputSchema=schema)


_STRING = {"type": "string"}
_NUMBER = {"type": "number"}
_BOOLEAN = {"type": "boolean"}
_ELEMENT = {
    "element": {"type": "string", "description": "Human-readable element description"},
    "ref": {"type": "string", "description": "Exact target element reference from the page snapshot"},
}

# Tools forwarded verbatim to the session's Playwright worker
FORWARDED_TOOLS: List[Tool] = [
    _tool("browser_navigate", "Navigate to URL", {"url": _STRING}, ["url"]),
    _tool("browser_snapshot", "Page snapshot"),
    _tool("browser_click", "Click element", dict(_ELEMENT), ["element", "ref"]),
    _tool(
        "browser_type",
        "Type text",
        {**_ELEMENT, "text": _STRING, "submit": _BOOLEAN},
        ["element", "ref", "text"],
    ),
    _tool("browser_screenshot", "Take screenshot", {"fullPage": _BOOLEAN}),
    _tool("browser_close", "Close browser"),
    _tool(
        "browser_tabs",
        "Manage tabs",
        {"action": {"type": "string", "enum": ["list", "new", "close", "select"]}, "index": _NUMBER},
        ["action"],
    ),
    _tool("browser_navigate_back", "Go back"),
    _tool("browser_press_key", "Press key", {"key": _STRING}, ["key"]),
    _tool("browser_hover", "Hover element", dict(_ELEMENT), ["element", "ref"]),
    _tool(
        "browser_select_option",
        "Select option",
        {**_ELEMENT, "values": {"type": "array", "items": _STRING}},
        ["element", "ref", "values"],
    ),
    _tool("browser_evaluate", "Run JavaScript", {"function": _STRING}, ["function"]),
    _tool("browser_wait_for", "Wait for condition", {"time": _NUMBER, "text": _STRING, "textGone": _STRING}),
    _tool("browser_resize", "Resize window", {"width": _NUMBER, "height": _NUMBER}, ["width", "height"]),
    _tool("browser_handle_dialog", "Handle dialog", {"accept": _BOOLEAN, "promptText": _STRING}, ["accept"]),
    _tool("browser_file_upload", "Upload files", {"paths": {"type": "array", "items": _STRING}}),
    _tool("browser_console_messages", "Get console", {"level": _STRING}),
    _tool("browser_network_requests", "Get network requests"),
]

POOL_STATUS_TOOL = _tool("pool_status", "Browser pool status")
POOL_TEST_TOOL = _tool("pool_test", "Test async response", {"message": _STRING}, ["message"])

FORWARDED_TOOL_NAMES = frozenset(tool.name for tool in FORWARDED_TOOLS)
ALL_TOOLS: List[Tool] = [*FORWARDED_TOOLS, POOL_STATUS_TOOL, POOL_TEST_TOOL]


async def handle_tool_call(coordinator: PoolCoordinator, name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Route one tool call to the pool.

    Returns:
        A tool result dict, {"content": [...], "isError"?: bool}.
    """
    arguments = arguments or {}
    dispatcher = coordinator.dispatcher

    if name == POOL_STATUS_TOOL.name:
        return dispatcher.status()
    if name == POOL_TEST_TOOL.name:
        return await dispatcher.echo(str(arguments.get("message", "")))
    if name in FORWARDED_TOOL_NAMES:
        return await dispatcher.call(name, arguments)

    return {"content": [{"type": "text", "text": f"Error: Unknown tool: {name}"}], "isError": True}


def build_server(coordinator: PoolCoordinator) -> Server:
    """Create the MCP server exposing the pool to one stdio client."""
    logger = get_logger(__name__)
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return ALL_TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> CallToolResult:
        logger.debug(f"[{name}] called")
        # Error results keep every content item the worker returned
        return CallToolResult.model_validate(await handle_tool_call(coordinator, name, arguments))

    return server


async def serve(coordinator: PoolCoordinator) -> None:
    """
    Run the MCP server over stdio until the client disconnects.

    The coordinator's background tasks are started here and the coordinator
    is shut down when the server stops, whatever the reason.
    """
    server = build_server(coordinator)
    coordinator.start()

    try:
        options = server.create_initialization_options()
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, options)
    finally:
        await coordinator.shutdown()
