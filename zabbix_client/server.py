"""
zabbix_client — TYPO3 monitoring operations over MCP.

The monitoring client calls operations (GetExtensionList, ...) as MCP tools.
Every call passes the access guard (API key, allow-list, rate limit) before
it reaches the operation manager.

Usage:
    # Run directly
    python -m zabbix_client.server

    # Or via the installed command
    zabbix-client
"""

import asyncio
import json
import logging
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from zabbix_client import __version__
from zabbix_client.core.access import AccessGuard
from zabbix_client.core.config import ZabbixClientConfig, ensure_dirs
from zabbix_client.core.operations import OperationManager, build_operation_manager
from zabbix_client.core.result import OperationResult

logger = logging.getLogger("zabbix_client")

# Create MCP server
app = Server("zabbix-client")

# Wired in configure(); main() calls it before serving
config: ZabbixClientConfig = ZabbixClientConfig()
access: AccessGuard = AccessGuard(config)
operations: OperationManager = OperationManager()


def configure(new_config: ZabbixClientConfig, manager: Optional[OperationManager] = None):
    """Install config, access guard and operation manager for the handlers."""
    global config, access, operations
    config = new_config
    access = AccessGuard(new_config)
    operations = manager if manager is not None else build_operation_manager(new_config)


# ─────────────────────────────────────────────────────────────
# Tool Definitions
# ─────────────────────────────────────────────────────────────

_KEY_PROPERTY = {
    "type": "string",
    "description": "API key, required when the client is configured with one.",
}

# Built into the server rather than the operation manager; still passes the
# access guard, so it must be in allowed_operations to be callable.
ACCESS_STATUS_TOOL = "GetAccessStatus"

TOOL_DEFINITIONS = {
    "GetExtensionList": Tool(
        name="GetExtensionList",
        description=(
            "List installed TYPO3 extensions with key, load state and version. "
            "Scopes: 'system' (bundled with the core) and 'local' (installed "
            "for the site), comma-separated."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "scopes": {
                    "type": "string",
                    "description": "Comma-separated extension scopes, e.g. 'system,local'.",
                },
                "key": _KEY_PROPERTY,
            },
            "required": ["scopes"],
        },
    ),
    ACCESS_STATUS_TOOL: Tool(
        name=ACCESS_STATUS_TOOL,
        description=(
            "Show the access guard state (key requirement, allowed operations, "
            "rate limit usage) and the most recent requests."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "last_n": {
                    "type": "integer",
                    "description": "Number of recent requests to return (default 50).",
                },
                "key": _KEY_PROPERTY,
            },
        },
    ),
}


def _generic_tool(name: str) -> Tool:
    return Tool(
        name=name,
        description=f"Run the {name} monitoring operation.",
        inputSchema={"type": "object", "properties": {"key": _KEY_PROPERTY}},
    )


@app.list_tools()
async def list_tools() -> list[Tool]:
    """Advertise every registered operation as an MCP tool."""
    tools = [
        TOOL_DEFINITIONS.get(name) or _generic_tool(name)
        for name in operations.names()
    ]
    if access.is_operation_allowed(ACCESS_STATUS_TOOL):
        tools.append(TOOL_DEFINITIONS[ACCESS_STATUS_TOOL])
    return tools


# ─────────────────────────────────────────────────────────────
# Tool Execution (with access checks)
# ─────────────────────────────────────────────────────────────

@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """
    Execute an operation with access checks.

    1. Access guard (API key, allow-list, rate limit)
    2. Dispatch to the operation manager (GetAccessStatus is answered here)
    3. Return {"success", "data"} as JSON text
    """
    arguments = arguments or {}

    approved, reason = access.approve(name, arguments)
    if not approved:
        result = OperationResult(False, reason)
    elif name == ACCESS_STATUS_TOOL:
        result = _access_status(arguments)
    else:
        result = await _dispatch_operation(name, arguments)

    return [TextContent(
        type="text",
        text=json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str),
    )]


def _access_status(arguments: dict) -> OperationResult:
    """Access guard status plus the recent request log."""
    last_n = arguments.get("last_n", 50)
    if isinstance(last_n, bool) or not isinstance(last_n, int) or last_n < 0:
        return OperationResult(False, "last_n must be a non-negative integer")
    return OperationResult(True, {
        "status": access.get_status(),
        "recent_requests": access.get_request_log(last_n),
    })


async def _dispatch_operation(name: str, arguments: dict) -> OperationResult:
    """Route an operation call to its registered handler."""
    parameter = {k: v for k, v in arguments.items() if k != "key"}
    try:
        return operations.execute(name, parameter)
    except Exception as e:
        logger.error(f"Operation execution error: {name}: {e}")
        return OperationResult(False, str(e))


# ─────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────

async def _run_server():
    """Run the MCP server using stdio transport."""
    async with stdio_server() as (read_stream, write_stream):
        init_options = app.create_initialization_options()
        await app.run(read_stream, write_stream, init_options)


def main():
    """Start the zabbix_client MCP server."""
    ensure_dirs()
    loaded = ZabbixClientConfig.load()

    logging.basicConfig(
        level=getattr(logging, loaded.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    configure(loaded)

    logger.info(f"zabbix_client v{__version__} starting...")
    logger.info(f"Operations: {', '.join(operations.names())}")
    logger.info(f"API key: {'required' if loaded.access.api_key else 'NOT required'}")

    asyncio.run(_run_server())


if __name__ == "__main__":
    main()
