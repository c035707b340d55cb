"""MCP server implementation."""
import asyncio
import json
from typing import Any, Dict, List, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.models import InitializationOptions
from mcp.server import stdio

from mcp_c3_tools import __version__
from mcp_c3_tools.commands import format_version_lines, show_version_info
from mcp_c3_tools.context import ToolContext, create_context
from mcp_c3_tools.errors import C3ToolsError, log_error
from mcp_c3_tools.extension import activate, deactivate
from mcp_c3_tools.formatting.document import format_document
from mcp_c3_tools.logging import configure_logging, get_logger
from mcp_c3_tools.lsp.manager import lsp_status, restart_lsp, start_lsp, stop_lsp
from mcp_c3_tools.lsp.updates import CHOICE_DOWNLOAD, CHOICE_UPDATE, check_for_updates, install_lsp
from mcp_c3_tools.ui import ScriptedPrompter

logger = get_logger("server")

SERVER_NAME = "mcp-c3-tools"

_auto_install_schema = {
    "type": "boolean",
    "description": "Accept download and update offers without asking",
    "default": False,
}

tools = [
    types.Tool(
        name="c3_lsp_start",
        description="Start the C3 language server using the current settings",
        inputSchema={"type": "object", "properties": {"auto_install": _auto_install_schema}},
    ),
    types.Tool(
        name="c3_lsp_stop",
        description="Stop the C3 language server",
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="c3_lsp_restart",
        description="Restart the C3 language server, re-reading settings",
        inputSchema={"type": "object", "properties": {"auto_install": _auto_install_schema}},
    ),
    types.Tool(
        name="c3_lsp_status",
        description="Report the C3 language server state",
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="c3_lsp_check_updates",
        description="Compare the installed C3 language server with the latest release",
        inputSchema={"type": "object", "properties": {"auto_install": _auto_install_schema}},
    ),
    types.Tool(
        name="c3_lsp_install",
        description="Download and install the latest C3 language server for this platform",
        inputSchema={"type": "object", "properties": {}},
    ),
    types.Tool(
        name="c3_format",
        description="Format C3 source text with c3fmt",
        inputSchema={
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Source text to format"},
                "file_name": {"type": "string", "description": "Name of the file being formatted"},
                "auto_install": _auto_install_schema,
            },
            "required": ["text"],
        },
    ),
    types.Tool(
        name="c3_show_versions",
        description="Show paths and versions of c3lsp, c3c and c3fmt",
        inputSchema={"type": "object", "properties": {}},
    ),
]


def _response(result: Dict[str, Any]) -> List[types.TextContent]:
    return [types.TextContent(type="text", text=json.dumps(result))]


def _success(data: Any, prompter: Optional[ScriptedPrompter] = None) -> List[types.TextContent]:
    result: Dict[str, Any] = {"success": True, "data": data}
    if prompter is not None and (prompter.infos or prompter.errors):
        result["messages"] = prompter.infos + prompter.errors
    return _response(result)


def _failure(error: str, prompter: Optional[ScriptedPrompter] = None) -> List[types.TextContent]:
    result: Dict[str, Any] = {"success": False, "error": error}
    if prompter is not None and prompter.infos:
        result["messages"] = prompter.infos
    return _response(result)


def _prompter_for(arguments: Dict[str, Any]) -> ScriptedPrompter:
    answers = [CHOICE_DOWNLOAD, CHOICE_UPDATE] if arguments.get("auto_install") else []
    return ScriptedPrompter(answers)


async def handle_tool(ctx: ToolContext, name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
    """Run one tool call against ``ctx`` and encode the outcome."""
    logger.debug({"event": "tool_call", "tool": name, "arguments": sorted(arguments)})
    prompter = _prompter_for(arguments)
    call_ctx = ctx.with_prompter(prompter)

    try:
        if name == "c3_lsp_start":
            running = await start_lsp(call_ctx)
            return _success({"running": running, **lsp_status(call_ctx)}, prompter)

        elif name == "c3_lsp_stop":
            await stop_lsp(call_ctx)
            return _success(lsp_status(call_ctx))

        elif name == "c3_lsp_restart":
            running = await restart_lsp(call_ctx)
            return _success({"running": running, **lsp_status(call_ctx)}, prompter)

        elif name == "c3_lsp_status":
            return _success(lsp_status(call_ctx))

        elif name == "c3_lsp_check_updates":
            installed = await check_for_updates(call_ctx)
            return _success(
                {"installed": installed, "offers": [message for message, _ in prompter.prompts]},
                prompter,
            )

        elif name == "c3_lsp_install":
            installed = await install_lsp(call_ctx)
            if installed is None:
                return _failure("; ".join(prompter.errors) or "Installation failed", prompter)
            return _success({"path": installed}, prompter)

        elif name == "c3_format":
            result = await format_document(call_ctx, arguments["text"], arguments.get("file_name"))
            if result is None:
                return _failure("Formatting is disabled or no formatter is configured", prompter)
            if not result.success:
                return _failure(f"{result.reason.value}: {result.message}", prompter)
            return _success({"text": result.text}, prompter)

        elif name == "c3_show_versions":
            info = await show_version_info(call_ctx)
            return _success({"tools": info, "lines": format_version_lines(info)})

        return _failure(f"Unknown tool: {name}")

    except C3ToolsError as e:
        log_error(e, {"tool": name}, logger)
        return _failure(str(e), prompter)
    except KeyError as e:
        return _failure(f"Missing argument: {e.args[0]}")


def init_server(ctx: ToolContext) -> Server:
    logger.info({"event": "tools_registered", "tools": [t.name for t in tools]})

    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        return await handle_tool(ctx, name, arguments or {})

    return server


async def serve(ctx: Optional[ToolContext] = None) -> None:
    configure_logging()
    ctx = ctx or create_context()
    logger.info({"event": "server_starting", "version": __version__})

    server = init_server(ctx)
    await activate(ctx)
    try:
        async with stdio.stdio_server() as (read_stream, write_stream):
            init_options = InitializationOptions(
                server_name=SERVER_NAME,
                server_version=__version__,
                capabilities=types.ServerCapabilities(
                    tools=types.ToolsCapability(listChanged=False),
                    logging=types.LoggingCapability(),
                ),
            )
            await server.run(read_stream, write_stream, init_options)
    finally:
        await deactivate(ctx)


def main() -> None:
    """Run the MCP server."""
    asyncio.run(serve())
