"""Session activation and teardown."""

from mcp_c3_tools.context import ToolContext
from mcp_c3_tools.errors import C3ToolsError, log_error
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.lsp.manager import start_lsp, stop_lsp

logger = get_logger(__name__)


async def activate(ctx: ToolContext) -> None:
    """Start the language server when enabled; failures are logged only."""
    logger.info({"event": "activating", "home": str(ctx.home)})
    try:
        await start_lsp(ctx)
    except C3ToolsError as e:
        log_error(e, {"phase": "activate"}, logger)


async def deactivate(ctx: ToolContext) -> None:
    try:
        await stop_lsp(ctx)
    except C3ToolsError as e:
        log_error(e, {"phase": "deactivate"}, logger)
    logger.info({"event": "deactivated"})
