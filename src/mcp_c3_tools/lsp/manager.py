"""Start, stop and restart the language server from current settings."""

from typing import Any, Dict, List, Optional, Tuple

from mcp_c3_tools.config import get_c3_config, get_lsp_config
from mcp_c3_tools.context import ToolContext
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.lsp.supervisor import build_server_args
from mcp_c3_tools.lsp.updates import check_for_updates

logger = get_logger(__name__)


async def _launch_settings(ctx: ToolContext) -> Optional[Tuple[str, List[str], str]]:
    """Path, arguments and trace level to launch with, or None when the
    server should not run."""
    lsp_config = get_lsp_config(ctx.settings)
    if not lsp_config.enabled:
        logger.info({"event": "lsp_disabled"})
        return None

    if lsp_config.check_for_update:
        await check_for_updates(ctx)
        # Setup or an update may have changed the path
        lsp_config = get_lsp_config(ctx.settings)

    if not lsp_config.path:
        logger.warning({"event": "lsp_not_started", "reason": "no language server path configured"})
        return None

    args = build_server_args(lsp_config, get_c3_config(ctx.settings))
    trace = "verbose" if lsp_config.debug else lsp_config.trace
    return lsp_config.path, args, trace


async def start_lsp(ctx: ToolContext) -> bool:
    """Start the server unless disabled or already running.

    Returns whether the server is running afterwards. Launch and
    handshake failures propagate.
    """
    if ctx.supervisor.is_running():
        logger.info({"event": "lsp_already_running"})
        return True

    launch = await _launch_settings(ctx)
    if launch is None:
        return False

    path, args, trace = launch
    await ctx.supervisor.start(path, args, trace=trace)
    return ctx.supervisor.is_running()


async def stop_lsp(ctx: ToolContext) -> None:
    await ctx.supervisor.stop()


async def restart_lsp(ctx: ToolContext) -> bool:
    """Restart with freshly read settings as one supervisor operation."""
    logger.info({"event": "lsp_restarting"})
    launch = await _launch_settings(ctx)
    if launch is None:
        await stop_lsp(ctx)
        return False

    path, args, trace = launch
    await ctx.supervisor.restart(path, args, trace=trace)
    return ctx.supervisor.is_running()


def is_lsp_running(ctx: ToolContext) -> bool:
    return ctx.supervisor.is_running()


def lsp_status(ctx: ToolContext) -> Dict[str, Any]:
    supervisor = ctx.supervisor
    return {
        "state": supervisor.state.value,
        "running": supervisor.is_running(),
        "pid": supervisor.pid,
        "path": supervisor.server_path,
        "args": supervisor.args,
    }
