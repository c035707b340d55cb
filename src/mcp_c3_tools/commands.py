"""Version report for the configured C3 tools."""

import shutil
from typing import Dict, List, Optional, Sequence

from mcp_c3_tools.config import get_c3_config, get_format_config, get_lsp_config
from mcp_c3_tools.constants import C3C_FLAGS, FMT_FLAGS, LSP_FLAGS, VERSION_QUERY_TIMEOUT
from mcp_c3_tools.context import ToolContext
from mcp_c3_tools.errors import ProcessTimeoutError
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.utils.fs import async_subprocess_run

logger = get_logger(__name__)


async def get_command_version(
    command: str, args: Sequence[str], timeout: float = VERSION_QUERY_TIMEOUT
) -> Optional[str]:
    """First line printed by ``command args`` or None if it fails."""
    try:
        returncode, stdout, stderr = await async_subprocess_run(command, *args, timeout=timeout)
    except (OSError, ProcessTimeoutError) as e:
        logger.error({"event": "version_command_failed", "command": command, "error": str(e)})
        return None

    if returncode != 0:
        logger.error(
            {
                "event": "version_command_failed",
                "command": command,
                "returncode": returncode,
                "stderr": stderr.decode("utf-8", errors="replace").strip(),
            }
        )
        return None

    lines = stdout.decode("utf-8", errors="replace").strip().splitlines()
    return lines[0].strip() if lines else None


async def show_version_info(ctx: ToolContext) -> Dict[str, Dict[str, Optional[str]]]:
    """Paths and reported versions of c3lsp, c3c and c3fmt."""
    lsp_path = get_lsp_config(ctx.settings).path
    c3c_path = get_c3_config(ctx.settings).c3c_path or shutil.which("c3c")
    fmt_path = get_format_config(ctx.settings).path

    info: Dict[str, Dict[str, Optional[str]]] = {}
    for name, path, flag in (
        ("c3lsp", lsp_path, LSP_FLAGS["VERSION"]),
        ("c3c", c3c_path, C3C_FLAGS["VERSION"]),
        ("c3fmt", fmt_path, FMT_FLAGS["VERSION"]),
    ):
        version = await get_command_version(path, [flag]) if path else None
        info[name] = {"path": path, "version": version}

    await ctx.prompter.show_info("\n".join(format_version_lines(info)))
    return info


def format_version_lines(info: Dict[str, Dict[str, Optional[str]]]) -> List[str]:
    lines = []
    for name, entry in info.items():
        if not entry["path"]:
            lines.append(f"{name}: not found")
        else:
            lines.append(f"{name}: {entry['version'] or 'unknown version'} ({entry['path']})")
    return lines
