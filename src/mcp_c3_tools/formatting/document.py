"""Format documents with c3fmt, installing it on request."""

from typing import Optional

from mcp_c3_tools.binaries.installer import install_release
from mcp_c3_tools.binaries.releases import fetch_github_release
from mcp_c3_tools.config import get_format_config
from mcp_c3_tools.constants import C3FMT_OWNER, C3FMT_REPO, SKIP_FMT_SETUP_KEY
from mcp_c3_tools.context import ToolContext
from mcp_c3_tools.errors import C3ToolsError, UnsupportedPlatformError, log_error
from mcp_c3_tools.formatting.bridge import run_formatter
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import FormatRequest, FormatResult

logger = get_logger(__name__)

CHOICE_DOWNLOAD = "Download and install"
CHOICE_BROWSE = "Browse..."
CHOICE_NEVER = "Don't ask again"


async def prompt_format_setup(ctx: ToolContext) -> Optional[str]:
    """Ask how to obtain a c3fmt binary; returns its path if one was set."""
    if ctx.state.get(SKIP_FMT_SETUP_KEY):
        logger.info({"event": "format_setup_skipped"})
        return None

    choice = await ctx.prompter.show_choice(
        "C3FMT is not configured. Download it or select an existing binary?",
        [CHOICE_DOWNLOAD, CHOICE_BROWSE, CHOICE_NEVER],
    )

    if choice == CHOICE_DOWNLOAD:
        return await install_formatter(ctx)

    if choice == CHOICE_BROWSE:
        selected = await ctx.prompter.pick_file("Select C3FMT executable")
        if selected:
            ctx.settings.update(ctx.fmt_target.path_setting, selected)
        return selected

    if choice == CHOICE_NEVER:
        ctx.state.update(SKIP_FMT_SETUP_KEY, True)
    return None


async def install_formatter(ctx: ToolContext) -> Optional[str]:
    """Install the latest c3fmt release and record its path."""
    target = ctx.fmt_target
    try:
        release = await fetch_github_release(C3FMT_OWNER, C3FMT_REPO)
        binary = await install_release(target.title, target.install_dir, release)
    except UnsupportedPlatformError as e:
        await ctx.prompter.show_error(f"No C3FMT binary available for: {e.platform_key}")
        return None
    except C3ToolsError as e:
        log_error(e, {"title": target.title}, logger)
        await ctx.prompter.show_error(f"Failed to install C3FMT: {e}")
        return None

    ctx.settings.update(target.path_setting, str(binary))
    await ctx.prompter.show_info(f"C3FMT installed at: {binary}")
    return str(binary)


async def format_document(ctx: ToolContext, text: str, file_name: Optional[str] = None) -> Optional[FormatResult]:
    """Format ``text``; None when formatting is disabled or unavailable."""
    config = get_format_config(ctx.settings)
    if not config.enabled:
        logger.info({"event": "format_disabled"})
        return None

    formatter_path = config.path or await prompt_format_setup(ctx)
    if not formatter_path:
        logger.warning({"event": "format_skipped", "reason": "no formatter path configured"})
        return None

    request = FormatRequest(
        source_text=text,
        formatter_path=formatter_path,
        source_file_hint=file_name,
        config_path=config.config_path,
    )
    result = await run_formatter(request, timeout=config.timeout)
    if not result.success:
        logger.error({"event": "format_failed", "reason": result.reason.value, "message": result.message})
        await ctx.prompter.show_error(f"C3FMT failed ({result.reason.value}): {result.message}")
    return result
