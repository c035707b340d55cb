"""Language server setup and update flow."""

from typing import Optional

from mcp_c3_tools.binaries.installer import install_release
from mcp_c3_tools.binaries.releases import (
    fetch_latest_release,
    is_update_due,
    resolve_installed_version,
)
from mcp_c3_tools.config import get_lsp_config
from mcp_c3_tools.constants import C3_LSP_RELEASES_URL, LSP_FLAGS, SKIP_LSP_SETUP_KEY
from mcp_c3_tools.context import ToolContext
from mcp_c3_tools.errors import InstallError, UnsupportedPlatformError, log_error
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import Release, VersionStatus

logger = get_logger(__name__)

CHOICE_UPDATE = "Update"
CHOICE_LATER = "Later"
CHOICE_DOWNLOAD = "Download and install"
CHOICE_BROWSE = "Browse..."
CHOICE_NEVER = "Don't ask again"


async def check_for_updates(ctx: ToolContext, releases_url: str = C3_LSP_RELEASES_URL) -> Optional[str]:
    """Offer setup or an update for the language server.

    Returns the newly installed binary path, if anything was installed.
    """
    config = get_lsp_config(ctx.settings)

    installed = await resolve_installed_version(config.path, LSP_FLAGS["VERSION"])
    if installed.status is VersionStatus.ABSENT:
        logger.warning({"event": "lsp_path_missing"})
        return await prompt_lsp_setup(ctx, releases_url=releases_url)
    if installed.status is VersionStatus.UNKNOWN:
        logger.error({"event": "lsp_version_unknown", "path": installed.path})
        return await prompt_lsp_setup(ctx, reinstall=True, releases_url=releases_url)

    logger.info({"event": "lsp_current_version", "version": str(installed.version)})

    latest = await fetch_latest_release(releases_url)
    if latest is None:
        return None

    if not is_update_due(installed, latest.version):
        logger.info({"event": "lsp_up_to_date", "version": str(installed.version)})
        return None

    logger.warning({"event": "lsp_update_available", "current": str(installed.version), "latest": str(latest.version)})
    choice = await ctx.prompter.show_choice(
        f"C3 LSP update available: {latest.version}", [CHOICE_UPDATE, CHOICE_LATER]
    )
    if choice == CHOICE_UPDATE:
        return await install_lsp_release(ctx, latest)
    return None


async def prompt_lsp_setup(
    ctx: ToolContext, reinstall: bool = False, releases_url: str = C3_LSP_RELEASES_URL
) -> Optional[str]:
    """Ask how to obtain a language server binary when none is usable."""
    config = get_lsp_config(ctx.settings)

    if config.path and not reinstall:
        logger.info({"event": "lsp_path_configured", "path": config.path})
        return None

    if ctx.state.get(SKIP_LSP_SETUP_KEY):
        logger.info({"event": "lsp_setup_skipped"})
        return None

    message = (
        "The configured C3 language server does not report a usable version. Reinstall it?"
        if reinstall
        else "C3 Language Server provides autocomplete, error checking, and more. Set it up now?"
    )
    choice = await ctx.prompter.show_choice(message, [CHOICE_DOWNLOAD, CHOICE_BROWSE, CHOICE_NEVER])

    if choice == CHOICE_DOWNLOAD:
        logger.info({"event": "lsp_setup_download"})
        return await install_lsp(ctx, releases_url)

    if choice == CHOICE_BROWSE:
        selected = await ctx.prompter.pick_file("Select C3 Language Server executable")
        if selected:
            ctx.settings.update(ctx.lsp_target.path_setting, selected)
            logger.info({"event": "lsp_path_set", "path": selected})
        return selected

    if choice == CHOICE_NEVER:
        logger.info({"event": "lsp_setup_disabled"})
        ctx.state.update(SKIP_LSP_SETUP_KEY, True)
        return None

    logger.info({"event": "lsp_setup_dismissed"})
    return None


async def install_lsp(ctx: ToolContext, releases_url: str = C3_LSP_RELEASES_URL) -> Optional[str]:
    """Install the latest language server release."""
    latest = await fetch_latest_release(releases_url)
    if latest is None:
        await ctx.prompter.show_error("Could not fetch the latest C3 LSP version")
        return None
    return await install_lsp_release(ctx, latest)


async def install_lsp_release(ctx: ToolContext, release: Release) -> Optional[str]:
    """Install ``release`` for this platform and record its path in settings."""
    target = ctx.lsp_target
    try:
        binary = await install_release(target.title, target.install_dir, release)
    except UnsupportedPlatformError as e:
        await ctx.prompter.show_error(f"No C3 LSP binary available for: {e.platform_key}")
        return None
    except InstallError as e:
        log_error(e, {"title": target.title, "version": str(release.version)}, logger)
        await ctx.prompter.show_error(f"Failed to install C3 LSP binary: {e}")
        return None

    ctx.settings.update(target.path_setting, str(binary))
    await ctx.prompter.show_info(f"LSP installed at: {binary}")
    return str(binary)
