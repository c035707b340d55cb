import sys

import pytest
from unittest.mock import AsyncMock, patch

from mcp_c3_tools.binaries.releases import parse_version
from mcp_c3_tools.constants import SKIP_FMT_SETUP_KEY
from mcp_c3_tools.errors import NetworkError
from mcp_c3_tools.formatting.document import (
    CHOICE_BROWSE,
    CHOICE_DOWNLOAD,
    CHOICE_NEVER,
    format_document,
    prompt_format_setup,
)
from mcp_c3_tools.types import ArtifactRef, FailureReason, Release

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="stub executables need a shebang")

UPPERCASE = """
import sys
sys.stdout.write(sys.stdin.read().upper())
"""


@pytest.fixture
def formatter(make_executable):
    return make_executable("c3fmt", UPPERCASE)


@pytest.fixture
def enabled(ctx):
    ctx.settings.update("c3.format.enable", True)
    return ctx


@pytest.mark.asyncio
async def test_disabled(ctx, formatter):
    """Test formatting is off by default"""
    ctx.settings.update("c3.format.path", formatter)

    assert await format_document(ctx, "module x;") is None


@pytest.mark.asyncio
async def test_format_with_configured_path(enabled, formatter):
    """Test the configured formatter is used"""
    enabled.settings.update("c3.format.path", formatter)

    result = await format_document(enabled, "module x;", "x.c3")

    assert result.success
    assert result.text == "MODULE X;"


@pytest.mark.asyncio
async def test_failure_is_reported(enabled, prompter, make_executable):
    """Test formatter failures reach the error channel"""
    enabled.settings.update("c3.format.path", make_executable("c3fmt", "import sys; sys.exit(4)"))

    result = await format_document(enabled, "module x;")

    assert result.reason is FailureReason.NON_ZERO_EXIT
    assert prompter.errors and "non-zero exit" in prompter.errors[0]


@pytest.mark.asyncio
async def test_missing_formatter_declined(enabled, prompter):
    """Test a declined setup prompt skips formatting"""
    assert await format_document(enabled, "module x;") is None
    assert prompter.prompts[0][1] == [CHOICE_DOWNLOAD, CHOICE_BROWSE, CHOICE_NEVER]


@pytest.mark.asyncio
async def test_missing_formatter_browse(enabled, prompter, formatter):
    """Test a browsed formatter is recorded and used"""
    prompter.answers = [CHOICE_BROWSE]
    prompter.file_path = formatter

    result = await format_document(enabled, "module x;")

    assert result.text == "MODULE X;"
    assert enabled.settings.get("c3.format.path") == formatter


@pytest.mark.asyncio
async def test_dont_ask_again(enabled, prompter):
    """Test the skip flag suppresses later prompts"""
    prompter.answers = [CHOICE_NEVER]

    await prompt_format_setup(enabled)
    await prompt_format_setup(enabled)

    assert enabled.state.get(SKIP_FMT_SETUP_KEY) is True
    assert len(prompter.prompts) == 1


@pytest.mark.asyncio
async def test_download_formatter(enabled, prompter, formatter):
    """Test downloading c3fmt from its GitHub release"""
    prompter.answers = [CHOICE_DOWNLOAD]
    release = Release(parse_version("0.2.1"), {"x86_64-linux": ArtifactRef("https://example.com/c3fmt.tar.gz")})

    with patch("mcp_c3_tools.formatting.document.fetch_github_release", AsyncMock(return_value=release)) as fetch, patch(
        "mcp_c3_tools.formatting.document.install_release", AsyncMock(return_value=formatter)
    ) as install:
        result = await format_document(enabled, "module x;")

    fetch.assert_awaited_once_with("lmichaudel", "c3fmt")
    assert install.call_args.args[1] == enabled.fmt_target.install_dir
    assert enabled.settings.get("c3.format.path") == formatter
    assert result.text == "MODULE X;"


@pytest.mark.asyncio
async def test_download_failure(enabled, prompter):
    """Test a failed release lookup is reported"""
    prompter.answers = [CHOICE_DOWNLOAD]
    failing = AsyncMock(side_effect=NetworkError("https://api.github.com", "timeout"))

    with patch("mcp_c3_tools.formatting.document.fetch_github_release", failing):
        assert await format_document(enabled, "module x;") is None

    assert prompter.errors[0].startswith("Failed to install C3FMT")
