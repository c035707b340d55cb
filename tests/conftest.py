import sys
import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import aiohttp

from mcp_c3_tools.config import HOME_ENV, SETTINGS_ENV
from mcp_c3_tools.context import create_context
from mcp_c3_tools.lsp.supervisor import LanguageServerSupervisor
from mcp_c3_tools.ui import ScriptedPrompter

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def tool_home(tmp_path, monkeypatch):
    """Point the tool home at a temporary directory"""
    home = tmp_path / "home"
    monkeypatch.setenv(HOME_ENV, str(home))
    monkeypatch.delenv(SETTINGS_ENV, raising=False)
    monkeypatch.delenv("FAKE_LSP_MODE", raising=False)
    return home


@pytest.fixture
def prompter():
    return ScriptedPrompter()


@pytest_asyncio.fixture
async def ctx(tool_home, prompter):
    """Tool context with fast supervisor timeouts"""
    context = create_context(tool_home, prompter)
    context.supervisor = LanguageServerSupervisor(handshake_timeout=5.0, shutdown_timeout=1.0)
    try:
        yield context
    finally:
        await context.supervisor.stop()


@pytest.fixture
def make_executable(tmp_path):
    """Write a Python script with a shebang and make it executable"""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def factory(name: str, source: str) -> str:
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n{textwrap.dedent(source)}")
        path.chmod(0o755)
        return str(path)

    return factory


@pytest.fixture
def fake_lsp(make_executable, tmp_path, monkeypatch):
    """Path of the fake language server; its message log is in tmp_path/lsp.log"""
    monkeypatch.setenv("FAKE_LSP_LOG", str(tmp_path / "lsp.log"))
    return make_executable("c3lsp", (FIXTURES_DIR / "fake_lsp.py").read_text())


@pytest.fixture
def lsp_log(tmp_path):
    def read():
        path = tmp_path / "lsp.log"
        return path.read_text().splitlines() if path.exists() else []

    return read


async def _iter_chunks(chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def mock_http(monkeypatch):
    """Patch aiohttp.ClientSession to serve a canned response"""

    def factory(json_data=None, status=200, chunks=(), content_length=None, get_error=None):
        response = MagicMock()
        response.status = status
        response.content_length = content_length
        response.raise_for_status = MagicMock()
        response.json = AsyncMock(return_value=json_data)
        response.content.iter_chunked = MagicMock(return_value=_iter_chunks(list(chunks)))

        request = MagicMock()
        request.__aenter__ = AsyncMock(return_value=response)
        request.__aexit__ = AsyncMock(return_value=False)

        session = MagicMock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        session.get = MagicMock(return_value=request, side_effect=get_error)

        monkeypatch.setattr(aiohttp, "ClientSession", MagicMock(return_value=session))
        return session, response

    return factory
