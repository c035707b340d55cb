"""Tests for the language server supervisor against a fake server process."""

import asyncio
import os
import sys

import pytest
import pytest_asyncio

from mcp_c3_tools.errors import HandshakeError, LaunchError, StopError
from mcp_c3_tools.lsp.supervisor import LanguageServerSupervisor
from mcp_c3_tools.types import ServerState

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="stub executables need a shebang")


@pytest_asyncio.fixture
async def supervisor():
    supervisor = LanguageServerSupervisor(handshake_timeout=5.0, shutdown_timeout=1.0)
    try:
        yield supervisor
    finally:
        await supervisor.stop()


async def wait_for_state(supervisor, state, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while supervisor.state is not state:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"supervisor stuck in {supervisor.state}")
        await asyncio.sleep(0.05)


def process_alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.mark.asyncio
async def test_start_and_stop(supervisor, fake_lsp, lsp_log):
    """Test a full start and graceful stop"""
    await supervisor.start(fake_lsp, ["-diagnostics-delay", "2000"])

    assert supervisor.state is ServerState.RUNNING
    assert supervisor.is_running()
    pid = supervisor.pid
    assert pid is not None

    await supervisor.stop()

    assert supervisor.state is ServerState.STOPPED
    assert supervisor.pid is None
    assert not process_alive(pid)
    log = lsp_log()
    assert log[0] == 'argv ["-diagnostics-delay", "2000"]'
    assert log[1:] == ["method initialize", "method initialized", "method shutdown", "method exit"]


@pytest.mark.asyncio
async def test_state_transitions(supervisor, fake_lsp):
    """Test listeners observe every state change"""
    transitions = []
    supervisor.add_listener(lambda prev, new: transitions.append((prev, new)))

    await supervisor.start(fake_lsp)
    await supervisor.stop()

    assert transitions == [
        (ServerState.STOPPED, ServerState.STARTING),
        (ServerState.STARTING, ServerState.RUNNING),
        (ServerState.RUNNING, ServerState.STOPPING),
        (ServerState.STOPPING, ServerState.STOPPED),
    ]


@pytest.mark.asyncio
async def test_trace_is_sent_after_initialized(supervisor, fake_lsp, lsp_log):
    """Test a non-off trace level is sent after the handshake"""
    await supervisor.start(fake_lsp, trace="verbose")
    await supervisor.stop()

    methods = [line for line in lsp_log() if line.startswith("method")]
    assert methods[:3] == ["method initialize", "method initialized", "method $/setTrace"]


@pytest.mark.asyncio
async def test_start_is_idempotent(supervisor, fake_lsp, lsp_log):
    """Test concurrent starts spawn a single process"""
    await asyncio.gather(supervisor.start(fake_lsp), supervisor.start(fake_lsp))

    assert supervisor.is_running()
    assert len([line for line in lsp_log() if line.startswith("argv")]) == 1


@pytest.mark.asyncio
async def test_stop_when_stopped(supervisor):
    """Test stopping a stopped supervisor is a no-op"""
    await supervisor.stop()
    assert supervisor.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_restart_spawns_new_process(supervisor, fake_lsp):
    """Test restart replaces the running process"""
    await supervisor.start(fake_lsp)
    first_pid = supervisor.pid

    await supervisor.restart(fake_lsp, ["-debug"])

    assert supervisor.is_running()
    assert supervisor.pid != first_pid
    assert supervisor.args == ["-debug"]
    assert not process_alive(first_pid)


@pytest.mark.asyncio
async def test_launch_missing_binary(supervisor, tmp_path):
    """Test a missing binary raises a launch error"""
    with pytest.raises(LaunchError) as exc_info:
        await supervisor.start(str(tmp_path / "missing-c3lsp"))

    assert exc_info.value.reason == "missing"
    assert supervisor.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_launch_not_executable(supervisor, tmp_path):
    """Test a non-executable file raises a launch error"""
    path = tmp_path / "c3lsp"
    path.write_text("not a program")
    path.chmod(0o644)

    with pytest.raises(LaunchError) as exc_info:
        await supervisor.start(str(path))

    assert exc_info.value.reason == "not_executable"
    assert supervisor.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_exit_during_startup(supervisor, fake_lsp):
    """Test an early exit reports the code and stderr"""
    with pytest.raises(HandshakeError) as exc_info:
        await supervisor.start(fake_lsp, ["--mode", "exit-on-start"])

    assert exc_info.value.returncode == 3
    assert "stdlib not found" in exc_info.value.stderr
    assert supervisor.state is ServerState.STOPPED
    assert supervisor.pid is None


@pytest.mark.asyncio
async def test_handshake_timeout(fake_lsp):
    """Test a silent server is killed after the handshake deadline"""
    supervisor = LanguageServerSupervisor(handshake_timeout=0.5, shutdown_timeout=0.5)

    with pytest.raises(HandshakeError, match="no initialize response"):
        await supervisor.start(fake_lsp, ["--mode", "hang-init"])

    assert supervisor.state is ServerState.STOPPED
    assert supervisor.pid is None


@pytest.mark.asyncio
async def test_handshake_error_response(supervisor, fake_lsp):
    """Test an initialize error fails the start"""
    with pytest.raises(HandshakeError, match="bad config"):
        await supervisor.start(fake_lsp, ["--mode", "error-init"])

    assert supervisor.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_unexpected_exit_is_observed(supervisor, fake_lsp):
    """Test a crash after startup moves the state to stopped without restarting"""
    await supervisor.start(fake_lsp, ["--mode", "crash-after-init"])

    await wait_for_state(supervisor, ServerState.STOPPED)

    assert supervisor.pid is None
    assert not supervisor.is_running()


@pytest.mark.asyncio
async def test_stop_kills_unresponsive_server(fake_lsp):
    """Test a server ignoring exit and SIGTERM is killed"""
    supervisor = LanguageServerSupervisor(handshake_timeout=5.0, shutdown_timeout=0.5)
    await supervisor.start(fake_lsp, ["--mode", "ignore-shutdown"])
    pid = supervisor.pid

    await supervisor.stop()

    assert supervisor.state is ServerState.STOPPED
    assert not process_alive(pid)


@pytest.mark.asyncio
async def test_start_after_failure(supervisor, fake_lsp):
    """Test the supervisor is usable after a failed start"""
    with pytest.raises(HandshakeError):
        await supervisor.start(fake_lsp, ["--mode", "exit-on-start"])

    await supervisor.start(fake_lsp)
    assert supervisor.is_running()


@pytest.mark.asyncio
async def test_restart_transitions(supervisor, fake_lsp):
    """Test restart walks through a full stop before starting again"""
    await supervisor.start(fake_lsp)
    transitions = []
    supervisor.add_listener(lambda prev, new: transitions.append((prev, new)))

    await supervisor.restart(fake_lsp)

    assert transitions == [
        (ServerState.RUNNING, ServerState.STOPPING),
        (ServerState.STOPPING, ServerState.STOPPED),
        (ServerState.STOPPED, ServerState.STARTING),
        (ServerState.STARTING, ServerState.RUNNING),
    ]


@pytest.mark.asyncio
async def test_failed_cleanup_after_handshake_still_stops(supervisor, fake_lsp, monkeypatch):
    """Test a cleanup error after a failed handshake leaves the supervisor stopped"""
    release = supervisor._release

    async def failing_release(force):
        await release(force)
        raise StopError("process could not be reaped")

    monkeypatch.setattr(supervisor, "_release", failing_release)

    with pytest.raises(StopError):
        await supervisor.start(fake_lsp, ["--mode", "exit-on-start"])

    assert supervisor.state is ServerState.STOPPED

    monkeypatch.undo()
    await supervisor.start(fake_lsp)
    assert supervisor.is_running()
