"""Lifecycle of the language server process."""

import asyncio
from typing import Callable, List, Optional, Sequence

from mcp_c3_tools.constants import HANDSHAKE_TIMEOUT, LSP_FLAGS, SHUTDOWN_TIMEOUT
from mcp_c3_tools.errors import HandshakeError, LaunchError, StopError
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.lsp.session import LspResponseError, LspSession
from mcp_c3_tools.types import C3Config, LSPConfig, ServerState

logger = get_logger(__name__)

StateListener = Callable[[ServerState, ServerState], None]

STDERR_TAIL_LINES = 20


def build_server_args(lsp_config: LSPConfig, c3_config: C3Config) -> List[str]:
    """Command-line arguments for the language server."""
    args: List[str] = []

    if c3_config.c3c_path:
        args += [LSP_FLAGS["C3C_PATH"], c3_config.c3c_path]

    if c3_config.stdlib_path:
        args += [LSP_FLAGS["STDLIB_PATH"], c3_config.stdlib_path]

    if lsp_config.diagnostics_delay is not None:
        args += [LSP_FLAGS["DIAGNOSTICS_DELAY"], str(lsp_config.diagnostics_delay)]

    if lsp_config.lang_version:
        args += [LSP_FLAGS["LANG_VERSION"], lsp_config.lang_version]

    if lsp_config.debug:
        args.append(LSP_FLAGS["DEBUG"])

    if lsp_config.log_path:
        args += [LSP_FLAGS["LOG_PATH"], lsp_config.log_path]

    if lsp_config.send_crash_reports:
        args.append(LSP_FLAGS["SEND_CRASH_REPORTS"])

    return args


class LanguageServerSupervisor:
    """Owns the single language server process.

    ``start``, ``stop`` and ``restart`` are serialised by a lock; a start
    while starting or running and a stop while stopped are no-ops. An
    unexpected exit while running moves the state to STOPPED without
    restarting the server.
    """

    def __init__(
        self,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
    ):
        self.handshake_timeout = handshake_timeout
        self.shutdown_timeout = shutdown_timeout
        self._state = ServerState.STOPPED
        self._lock = asyncio.Lock()
        self._listeners: List[StateListener] = []
        self._process: Optional[asyncio.subprocess.Process] = None
        self._session: Optional[LspSession] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._stderr_tail: List[str] = []
        self.server_path: Optional[str] = None
        self.args: List[str] = []

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, state: ServerState) -> None:
        previous, self._state = self._state, state
        if previous is state:
            return
        logger.debug({"event": "lsp_state", "from": previous.value, "to": state.value})
        for listener in self._listeners:
            listener(previous, state)

    async def start(self, server_path: str, args: Sequence[str] = (), trace: str = "off") -> None:
        async with self._lock:
            await self._start(server_path, args, trace)

    async def stop(self) -> None:
        async with self._lock:
            await self._stop()

    async def restart(self, server_path: str, args: Sequence[str] = (), trace: str = "off") -> None:
        async with self._lock:
            await self._stop()
            await self._start(server_path, args, trace)

    async def _start(self, server_path: str, args: Sequence[str], trace: str) -> None:
        if self._state in (ServerState.STARTING, ServerState.RUNNING):
            logger.info({"event": "lsp_already_running", "pid": self.pid})
            return

        self._set_state(ServerState.STARTING)
        self.server_path, self.args = server_path, list(args)
        logger.info({"event": "lsp_starting", "path": server_path, "args": self.args})

        try:
            self._process = await asyncio.create_subprocess_exec(
                server_path,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            self._set_state(ServerState.STOPPED)
            raise LaunchError(server_path, "missing", f"Language server not found: {server_path}") from e
        except PermissionError as e:
            self._set_state(ServerState.STOPPED)
            raise LaunchError(
                server_path, "not_executable", f"Language server is not executable: {server_path}"
            ) from e
        except OSError as e:
            self._set_state(ServerState.STOPPED)
            raise LaunchError(server_path, str(e)) from e

        self._stderr_tail = []
        self._stderr_task = asyncio.create_task(self._drain_stderr(self._process), name="lsp_stderr_reader")
        self._session = LspSession(self._process.stdout, self._process.stdin)
        self._session.open()

        try:
            await self._handshake(server_path, trace)
        except BaseException:
            try:
                await self._release(force=True)
            finally:
                self._set_state(ServerState.STOPPED)
            raise

        self._watch_task = asyncio.create_task(self._watch(self._process), name="lsp_exit_watcher")
        self._set_state(ServerState.RUNNING)
        logger.info({"event": "lsp_started", "pid": self._process.pid})

    async def _handshake(self, server_path: str, trace: str) -> None:
        assert self._session is not None and self._process is not None
        try:
            await self._session.initialize(trace=trace, timeout=self.handshake_timeout)
        except asyncio.TimeoutError:
            raise HandshakeError(
                server_path, f"no initialize response within {self.handshake_timeout}s"
            ) from None
        except (ConnectionError, LspResponseError) as e:
            returncode = await self._wait_for_exit(1.0)
            if self._stderr_task:
                await asyncio.wait({self._stderr_task}, timeout=1.0)
            raise HandshakeError(
                server_path,
                "process exited unexpectedly during startup" if returncode is not None else str(e),
                returncode=returncode,
                stderr="\n".join(self._stderr_tail),
            ) from e

    async def _wait_for_exit(self, timeout: float) -> Optional[int]:
        if self._process is None:
            return None
        try:
            return await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def _stop(self) -> None:
        if self._state is ServerState.STOPPED:
            logger.info({"event": "lsp_not_running"})
            return

        self._set_state(ServerState.STOPPING)
        logger.info({"event": "lsp_stopping", "pid": self.pid})

        # The watcher must not report the requested exit as a crash
        if self._watch_task:
            self._watch_task.cancel()

        graceful = False
        if self._session and not self._session.closed:
            try:
                await self._session.shutdown(timeout=self.shutdown_timeout)
                graceful = await self._wait_for_exit(self.shutdown_timeout) is not None
            except (asyncio.TimeoutError, ConnectionError, LspResponseError) as e:
                logger.warning({"event": "lsp_shutdown_failed", "error": str(e) or e.__class__.__name__})

        try:
            await self._release(force=not graceful)
        finally:
            self._set_state(ServerState.STOPPED)
        logger.info({"event": "lsp_stopped", "graceful": graceful})

    async def _release(self, force: bool) -> None:
        """Terminate the process if needed and drop every handle."""
        process, self._process = self._process, None
        session, self._session = self._session, None
        tasks = [t for t in (self._stderr_task, self._watch_task) if t]
        self._stderr_task = self._watch_task = None

        error: Optional[BaseException] = None
        if process is not None and process.returncode is None and force:
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.shutdown_timeout)
                except asyncio.TimeoutError:
                    process.kill()
                    await asyncio.wait_for(process.wait(), timeout=self.shutdown_timeout)
            except ProcessLookupError:
                pass
            except (asyncio.TimeoutError, OSError) as e:
                error = e

        if session is not None:
            await session.close()

        current = asyncio.current_task()
        for task in tasks:
            if task is not current and not task.done():
                task.cancel()
        await asyncio.gather(*(t for t in tasks if t is not current), return_exceptions=True)

        if error is not None:
            raise StopError(f"Could not terminate language server (pid {process.pid}): {error}") from error

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if self._process is not process or self._state is not ServerState.RUNNING:
            return

        logger.error(
            {
                "event": "lsp_exited",
                "pid": process.pid,
                "returncode": returncode,
                "stderr": self._stderr_tail[-5:],
            }
        )
        await self._release(force=False)
        self._set_state(ServerState.STOPPED)

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> None:
        assert process.stderr is not None
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            self._stderr_tail = (self._stderr_tail + [text])[-STDERR_TAIL_LINES:]
            logger.debug({"event": "lsp_stderr", "line": text})

    def __repr__(self) -> str:
        return f"LanguageServerSupervisor(state={self._state.value}, pid={self.pid}, path={self.server_path!r})"
