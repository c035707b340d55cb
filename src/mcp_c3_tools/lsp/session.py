"""JSON-RPC session with a language server over stdio.

Messages are framed with a ``Content-Length`` header as defined by the
Language Server Protocol base protocol. Only what the lifecycle needs is
implemented: the initialize/shutdown handshakes, request correlation and
polite answers to server-initiated requests.
"""

import asyncio
import json
import os
from typing import Any, Dict, Optional

from mcp_c3_tools.constants import LSP_CLIENT_NAME
from mcp_c3_tools.logging import get_logger

logger = get_logger(__name__)

HEADER_SEPARATOR = b"\r\n\r\n"
MAX_HEADER_SIZE = 4096


class LspResponseError(Exception):
    """Error object returned by the server for a request."""

    def __init__(self, method: str, error: Dict[str, Any]):
        self.code = error.get("code")
        self.message = error.get("message", "Unknown error")
        super().__init__(f"{method} failed with code {self.code}: {self.message}")


def encode_message(payload: Dict[str, Any]) -> bytes:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body


async def read_message(reader: asyncio.StreamReader) -> Optional[Dict[str, Any]]:
    """Read one framed message; None at end of stream."""
    try:
        header = await reader.readuntil(HEADER_SEPARATOR)
    except asyncio.IncompleteReadError:
        return None
    except asyncio.LimitOverrunError as e:
        raise ConnectionError("LSP header too large") from e

    if len(header) > MAX_HEADER_SIZE:
        raise ConnectionError("LSP header too large")

    content_length = None
    for line in header.decode("ascii", errors="replace").split("\r\n"):
        name, _, value = line.partition(":")
        if name.strip().lower() == "content-length":
            content_length = int(value.strip())
    if content_length is None:
        raise ConnectionError("LSP message without Content-Length header")

    try:
        body = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError:
        return None
    return json.loads(body.decode("utf-8"))


class LspSession:
    """Client side of an LSP connection."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._next_id = 1
        self._pending: Dict[int, asyncio.Future] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self.server_capabilities: Dict[str, Any] = {}

    def open(self) -> None:
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop(), name="lsp_message_reader")

    @property
    def closed(self) -> bool:
        return self._reader_task is not None and self._reader_task.done()

    async def _send(self, payload: Dict[str, Any]) -> None:
        self.writer.write(encode_message(payload))
        await self.writer.drain()

    async def request(self, method: str, params: Any = None, timeout: Optional[float] = None) -> Any:
        if self.closed:
            raise ConnectionError("LSP connection is closed")

        request_id = self._next_id
        self._next_id += 1
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        logger.debug({"event": "lsp_request", "id": request_id, "method": method})
        try:
            await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            message = await asyncio.wait_for(future, timeout=timeout)
        finally:
            self._pending.pop(request_id, None)

        if "error" in message:
            raise LspResponseError(method, message["error"])
        return message.get("result")

    async def notify(self, method: str, params: Any = None) -> None:
        logger.debug({"event": "lsp_notify", "method": method})
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            payload["params"] = params
        await self._send(payload)

    async def initialize(self, trace: str = "off", timeout: Optional[float] = None) -> Dict[str, Any]:
        """Run the initialize handshake."""
        params = {
            "processId": os.getpid(),
            "clientInfo": {"name": LSP_CLIENT_NAME},
            "rootUri": None,
            "capabilities": {},
            "trace": trace,
        }
        result = await self.request("initialize", params, timeout=timeout)
        self.server_capabilities = (result or {}).get("capabilities", {})
        await self.notify("initialized", {})
        if trace != "off":
            await self.notify("$/setTrace", {"value": trace})
        return result or {}

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Ask the server to shut down, then to exit."""
        await self.request("shutdown", None, timeout=timeout)
        await self.notify("exit")

    async def close(self) -> None:
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._fail_pending(ConnectionError("LSP connection closed"))
        if not self.writer.is_closing():
            self.writer.close()

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def _read_loop(self) -> None:
        try:
            while True:
                message = await read_message(self.reader)
                if message is None:
                    logger.debug({"event": "lsp_stream_eof"})
                    break
                await self._dispatch(message)
        except (ConnectionError, ValueError) as e:
            logger.error({"event": "lsp_read_failed", "error": str(e)})
        finally:
            self._fail_pending(ConnectionError("LSP server closed the connection"))

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        if "method" not in message:
            future = self._pending.get(message.get("id"))
            if future and not future.done():
                future.set_result(message)
            return

        method = message["method"]
        if "id" in message:
            # Server-initiated request; no client features are offered
            await self._send({"jsonrpc": "2.0", "id": message["id"], "result": None})
        elif method in ("window/logMessage", "window/showMessage"):
            logger.info({"event": "lsp_server_message", "message": message.get("params", {}).get("message")})
        else:
            logger.debug({"event": "lsp_notification", "method": method})
