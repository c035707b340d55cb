"""Error types for the C3 tool shim."""

import logging
from typing import Any, Dict, Optional

from mcp.types import ErrorData, INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Log an error with context."""
    logger = logger or logging.getLogger("mcp_c3_tools.errors")

    error_info: Dict[str, Any] = {
        "event": "error",
        "error_type": error.__class__.__name__,
        "error_message": str(error),
    }
    if context:
        error_info["context"] = context
    if isinstance(error, C3ToolsError):
        error_info["code"] = error.code
        error_info["details"] = error.details

    logger.error(error_info)


class C3ToolsError(Exception):
    """Base error class."""

    def __init__(
        self,
        message: str,
        code: int = INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_error_data(self) -> ErrorData:
        """Convert to MCP ErrorData format."""
        return ErrorData(code=self.code, message=str(self), data=self.details)


class NetworkError(C3ToolsError):
    """Fetching remote data failed. Retryable by re-invoking."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Request to {url} failed: {reason}",
            details={"url": url, "reason": reason},
        )


class MalformedCatalogError(C3ToolsError):
    """Remote release data does not have the expected shape."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, details={"url": url} if url else None)


class InstallError(C3ToolsError):
    """Base class for artifact installation failures."""


class DownloadError(InstallError, NetworkError):
    """Artifact download failed; nothing on disk was touched."""

    def __init__(self, url: str, reason: str):
        NetworkError.__init__(self, url, reason)


class FilesystemError(InstallError):
    """Creating, writing or replacing the install directory failed."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Filesystem operation on {path} failed: {reason}",
            details={"path": path, "reason": reason},
        )


class ExtractionError(InstallError):
    """Archive is corrupt, unsupported or has no usable entry."""

    def __init__(self, archive: str, reason: str):
        super().__init__(
            f"Failed to extract {archive}: {reason}",
            details={"archive": archive, "reason": reason},
        )


class UnsupportedPlatformError(C3ToolsError):
    """No prebuilt artifact exists for the current platform."""

    def __init__(self, platform_key: str, available: Optional[list[str]] = None):
        super().__init__(
            f"No prebuilt binary available for {platform_key}",
            code=INVALID_REQUEST,
            details={"platform": platform_key, "available": available or []},
        )
        self.platform_key = platform_key


class LaunchError(C3ToolsError):
    """Server process could not be spawned."""

    def __init__(self, path: str, reason: str, message: Optional[str] = None):
        super().__init__(
            message or f"Failed to launch {path}: {reason}",
            code=INVALID_PARAMS,
            details={"path": path, "reason": reason},
        )
        self.reason = reason


class HandshakeError(C3ToolsError):
    """Server process started but did not complete the handshake."""

    def __init__(
        self,
        path: str,
        reason: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        message = f"Language server {path} failed during startup: {reason}"
        if returncode is not None:
            message += f" (exit code {returncode})"
        super().__init__(
            message,
            details={
                "path": path,
                "reason": reason,
                "returncode": returncode,
                "stderr": stderr,
            },
        )
        self.returncode = returncode
        self.stderr = stderr


class StopError(C3ToolsError):
    """Server process could not be reaped."""


class ProcessExitError(C3ToolsError):
    """Short-lived subprocess exited with a non-zero code."""

    def __init__(self, command: str, returncode: int, stderr: str):
        super().__init__(
            f"{command} exited with code {returncode}: {stderr}",
            details={"command": command, "returncode": returncode, "stderr": stderr},
        )
        self.returncode = returncode
        self.stderr = stderr


class ProcessTimeoutError(C3ToolsError):
    """Subprocess exceeded its deadline and was killed."""

    def __init__(self, command: str, timeout: float):
        super().__init__(
            f"{command} did not finish within {timeout}s",
            details={"command": command, "timeout": timeout},
        )
        self.timeout = timeout
