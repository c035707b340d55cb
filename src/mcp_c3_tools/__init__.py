"""MCP server that manages the C3 language server and formatter."""

from mcp_c3_tools.types import (
    ArtifactRef,
    FailureReason,
    FormatRequest,
    FormatResult,
    InstalledBinary,
    Release,
    ServerState,
    VersionStatus,
)
from mcp_c3_tools.errors import (
    C3ToolsError,
    DownloadError,
    ExtractionError,
    FilesystemError,
    HandshakeError,
    InstallError,
    LaunchError,
    MalformedCatalogError,
    NetworkError,
    ProcessExitError,
    ProcessTimeoutError,
    StopError,
    UnsupportedPlatformError,
)

__version__ = "0.1.0"

__all__ = [
    # Types
    "ArtifactRef",
    "FailureReason",
    "FormatRequest",
    "FormatResult",
    "InstalledBinary",
    "Release",
    "ServerState",
    "VersionStatus",
    # Errors
    "C3ToolsError",
    "DownloadError",
    "ExtractionError",
    "FilesystemError",
    "HandshakeError",
    "InstallError",
    "LaunchError",
    "MalformedCatalogError",
    "NetworkError",
    "ProcessExitError",
    "ProcessTimeoutError",
    "StopError",
    "UnsupportedPlatformError",
]
