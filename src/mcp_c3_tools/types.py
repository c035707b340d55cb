"""Core type definitions"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional

from semver import Version

# Called with (bytes received, total bytes or None when unknown)
ProgressCallback = Callable[[int, Optional[int]], None]


@dataclass(frozen=True)
class ArtifactRef:
    """Download location of one platform build of a release"""
    url: str


@dataclass(frozen=True)
class Release:
    """Installable release and its per-platform artifacts"""
    version: Version
    artifacts: Mapping[str, ArtifactRef] = field(default_factory=dict)

    def artifact_for(self, platform_key: str) -> Optional[ArtifactRef]:
        return self.artifacts.get(platform_key)


class VersionStatus(Enum):
    RESOLVED = "resolved"
    UNKNOWN = "unknown"
    ABSENT = "absent"


@dataclass(frozen=True)
class InstalledBinary:
    """Locally configured binary and the version it reports"""
    path: Optional[str]
    status: VersionStatus
    version: Optional[Version] = None


class ServerState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class FailureReason(Enum):
    SPAWN_ERROR = "spawn error"
    NON_ZERO_EXIT = "non-zero exit"
    KILLED = "killed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class FormatRequest:
    """One document-format invocation"""
    source_text: str
    formatter_path: str
    source_file_hint: Optional[str] = None
    config_path: Optional[str] = None


@dataclass(frozen=True)
class FormatResult:
    """Outcome of a formatter run"""
    success: bool
    text: str = ""
    reason: Optional[FailureReason] = None
    message: str = ""
    returncode: Optional[int] = None

    @classmethod
    def ok(cls, text: str) -> "FormatResult":
        return cls(success=True, text=text, returncode=0)

    @classmethod
    def failed(
        cls, reason: FailureReason, message: str, returncode: Optional[int] = None
    ) -> "FormatResult":
        return cls(success=False, reason=reason, message=message, returncode=returncode)


@dataclass(frozen=True)
class LSPConfig:
    """Language server settings"""
    enabled: bool
    path: Optional[str]
    check_for_update: bool
    send_crash_reports: bool
    debug: bool
    trace: str
    log_path: Optional[str]
    diagnostics_delay: Optional[int]
    lang_version: Optional[str]


@dataclass(frozen=True)
class FormatConfig:
    """Formatter settings"""
    enabled: bool
    path: Optional[str]
    config_path: Optional[str]
    timeout: Optional[float]


@dataclass(frozen=True)
class C3Config:
    """General C3 toolchain settings"""
    c3c_path: Optional[str]
    stdlib_path: Optional[str]


@dataclass(frozen=True)
class PlatformInfo:
    """Normalized machine description"""
    os_name: str
    arch: str

    @property
    def key(self) -> str:
        return f"{self.arch}-{self.os_name}"


@dataclass(frozen=True)
class InstallTarget:
    """Where a tool gets installed and which setting records it"""
    title: str
    install_dir: Path
    path_setting: str
