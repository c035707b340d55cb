"""Platform detection and mapping."""

import platform
import re
import sys
from typing import Dict, Optional

from mcp_c3_tools.types import PlatformInfo

# Architecture aliases reported by different systems
ARCH_MAPPINGS: Dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "arm64",
    "i386": "x86",
    "i686": "x86",
}

# Operating system families, matched on sys.platform prefix
OS_MAPPINGS: Dict[str, str] = {
    "linux": "linux",
    "darwin": "darwin",
    "win32": "win32",
    "cygwin": "win32",
    "freebsd": "freebsd",
}

# Tokens used in release asset names for each OS family
ASSET_OS_TOKENS: Dict[str, tuple[str, ...]] = {
    "linux": ("linux",),
    "darwin": ("darwin", "macos", "apple", "osx"),
    "win32": ("windows", "win64", "win32", "win"),
    "freebsd": ("freebsd",),
}

# Tokens used in release asset names for each architecture
ASSET_ARCH_TOKENS: Dict[str, tuple[str, ...]] = {
    "x86_64": ("x86_64", "amd64", "x64"),
    "aarch64": ("aarch64", "arm64"),
    "arm64": ("arm64", "aarch64"),
    "x86": ("i686", "i386", "x86"),
}


def normalize_os(system: str) -> str:
    for prefix, name in OS_MAPPINGS.items():
        if system.startswith(prefix):
            return name
    return system.lower()


def normalize_arch(machine: str) -> str:
    machine = machine.lower()
    return ARCH_MAPPINGS.get(machine, machine)


def get_platform_info(system: Optional[str] = None, machine: Optional[str] = None) -> PlatformInfo:
    """Get current platform information."""
    return PlatformInfo(
        os_name=normalize_os(system if system is not None else sys.platform),
        arch=normalize_arch(machine if machine is not None else platform.machine()),
    )


def platform_key() -> str:
    """Key of the running machine in a release's artifact mapping, e.g. ``x86_64-linux``."""
    return get_platform_info().key


def _has_token(name: str, token: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(token)}(?![a-z0-9])", name) is not None


def platform_key_for_asset(asset_name: str) -> Optional[str]:
    """Infer the platform key a release asset was built for from its file name."""
    name = asset_name.lower()

    os_name = next(
        (os_key for os_key, tokens in ASSET_OS_TOKENS.items() if any(_has_token(name, t) for t in tokens)),
        None,
    )
    if os_name is None:
        return None

    arch = next(
        (arch_key for arch_key, tokens in ASSET_ARCH_TOKENS.items() if any(_has_token(name, t) for t in tokens)),
        None,
    )
    # Single-arch builds often omit the architecture
    if arch is None:
        arch = "x86_64"

    # macOS reports arm64, Linux reports aarch64
    if arch in ("aarch64", "arm64"):
        arch = "arm64" if os_name == "darwin" else "aarch64"

    return f"{arch}-{os_name}"
