"""Download and install release artifacts."""

import os
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse

from mcp_c3_tools.binaries.platforms import platform_key
from mcp_c3_tools.errors import FilesystemError, UnsupportedPlatformError
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import ProgressCallback, Release
from mcp_c3_tools.utils.fetching import download_bytes, extract_archive
from mcp_c3_tools.utils.fs import (
    clean_stale_siblings,
    make_sibling_dir,
    remove_tree,
    swap_directory,
)

logger = get_logger(__name__)

EXECUTABLE_MODE = 0o755


def download_progress_logger(title: str) -> ProgressCallback:
    """Progress sink that logs every 10% (or every MiB when the size is unknown)."""
    last_step = -1

    def report(received: int, total: Optional[int]) -> None:
        nonlocal last_step
        step = received * 10 // total if total else received // (1024 * 1024)
        if step != last_step:
            last_step = step
            logger.info(
                {
                    "event": "download_progress",
                    "title": title,
                    "received": received,
                    "total": total,
                    "percent": round(received * 100 / total) if total else None,
                }
            )

    return report


async def download_artifact(url: str, progress: Optional[ProgressCallback] = None) -> bytes:
    return await download_bytes(url, progress)


def _archive_name(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name or "artifact"
    return f".download-{name}"


async def install(
    title: str,
    install_dir: Path,
    artifact_url: str,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """Install the binary from ``artifact_url`` into ``install_dir``.

    The archive is downloaded into memory, unpacked into a staging
    directory next to ``install_dir`` and swapped into place once the
    executable is ready, so ``install_dir`` holds either the previous or
    the new install. Returns the absolute path of the executable.

    Raises DownloadError, FilesystemError or ExtractionError.
    """
    install_dir = Path(install_dir).absolute()
    logger.info({"event": "install_start", "title": title, "url": artifact_url, "install_dir": str(install_dir)})

    data = await download_artifact(artifact_url, progress or download_progress_logger(title))

    clean_stale_siblings(install_dir)
    try:
        staging = make_sibling_dir(install_dir)
    except OSError as e:
        raise FilesystemError(str(install_dir.parent), str(e)) from e

    try:
        archive_path = staging / _archive_name(artifact_url)
        try:
            archive_path.write_bytes(data)
        except OSError as e:
            raise FilesystemError(str(archive_path), str(e)) from e

        extracted = extract_archive(archive_path, staging)
        archive_path.unlink()

        executable = extracted[0]
        try:
            os.chmod(executable, EXECUTABLE_MODE)
        except OSError as e:
            raise FilesystemError(str(executable), str(e)) from e

        relative = executable.relative_to(staging)
        try:
            swap_directory(staging, install_dir)
        except OSError as e:
            raise FilesystemError(str(install_dir), str(e)) from e
    except BaseException:
        remove_tree(staging)
        raise

    executable_path = install_dir / relative
    logger.info({"event": "install_complete", "title": title, "path": str(executable_path)})
    return executable_path


async def install_release(
    title: str,
    install_dir: Path,
    release: Release,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """Install the artifact of ``release`` built for this machine.

    Raises UnsupportedPlatformError before any download when the release
    has no artifact for the current platform key.
    """
    key = platform_key()
    artifact = release.artifact_for(key)
    if artifact is None:
        logger.error(
            {"event": "unsupported_platform", "title": title, "platform": key, "available": sorted(release.artifacts)}
        )
        raise UnsupportedPlatformError(key, sorted(release.artifacts))

    logger.info({"event": "install_release", "title": title, "version": str(release.version), "platform": key})
    return await install(title, install_dir, artifact.url, progress)
