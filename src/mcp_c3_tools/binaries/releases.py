"""Release catalog and version resolution."""

from typing import Any, Iterable, List, Optional

from semver import Version

from mcp_c3_tools.binaries.platforms import platform_key_for_asset
from mcp_c3_tools.constants import (
    C3_LSP_RELEASES_URL,
    GITHUB_API_BASE,
    GITHUB_REPOS_PATH,
    LATEST_PATH,
    RELEASES_PATH,
    VERSION_QUERY_TIMEOUT,
)
from mcp_c3_tools.errors import (
    C3ToolsError,
    MalformedCatalogError,
    ProcessTimeoutError,
)
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import ArtifactRef, InstalledBinary, Release, VersionStatus
from mcp_c3_tools.utils.fetching import fetch_json
from mcp_c3_tools.utils.fs import async_subprocess_run

logger = get_logger(__name__)


def parse_version(text: Optional[str]) -> Optional[Version]:
    """Parse ``[v]MAJOR.MINOR.PATCH[-prerelease][+build]``.

    Ordering follows semantic-version precedence; build metadata is kept
    but ignored when comparing. Returns None for anything else.
    """
    if not text:
        return None
    text = text.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return Version.parse(text)
    except (TypeError, ValueError):
        return None


def _parse_artifacts(raw: Any) -> dict[str, ArtifactRef]:
    if not isinstance(raw, dict):
        return {}
    artifacts = {}
    for key, value in raw.items():
        if isinstance(value, dict) and isinstance(value.get("url"), str):
            artifacts[str(key)] = ArtifactRef(url=value["url"])
    return artifacts


def parse_catalog(data: Any, url: Optional[str] = None) -> List[Release]:
    """Turn a ``{"releases": [...]}`` document into releases, in fetch order."""
    if not isinstance(data, dict) or not isinstance(data.get("releases"), list):
        raise MalformedCatalogError("Release catalog has no 'releases' list", url)

    entries = data["releases"]
    if not entries:
        raise MalformedCatalogError("No releases found in catalog", url)

    releases = []
    for entry in entries:
        raw_version = entry.get("version") if isinstance(entry, dict) else None
        version = parse_version(raw_version if isinstance(raw_version, str) else None)
        if version is None:
            logger.warning({"event": "release_dropped", "version": raw_version, "url": url})
            continue
        releases.append(Release(version=version, artifacts=_parse_artifacts(entry.get("artifacts"))))

    if not releases:
        raise MalformedCatalogError("No release in catalog has a valid version", url)

    return releases


async def fetch_catalog(url: str = C3_LSP_RELEASES_URL) -> List[Release]:
    """Fetch and parse the release catalog.

    Raises NetworkError or MalformedCatalogError.
    """
    logger.info({"event": "fetching_catalog", "url": url})
    data = await fetch_json(url)
    return parse_catalog(data, url)


def select_latest(catalog: Iterable[Release]) -> Release:
    """Release with the greatest version; ties resolve to the first seen."""
    releases = list(catalog)
    if not releases:
        raise MalformedCatalogError("Release catalog is empty")
    return max(releases, key=lambda release: release.version)


async def fetch_latest_release(url: str = C3_LSP_RELEASES_URL) -> Optional[Release]:
    """Latest release, or None when it cannot be determined."""
    try:
        latest = select_latest(await fetch_catalog(url))
    except C3ToolsError as e:
        logger.error({"event": "latest_release_unavailable", "url": url, "error": str(e)})
        return None

    logger.info({"event": "latest_release", "version": str(latest.version)})
    return latest


async def fetch_github_release(owner: str, repo: str) -> Release:
    """Latest GitHub release with its assets keyed by platform."""
    url = f"{GITHUB_API_BASE}/{GITHUB_REPOS_PATH}/{owner}/{repo}/{RELEASES_PATH}/{LATEST_PATH}"
    data = await fetch_json(url, headers={"Accept": "application/vnd.github+json"})

    if not isinstance(data, dict):
        raise MalformedCatalogError("Unexpected GitHub release payload", url)
    version = parse_version(data.get("tag_name"))
    if version is None:
        raise MalformedCatalogError(f"Invalid release tag: {data.get('tag_name')}", url)

    artifacts = {}
    for asset in data.get("assets") or []:
        name = asset.get("name", "")
        download_url = asset.get("browser_download_url")
        key = platform_key_for_asset(name)
        if key and download_url and key not in artifacts:
            artifacts[key] = ArtifactRef(url=download_url)

    logger.info(
        {"event": "github_release", "repo": f"{owner}/{repo}", "version": str(version), "platforms": sorted(artifacts)}
    )
    return Release(version=version, artifacts=artifacts)


async def resolve_installed_version(
    path: Optional[str],
    version_flag: str = "--version",
    timeout: float = VERSION_QUERY_TIMEOUT,
) -> InstalledBinary:
    """Ask a binary for its version."""
    if not path:
        return InstalledBinary(path=None, status=VersionStatus.ABSENT)

    try:
        returncode, stdout, stderr = await async_subprocess_run(path, version_flag, timeout=timeout)
    except (OSError, ProcessTimeoutError) as e:
        logger.error({"event": "version_query_failed", "path": path, "error": str(e)})
        return InstalledBinary(path=path, status=VersionStatus.UNKNOWN)

    output = stdout.decode("utf-8", errors="replace").strip()
    version = parse_version(output) if returncode == 0 else None
    if version is None:
        logger.error(
            {
                "event": "version_unparsable",
                "path": path,
                "returncode": returncode,
                "stdout": output,
                "stderr": stderr.decode("utf-8", errors="replace").strip(),
            }
        )
        return InstalledBinary(path=path, status=VersionStatus.UNKNOWN)

    return InstalledBinary(path=path, status=VersionStatus.RESOLVED, version=version)


def is_update_due(installed: InstalledBinary, latest: Version) -> bool:
    if installed.status is not VersionStatus.RESOLVED or installed.version is None:
        return True
    return installed.version < latest
