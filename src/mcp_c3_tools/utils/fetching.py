import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, List, Optional

import aiohttp

from mcp_c3_tools.constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT
from mcp_c3_tools.errors import DownloadError, ExtractionError, MalformedCatalogError, NetworkError
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import ProgressCallback

logger = get_logger(__name__)


async def fetch_json(url: str, headers: Optional[dict] = None) -> Any:
    """GET a JSON document."""
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=DOWNLOAD_TIMEOUT)
        ) as session:
            async with session.get(url, headers=headers) as response:
                response.raise_for_status()
                return await response.json(content_type=None)
    except aiohttp.ClientResponseError as e:
        raise NetworkError(url, f"HTTP {e.status} {e.message}") from e
    except (aiohttp.ClientError, TimeoutError) as e:
        raise NetworkError(url, str(e) or e.__class__.__name__) from e
    except ValueError as e:
        raise MalformedCatalogError(f"Response from {url} is not valid JSON: {e}", url) from e


async def download_bytes(url: str, progress: Optional[ProgressCallback] = None) -> bytes:
    """Download a file into memory, reporting progress after every chunk."""
    buffer = bytearray()
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=DOWNLOAD_TIMEOUT)
        ) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise DownloadError(url, f"HTTP status {response.status}")

                total = response.content_length
                async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                    buffer.extend(chunk)
                    if progress:
                        progress(len(buffer), total)

    except (aiohttp.ClientError, TimeoutError) as e:
        raise DownloadError(url, str(e) or e.__class__.__name__) from e

    logger.info({"event": "download_complete", "url": url, "size": len(buffer)})
    return bytes(buffer)


def is_auxiliary_file(member_name: str) -> bool:
    """Licence and documentation files are shipped with an underscore in their name."""
    return "_" in PurePosixPath(member_name).name


def _zip_members(archive: zipfile.ZipFile) -> List[str]:
    return [
        info.filename
        for info in archive.infolist()
        if not info.is_dir() and not is_auxiliary_file(info.filename)
    ]


def _tar_members(archive: tarfile.TarFile) -> List[tarfile.TarInfo]:
    return [
        member
        for member in archive.getmembers()
        if member.isfile() and not is_auxiliary_file(member.name)
    ]


def extract_archive(archive_path: Path, dest_dir: Path) -> List[Path]:
    """Extract the non-auxiliary files of an archive.

    Returns the extracted file paths in archive order.
    """
    logger.debug({"event": "extract_archive", "archive": str(archive_path), "dest": str(dest_dir)})

    try:
        if zipfile.is_zipfile(archive_path):
            with zipfile.ZipFile(archive_path) as archive:
                names = _zip_members(archive)
                extracted = [Path(archive.extract(name, dest_dir)) for name in names]
        elif tarfile.is_tarfile(archive_path):
            with tarfile.open(archive_path) as archive:
                members = _tar_members(archive)
                archive.extractall(dest_dir, members=members, filter="data")
                extracted = [dest_dir / member.name for member in members]
        else:
            raise ExtractionError(archive_path.name, "unsupported archive format")
    except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError) as e:
        raise ExtractionError(archive_path.name, str(e)) from e

    if not extracted:
        raise ExtractionError(archive_path.name, "archive contains no executable entry")

    logger.info(
        {
            "event": "archive_extracted",
            "archive": str(archive_path),
            "extracted_to": str(dest_dir),
            "files": [p.name for p in extracted],
        }
    )
    return extracted

