import asyncio
import os
import shutil
import uuid
from pathlib import Path
from typing import Optional, Tuple

from mcp_c3_tools.errors import ProcessTimeoutError
from mcp_c3_tools.logging import get_logger

logger = get_logger(__name__)

STAGING_LABEL = "staging"
BACKUP_LABEL = "old"


async def kill_process(proc: asyncio.subprocess.Process) -> None:
    """Kill a child process and reap it."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def async_subprocess_run(
    *args: str, input: Optional[bytes] = None, timeout: Optional[float] = None
) -> Tuple[int, bytes, bytes]:
    """
    Run a command asynchronously and return its exit code, stdout, and stderr.

    Input, when given, is written to stdin which is then closed. Both output
    streams are drained concurrently. A child that outlives ``timeout`` is
    killed and ProcessTimeoutError is raised.

    :param args: Command and arguments to run
    :return: Tuple of (returncode, stdout, stderr)
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(input), timeout=timeout)
    except asyncio.TimeoutError:
        await kill_process(proc)
        logger.warning({"event": "subprocess_timeout", "cmd": args[0], "timeout": timeout})
        raise ProcessTimeoutError(args[0], timeout or 0.0) from None
    except asyncio.CancelledError:
        await kill_process(proc)
        raise

    return proc.returncode, stdout, stderr


def remove_tree(path: Path) -> None:
    """Delete a directory recursively; a missing directory is not an error."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass


def _sibling_path(path: Path, label: str) -> Path:
    return path.with_name(f".{path.name}.{label}-{uuid.uuid4().hex[:8]}")


def make_sibling_dir(path: Path, label: str = STAGING_LABEL) -> Path:
    """Create a fresh, uniquely named directory next to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    sibling = _sibling_path(path, label)
    sibling.mkdir()
    return sibling


def swap_directory(staging: Path, target: Path) -> None:
    """Move a fully prepared staging directory into place at ``target``.

    Any previous ``target`` is renamed aside first and deleted once the
    staging directory has taken its place. If the final rename fails the
    previous directory is put back.
    """
    backup: Optional[Path] = None
    if target.exists():
        backup = _sibling_path(target, BACKUP_LABEL)
        os.replace(target, backup)

    try:
        os.replace(staging, target)
    except OSError:
        if backup is not None:
            os.replace(backup, target)
        raise

    if backup is not None:
        remove_tree(backup)

    logger.debug({"event": "directory_swapped", "target": str(target)})


def clean_stale_siblings(path: Path) -> None:
    """Remove staging/backup leftovers of an interrupted swap of ``path``."""
    if not path.parent.exists():
        return
    for label in (STAGING_LABEL, BACKUP_LABEL):
        for leftover in path.parent.glob(f".{path.name}.{label}-*"):
            if leftover.is_dir():
                logger.debug({"event": "removing_stale_dir", "path": str(leftover)})
                remove_tree(leftover)
