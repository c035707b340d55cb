"""Pipe a document through the c3fmt formatter."""

from typing import List, Optional

from mcp_c3_tools.constants import FMT_FLAGS
from mcp_c3_tools.errors import C3ToolsError, LaunchError, ProcessExitError, ProcessTimeoutError
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import FailureReason, FormatRequest, FormatResult
from mcp_c3_tools.utils.fs import async_subprocess_run

logger = get_logger(__name__)


def build_format_args(config_path: Optional[str] = None, file_hint: Optional[str] = None) -> List[str]:
    """Formatter arguments; output always goes to stdout."""
    args = []
    if config_path:
        args.append(f"{FMT_FLAGS['CONFIG_FILE']}{config_path}")
    else:
        args.append(FMT_FLAGS["FORCE_DEFAULT"])
    args.append(FMT_FLAGS["STDOUT"])
    if file_hint:
        args.append(f"{FMT_FLAGS['FILE_NAME']}{file_hint}")
    return args


async def run_formatter(request: FormatRequest, timeout: Optional[float] = None) -> FormatResult:
    """Run the formatter on ``request.source_text``.

    Never raises for formatter failures; the outcome is described by the
    returned FormatResult. Concurrent calls run independent processes.
    """
    args = build_format_args(request.config_path, request.source_file_hint)
    logger.debug({"event": "formatter_run", "path": request.formatter_path, "args": args})

    try:
        returncode, stdout, stderr = await async_subprocess_run(
            request.formatter_path,
            *args,
            input=request.source_text.encode("utf-8"),
            timeout=timeout,
        )
    except ProcessTimeoutError:
        return FormatResult.failed(FailureReason.TIMEOUT, f"Formatter did not finish within {timeout}s")
    except OSError as e:
        logger.error({"event": "formatter_spawn_failed", "path": request.formatter_path, "error": str(e)})
        return FormatResult.failed(FailureReason.SPAWN_ERROR, f"Failed to start formatter: {e}")

    error_text = stderr.decode("utf-8", errors="replace").strip()
    if returncode < 0:
        return FormatResult.failed(
            FailureReason.KILLED, f"Formatter killed by signal {-returncode}", returncode
        )
    if returncode != 0:
        return FormatResult.failed(
            FailureReason.NON_ZERO_EXIT, error_text or f"Formatter exited with code {returncode}", returncode
        )

    return FormatResult.ok(stdout.decode("utf-8", errors="replace"))


def raise_for_result(result: FormatResult, formatter_path: str, timeout: Optional[float] = None) -> str:
    """Formatted text of a successful result, or the matching error."""
    if result.success:
        return result.text
    if result.reason is FailureReason.SPAWN_ERROR:
        raise LaunchError(formatter_path, result.message)
    if result.reason is FailureReason.TIMEOUT:
        raise ProcessTimeoutError(formatter_path, timeout or 0.0)
    if result.reason is FailureReason.NON_ZERO_EXIT:
        raise ProcessExitError(formatter_path, result.returncode or 1, result.message)
    raise C3ToolsError(result.message, details={"reason": result.reason.value if result.reason else None})
