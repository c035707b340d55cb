"""Settings and persisted state.

Both live in small JSON documents keyed by dotted names. Every read goes
back to disk so edits made while the server is running apply to the
next operation.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from mcp.types import INVALID_PARAMS

from mcp_c3_tools.constants import DEFAULT_SETTINGS
from mcp_c3_tools.errors import C3ToolsError
from mcp_c3_tools.logging import get_logger
from mcp_c3_tools.types import C3Config, FormatConfig, LSPConfig

logger = get_logger(__name__)

HOME_ENV = "MCP_C3_TOOLS_HOME"
SETTINGS_ENV = "MCP_C3_TOOLS_SETTINGS"
DEFAULT_HOME = Path(os.path.expanduser("~/.local/share/mcp-c3-tools"))


def get_tool_home() -> Path:
    """Directory holding settings, state and installed binaries."""
    return Path(os.environ.get(HOME_ENV) or DEFAULT_HOME)


def get_settings_path(home: Optional[Path] = None) -> Path:
    override = os.environ.get(SETTINGS_ENV)
    if override:
        return Path(override)
    return (home or get_tool_home()) / "settings.json"


class JsonStore:
    """Flat key/value JSON document on disk."""

    def __init__(self, path: Path, defaults: Optional[Dict[str, Any]] = None):
        self.path = Path(path)
        self.defaults = dict(defaults or {})

    def _read(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise C3ToolsError(f"Cannot read {self.path}: {e}") from e

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error({"event": "settings_invalid_json", "path": str(self.path), "error": str(e)})
            raise C3ToolsError(f"Invalid JSON in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise C3ToolsError(f"Expected a JSON object in {self.path}")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        data = self._read()
        if key in data and data[key] is not None:
            return data[key]
        if default is not None:
            return default
        return self.defaults.get(key)

    def update(self, key: str, value: Any) -> None:
        """Set a key, or remove it when value is None."""
        data = self._read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

        logger.debug({"event": "setting_updated", "path": str(self.path), "key": key})


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    return value or None


def _invalid_setting(key: str, value: Any) -> C3ToolsError:
    return C3ToolsError(f"Invalid value for {key}: {value!r}", code=INVALID_PARAMS, details={"key": key})


def _optional_int(value: Any, key: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise _invalid_setting(key, value) from e


def _optional_float(value: Any, key: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise _invalid_setting(key, value) from e
    return value if value > 0 else None


def get_lsp_config(settings: JsonStore) -> LSPConfig:
    """Language server settings, read fresh."""
    return LSPConfig(
        enabled=bool(settings.get("c3.lsp.enable")),
        path=_optional_str(settings.get("c3.lsp.path")),
        check_for_update=bool(settings.get("c3.lsp.checkForUpdate")),
        send_crash_reports=bool(settings.get("c3.lsp.sendCrashReports")),
        debug=bool(settings.get("c3.lsp.debug")),
        trace=str(settings.get("c3.lsp.trace") or "off"),
        log_path=_optional_str(settings.get("c3.lsp.log.path")),
        diagnostics_delay=_optional_int(settings.get("c3.lsp.diagnosticsDelay"), "c3.lsp.diagnosticsDelay"),
        lang_version=_optional_str(settings.get("c3.lsp.langVersion")),
    )


def get_format_config(settings: JsonStore) -> FormatConfig:
    """Formatter settings, read fresh."""
    return FormatConfig(
        enabled=bool(settings.get("c3.format.enable")),
        path=_optional_str(settings.get("c3.format.path")),
        config_path=_optional_str(settings.get("c3.format.configPath")),
        timeout=_optional_float(settings.get("c3.format.timeout"), "c3.format.timeout"),
    )


def get_c3_config(settings: JsonStore) -> C3Config:
    return C3Config(
        c3c_path=_optional_str(settings.get("c3.c3cPath")),
        stdlib_path=_optional_str(settings.get("c3.stdlib-path")),
    )


def create_settings_store(home: Optional[Path] = None) -> JsonStore:
    return JsonStore(get_settings_path(home), defaults=DEFAULT_SETTINGS)


def create_state_store(home: Optional[Path] = None) -> JsonStore:
    return JsonStore((home or get_tool_home()) / "state.json")
