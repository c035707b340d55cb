"""Endpoints, flags and defaults for the C3 tools."""

# Release catalog of the language server
C3_LSP_RELEASES_URL = "https://pherrymason.github.io/c3-lsp/releases.json"

# GitHub API URL structure
GITHUB_API_BASE = "https://api.github.com"
GITHUB_REPOS_PATH = "repos"
RELEASES_PATH = "releases"
LATEST_PATH = "latest"

# Formatter repository
C3FMT_OWNER = "lmichaudel"
C3FMT_REPO = "c3fmt"

LSP_TITLE = "C3LSP"
FMT_TITLE = "C3FMT"
LSP_CLIENT_NAME = "mcp-c3-tools"

# Install folders under the tool home
LSP_INSTALL_FOLDER = "c3lsp"
FMT_INSTALL_FOLDER = "c3fmt"

# Persisted state keys
SKIP_LSP_SETUP_KEY = "c3.skipLspSetup"
SKIP_FMT_SETUP_KEY = "c3.skipFormatSetup"

LSP_FLAGS = {
    "C3C_PATH": "-c3c-path",
    "DEBUG": "-debug",
    "DIAGNOSTICS_DELAY": "-diagnostics-delay",
    "LANG_VERSION": "-lang-version",
    "LOG_PATH": "-log-path",
    "SEND_CRASH_REPORTS": "-send-crash-reports",
    "STDLIB_PATH": "-stdlib-path",
    "VERSION": "--version",
}

C3C_FLAGS = {
    "VERSION": "--version",
}

FMT_FLAGS = {
    "CONFIG_FILE": "--config=",
    "FORCE_DEFAULT": "--default",
    "STDOUT": "--stdout",
    "FILE_NAME": "--assume-filename=",
    "VERSION": "--version",
}

# Subprocess deadlines in seconds
VERSION_QUERY_TIMEOUT = 5.0
HANDSHAKE_TIMEOUT = 30.0
SHUTDOWN_TIMEOUT = 5.0
DOWNLOAD_TIMEOUT = 300.0

DOWNLOAD_CHUNK_SIZE = 8192

# Defaults for settings.json; keep in sync with README
DEFAULT_SETTINGS = {
    "c3.lsp.enable": True,
    "c3.lsp.path": None,
    "c3.lsp.checkForUpdate": True,
    "c3.lsp.sendCrashReports": False,
    "c3.lsp.debug": False,
    "c3.lsp.trace": "off",
    "c3.lsp.log.path": None,
    "c3.lsp.diagnosticsDelay": 2000,
    "c3.lsp.langVersion": None,
    "c3.c3cPath": None,
    "c3.stdlib-path": None,
    "c3.format.enable": False,
    "c3.format.path": None,
    "c3.format.configPath": None,
    "c3.format.timeout": 10.0,
}
