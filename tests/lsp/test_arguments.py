from mcp_c3_tools.lsp.supervisor import build_server_args
from mcp_c3_tools.types import C3Config, LSPConfig


def lsp_config(**overrides):
    values = dict(
        enabled=True,
        path="/opt/c3lsp",
        check_for_update=False,
        send_crash_reports=False,
        debug=False,
        trace="off",
        log_path=None,
        diagnostics_delay=None,
        lang_version=None,
    )
    values.update(overrides)
    return LSPConfig(**values)


def test_minimal_arguments():
    """Test no flags are passed when nothing is configured"""
    assert build_server_args(lsp_config(), C3Config(None, None)) == []


def test_full_arguments_in_order():
    """Test every configured option maps to its flag"""
    args = build_server_args(
        lsp_config(
            send_crash_reports=True,
            debug=True,
            log_path="/tmp/c3lsp.log",
            diagnostics_delay=500,
            lang_version="0.6",
        ),
        C3Config(c3c_path="/usr/bin/c3c", stdlib_path="/opt/c3/lib/std"),
    )

    assert args == [
        "-c3c-path", "/usr/bin/c3c",
        "-stdlib-path", "/opt/c3/lib/std",
        "-diagnostics-delay", "500",
        "-lang-version", "0.6",
        "-debug",
        "-log-path", "/tmp/c3lsp.log",
        "-send-crash-reports",
    ]


def test_zero_diagnostics_delay_is_passed():
    """Test an explicit zero delay still produces a flag"""
    args = build_server_args(lsp_config(diagnostics_delay=0), C3Config(None, None))
    assert args == ["-diagnostics-delay", "0"]
