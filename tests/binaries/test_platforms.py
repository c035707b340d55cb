import pytest

from mcp_c3_tools.binaries.platforms import (
    get_platform_info,
    normalize_arch,
    platform_key,
    platform_key_for_asset,
)


@pytest.mark.parametrize(
    "system,machine,expected",
    [
        ("linux", "x86_64", "x86_64-linux"),
        ("linux", "AMD64", "x86_64-linux"),
        ("linux", "aarch64", "aarch64-linux"),
        ("darwin", "arm64", "arm64-darwin"),
        ("darwin", "x86_64", "x86_64-darwin"),
        ("win32", "AMD64", "x86_64-win32"),
    ],
)
def test_platform_key(system, machine, expected):
    """Test platform key composition"""
    assert get_platform_info(system, machine).key == expected


def test_unknown_arch_kept():
    """Test unknown architectures pass through lowercased"""
    assert normalize_arch("RISCV64") == "riscv64"


def test_current_platform_key():
    """Test the running machine produces an arch-os key"""
    arch, _, os_name = platform_key().partition("-")
    assert arch
    assert os_name


@pytest.mark.parametrize(
    "asset,expected",
    [
        ("c3fmt-linux-x86_64.tar.gz", "x86_64-linux"),
        ("c3fmt-linux.tar.gz", "x86_64-linux"),
        ("c3fmt-linux-aarch64.tar.gz", "aarch64-linux"),
        ("c3fmt-macos-arm64.zip", "arm64-darwin"),
        ("c3fmt-macos-aarch64.zip", "arm64-darwin"),
        ("c3fmt-windows-x64.zip", "x86_64-win32"),
        ("checksums.txt", None),
    ],
)
def test_platform_key_for_asset(asset, expected):
    """Test platform inference from release asset names"""
    assert platform_key_for_asset(asset) == expected
