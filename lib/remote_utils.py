"""Command execution and host state probes used by the capability modules."""

from __future__ import annotations

import shlex
import subprocess
import sys
from typing import Optional

from lib.errors import CommandError


_dry_run = False


def set_dry_run(enabled: bool) -> None:
    """Set dry-run mode globally."""
    global _dry_run
    _dry_run = enabled


def is_dry_run() -> bool:
    """Check if dry-run mode is enabled."""
    return _dry_run


def run(cmd: str, check: bool = True, cwd: Optional[str] = None, capture_output: bool = True,
        text: bool = True, input: Optional[str] = None) -> subprocess.CompletedProcess[str]:
    """Run a mutating shell command.

    In dry-run mode the command is printed but not executed. With ``check``
    a non-zero exit raises CommandError instead of returning.
    """
    print(f"  Running: {cmd[:80]}..." if len(cmd) > 80 else f"  Running: {cmd}")
    sys.stdout.flush()

    if is_dry_run():
        print("  [DRY-RUN] Command not executed")
        # CompletedProcess.args expects a sequence; provide a one-element list for consistency
        return subprocess.CompletedProcess(args=[cmd], returncode=0, stdout="", stderr="")

    result = subprocess.run(cmd, shell=True, capture_output=capture_output, text=text, cwd=cwd, input=input)
    if check and result.returncode != 0:
        raise CommandError(cmd, result.returncode, getattr(result, 'stderr', None))
    return result


def probe(cmd: str, input: Optional[str] = None) -> subprocess.CompletedProcess[str]:
    """Run a read-only command; always executes, even in dry-run mode."""
    return subprocess.run(cmd, shell=True, capture_output=True, text=True, input=input)


def detect_os() -> None:
    try:
        with open("/etc/os-release") as f:
            content = f.read().lower()
    except FileNotFoundError:
        print("Error: Cannot detect OS - /etc/os-release not found")
        sys.exit(1)

    if "debian" not in content and "ubuntu" not in content:
        print("Error: Unsupported OS (only Debian and Ubuntu are supported)")
        sys.exit(1)


def is_package_installed(package: str) -> bool:
    result = probe(f"dpkg-query -W -f='${{Status}}' {shlex.quote(package)} 2>/dev/null")
    return result.returncode == 0 and "install ok installed" in result.stdout


def is_service_active(service: str) -> bool:
    result = probe(f"systemctl is-active {shlex.quote(service)}")
    return result.returncode == 0


def is_service_enabled(service: str) -> bool:
    result = probe(f"systemctl is-enabled {shlex.quote(service)}")
    return result.returncode == 0 and result.stdout.strip() in ("enabled", "enabled-runtime", "alias")
