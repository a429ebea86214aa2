"""Package cache, upgrades and package installation through apt-get."""

from __future__ import annotations

import os
import shlex
import time

from lib.errors import ModuleError
from lib.remote_utils import is_dry_run, is_package_installed, probe, run
from lib.types import Params
from modules.base import ModuleResult, as_bool, as_list, changed, ok

APT_LISTS_DIR = "/var/lib/apt/lists"
APT_ENV = "DEBIAN_FRONTEND=noninteractive"
DPKG_OPTS = "-o Dpkg::Options::=--force-confdef -o Dpkg::Options::=--force-confold"
DEFAULT_CACHE_VALID_TIME = 3600

UPGRADE_COMMANDS = {
    "dist": "dist-upgrade",
    "full": "dist-upgrade",
    "yes": "upgrade",
    "safe": "upgrade",
}


def _lists_fingerprint() -> dict[str, tuple[int, float]]:
    try:
        entries = os.scandir(APT_LISTS_DIR)
    except FileNotFoundError:
        return {}
    with entries:
        return {
            e.name: (e.stat().st_size, e.stat().st_mtime)
            for e in entries if e.is_file() and e.name != "lock"
        }


def _cache_age(fingerprint: dict[str, tuple[int, float]]) -> float:
    if not fingerprint:
        return float("inf")
    newest = max(mtime for _, mtime in fingerprint.values())
    return time.time() - newest


def update_cache(valid_time: int = DEFAULT_CACHE_VALID_TIME) -> bool:
    """Refresh package lists unless they are fresher than ``valid_time`` seconds.

    Returns True when the package lists actually changed.
    """
    before = _lists_fingerprint()
    if _cache_age(before) < valid_time:
        return False
    run(f"{APT_ENV} apt-get update -qq")
    if is_dry_run():
        return True
    return _lists_fingerprint() != before


def pending_upgrades(mode: str = "dist") -> list[str]:
    """Package names a (dist-)upgrade would install, from a simulated run."""
    command = UPGRADE_COMMANDS.get(mode)
    if command is None:
        raise ModuleError(f"apt: unsupported upgrade mode '{mode}'")
    result = probe(f"{APT_ENV} apt-get -s {command}")
    if result.returncode != 0:
        raise ModuleError(f"apt: upgrade simulation failed: {result.stderr.strip()}")
    return [line.split()[1] for line in result.stdout.splitlines() if line.startswith("Inst ")]


def upgrade(mode: str = "dist") -> list[str]:
    packages = pending_upgrades(mode)
    if packages:
        run(f"{APT_ENV} apt-get {UPGRADE_COMMANDS[mode]} -y -qq {DPKG_OPTS}")
    return packages


def ensure_packages(names: list[str], state: str = "present") -> list[str]:
    """Install (or remove) packages that are not yet in the requested state."""
    if state == "present":
        todo = [name for name in names if not is_package_installed(name)]
        if todo:
            quoted = " ".join(shlex.quote(name) for name in todo)
            run(f"{APT_ENV} apt-get install -y -qq {DPKG_OPTS} {quoted}")
        return todo
    if state == "absent":
        todo = [name for name in names if is_package_installed(name)]
        if todo:
            quoted = " ".join(shlex.quote(name) for name in todo)
            run(f"{APT_ENV} apt-get remove -y -qq {quoted}")
        return todo
    raise ModuleError(f"apt: unsupported state '{state}'")


def apply(params: Params) -> ModuleResult:
    names = as_list(params.get("name"))
    if not names and not params.get("update_cache") and not params.get("upgrade"):
        raise ModuleError("apt: one of 'name', 'update_cache' or 'upgrade' is required")

    messages = []
    if as_bool(params.get("update_cache", False)):
        valid_time = int(params.get("cache_valid_time", DEFAULT_CACHE_VALID_TIME))
        if update_cache(valid_time):
            messages.append("package cache updated")

    upgrade_mode = params.get("upgrade")
    if upgrade_mode:
        mode = "yes" if upgrade_mode is True else str(upgrade_mode)
        upgraded = upgrade(mode)
        if upgraded:
            messages.append(f"{len(upgraded)} package(s) upgraded")

    if names:
        done = ensure_packages(names, params.get("state", "present"))
        if done:
            verb = "installed" if params.get("state", "present") == "present" else "removed"
            messages.append(f"{verb} {', '.join(done)}")

    if messages:
        return changed("; ".join(messages))
    if names:
        return ok(f"{', '.join(names)} already {params.get('state', 'present')}")
    return ok("package cache and packages up to date")
