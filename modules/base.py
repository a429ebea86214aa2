"""Shared pieces for capability modules: results, parameter helpers, file writes."""

from __future__ import annotations

import grp
import os
import pwd
import tempfile
from dataclasses import dataclass
from typing import Optional

from lib.errors import ModuleError
from lib.remote_utils import is_dry_run
from lib.types import Params, ParamValue, StrList


@dataclass
class ModuleResult:
    changed: bool
    msg: str = ""


def ok(msg: str = "") -> ModuleResult:
    return ModuleResult(changed=False, msg=msg)


def changed(msg: str = "") -> ModuleResult:
    if is_dry_run():
        msg = f"would change: {msg}" if msg else "would change"
    return ModuleResult(changed=True, msg=msg)


def require(params: Params, key: str, module: str) -> ParamValue:
    value = params.get(key)
    if value is None or value == "":
        raise ModuleError(f"{module}: missing required parameter '{key}'")
    return value


def as_list(value: ParamValue) -> StrList:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


def as_bool(value: ParamValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("yes", "true", "1", "on")
    return bool(value)


def parse_mode(mode: ParamValue) -> Optional[int]:
    """Accept '0700', '700', 0o700; None means leave the mode alone."""
    if mode is None:
        return None
    if isinstance(mode, int):
        return mode
    try:
        return int(str(mode), 8)
    except ValueError:
        raise ModuleError(f"invalid file mode: {mode!r}")


def resolve_ids(owner: Optional[str], group: Optional[str]) -> tuple[int, int]:
    """Map owner/group names to ids; -1 leaves that id unchanged."""
    try:
        uid = pwd.getpwnam(owner).pw_uid if owner else -1
        gid = grp.getgrnam(group).gr_gid if group else -1
    except KeyError as e:
        # accounts created earlier in the run do not exist yet in dry-run mode
        if is_dry_run():
            return -1, -1
        raise ModuleError(f"unknown owner or group: {e.args[0]}")
    return uid, gid


def attributes_differ(path: str, mode: Optional[int], uid: int, gid: int) -> bool:
    st = os.stat(path)
    if mode is not None and (st.st_mode & 0o7777) != mode:
        return True
    if uid != -1 and st.st_uid != uid:
        return True
    if gid != -1 and st.st_gid != gid:
        return True
    return False


def set_attributes(path: str, mode: Optional[int], uid: int, gid: int) -> None:
    if is_dry_run():
        return
    if uid != -1 or gid != -1:
        os.chown(path, uid, gid)
    if mode is not None:
        os.chmod(path, mode)


def read_text(path: str) -> Optional[str]:
    """Return file contents, or None when the file does not exist.

    Undecodable bytes survive as surrogates so ``write_text`` puts them back unchanged.
    """
    try:
        with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ModuleError(f"cannot read {path}: {e.strerror}")


def write_text(path: str, content: str, mode: Optional[int] = None) -> None:
    """Atomically replace ``path`` (temp file in the same directory + rename)."""
    if is_dry_run():
        return
    directory = os.path.dirname(path) or "."
    try:
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".provision-")
    except OSError as e:
        raise ModuleError(f"cannot write {path}: {e.strerror}")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        elif os.path.exists(path):
            os.chmod(tmp_path, os.stat(path).st_mode & 0o7777)
        else:
            os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise ModuleError(f"cannot write {path}: {e.strerror}")
