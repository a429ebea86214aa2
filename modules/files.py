"""Directories (``file``) and whole-file content (``copy``)."""

from __future__ import annotations

import os
import shlex
import tempfile

from lib.errors import ModuleError, ValidationError
from lib.remote_utils import is_dry_run, probe
from lib.types import Params
from modules.base import (
    ModuleResult, attributes_differ, changed, ok, parse_mode, read_text,
    require, resolve_ids, set_attributes, write_text,
)

# Relative ``src`` paths are looked up from the project root (where config/ lives)
FILES_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def apply_file(params: Params) -> ModuleResult:
    path = os.path.expanduser(str(require(params, "path", "file")))
    state = params.get("state", "directory")
    if state != "directory":
        raise ModuleError(f"file: unsupported state '{state}'")

    mode = parse_mode(params.get("mode"))
    uid, gid = resolve_ids(params.get("owner"), params.get("group"))

    if os.path.exists(path) and not os.path.isdir(path):
        raise ModuleError(f"file: {path} exists and is not a directory")

    if not os.path.isdir(path):
        if not is_dry_run():
            os.makedirs(path, exist_ok=True)
            set_attributes(path, mode if mode is not None else 0o755, uid, gid)
        return changed(f"created directory {path}")

    if attributes_differ(path, mode, uid, gid):
        set_attributes(path, mode, uid, gid)
        return changed(f"updated permissions on {path}")

    return ok(f"{path} already exists")


def run_validation(validate: str, content: str) -> None:
    """Run ``validate`` (with %s replaced by a temp file holding ``content``)."""
    if "%s" not in validate:
        raise ModuleError(f"copy: validate command must contain %s: {validate}")
    fd, tmp_path = tempfile.mkstemp(prefix="provision-validate-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as f:
            f.write(content)
        result = probe(validate.replace("%s", shlex.quote(tmp_path)))
    finally:
        os.unlink(tmp_path)
    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip().replace(tmp_path, "<content>")
        raise ValidationError(f"validation failed ({validate}): {detail or f'exit code {result.returncode}'}")


def _source_content(params: Params) -> str:
    if params.get("content") is not None:
        return str(params["content"])
    src = params.get("src")
    if not src:
        raise ModuleError("copy: one of 'content' or 'src' is required")
    src_path = src if os.path.isabs(src) else os.path.join(FILES_ROOT, src)
    content = read_text(src_path)
    if content is None:
        raise ModuleError(f"copy: source file not found: {src_path}")
    return content


def apply_copy(params: Params) -> ModuleResult:
    dest = str(require(params, "dest", "copy"))
    content = _source_content(params)
    mode = parse_mode(params.get("mode"))
    uid, gid = resolve_ids(params.get("owner"), params.get("group"))

    parent = os.path.dirname(dest)
    if parent and not os.path.isdir(parent):
        raise ModuleError(f"copy: destination directory does not exist: {parent}")

    current = read_text(dest)
    if current == content:
        if attributes_differ(dest, mode, uid, gid):
            set_attributes(dest, mode, uid, gid)
            return changed(f"updated permissions on {dest}")
        return ok(f"{dest} up to date")

    validate = params.get("validate")
    if validate:
        run_validation(str(validate), content)

    write_text(dest, content, mode)
    if uid != -1 or gid != -1:
        set_attributes(dest, None, uid, gid)
    return changed(f"{'created' if current is None else 'updated'} {dest}")
