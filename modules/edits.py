"""In-place text edits: a single line (``lineinfile``) or a marked block (``blockinfile``).

The edit logic works on lists of lines so it can be checked without touching
the filesystem; ``apply_*`` wraps it with reading, creating and writing the file.
"""

from __future__ import annotations

import os
import re
from typing import Optional

from lib.errors import ModuleError
from lib.types import Params, StrList
from modules.base import ModuleResult, as_bool, changed, ok, parse_mode, read_text, require, write_text

DEFAULT_MARKER = "# {mark} MANAGED BLOCK"


def ensure_line(lines: StrList, line: str, regexp: Optional[str] = None) -> tuple[StrList, bool]:
    """Make ``line`` present, replacing the last line matching ``regexp``.

    If nothing matches and the exact line is missing it is appended.
    """
    if regexp:
        try:
            pattern = re.compile(regexp)
        except re.error as e:
            raise ModuleError(f"lineinfile: invalid regexp {regexp!r}: {e}")
        matches = [i for i, existing in enumerate(lines) if pattern.search(existing)]
        if matches:
            last = matches[-1]
            if lines[last] == line:
                return lines, False
            updated = list(lines)
            updated[last] = line
            return updated, True

    if line in lines:
        return lines, False
    return lines + [line], True


def remove_lines(lines: StrList, regexp: Optional[str] = None, line: Optional[str] = None) -> tuple[StrList, bool]:
    if regexp:
        pattern = re.compile(regexp)
        kept = [existing for existing in lines if not pattern.search(existing)]
    else:
        kept = [existing for existing in lines if existing != line]
    return kept, len(kept) != len(lines)


def ensure_block(lines: StrList, block: str, marker: str = DEFAULT_MARKER,
                 present: bool = True) -> tuple[StrList, bool]:
    """Replace (or append) the lines between the BEGIN/END markers with ``block``."""
    begin = marker.replace("{mark}", "BEGIN")
    end = marker.replace("{mark}", "END")

    start = stop = None
    for i, existing in enumerate(lines):
        if existing.rstrip() == begin and start is None:
            start = i
        elif existing.rstrip() == end and start is not None:
            stop = i
            break

    if start is None and any(existing.rstrip() == end for existing in lines):
        raise ModuleError(f"blockinfile: found '{end}' without '{begin}'")
    if start is not None and stop is None:
        raise ModuleError(f"blockinfile: found '{begin}' without '{end}'")

    wanted = [begin] + block.rstrip("\n").splitlines() + [end] if present and block.strip() else []

    if start is not None and stop is not None:
        updated = lines[:start] + wanted + lines[stop + 1:]
    elif wanted:
        updated = lines + wanted
    else:
        updated = lines
    return updated, updated != lines


def _split(content: str) -> StrList:
    return content.splitlines()


def _join(lines: StrList) -> str:
    return "\n".join(lines) + "\n" if lines else ""


def _load(path: str, create: bool, module: str) -> tuple[StrList, bool]:
    content = read_text(path)
    if content is None:
        if not create:
            raise ModuleError(f"{module}: {path} does not exist (set create to make it)")
        if not os.path.isdir(os.path.dirname(path) or "."):
            raise ModuleError(f"{module}: directory for {path} does not exist")
        return [], True
    return _split(content), False


def apply_lineinfile(params: Params) -> ModuleResult:
    path = str(require(params, "path", "lineinfile"))
    state = params.get("state", "present")
    regexp = params.get("regexp")
    line = params.get("line")
    mode = parse_mode(params.get("mode"))

    lines, is_new = _load(path, as_bool(params.get("create", False)), "lineinfile")
    if state == "present":
        if line is None:
            raise ModuleError("lineinfile: 'line' is required when state is present")
        updated, did_change = ensure_line(lines, str(line), regexp)
    elif state == "absent":
        if regexp is None and line is None:
            raise ModuleError("lineinfile: 'regexp' or 'line' is required when state is absent")
        updated, did_change = remove_lines(lines, regexp, line)
    else:
        raise ModuleError(f"lineinfile: unsupported state '{state}'")

    if not did_change and not is_new:
        return ok(f"{path}: line already {state}")
    write_text(path, _join(updated), mode)
    return changed(f"{path}: {line if state == 'present' else 'line removed'}")


def apply_blockinfile(params: Params) -> ModuleResult:
    path = str(require(params, "path", "blockinfile"))
    block = str(params.get("block") or "")
    marker = str(params.get("marker") or DEFAULT_MARKER)
    state = params.get("state", "present")
    if state not in ("present", "absent"):
        raise ModuleError(f"blockinfile: unsupported state '{state}'")
    if "{mark}" not in marker:
        raise ModuleError("blockinfile: marker must contain {mark}")

    lines, is_new = _load(path, as_bool(params.get("create", False)), "blockinfile")
    updated, did_change = ensure_block(lines, block, marker, present=state == "present")

    if not did_change and not is_new:
        return ok(f"{path}: block already {state}")
    write_text(path, _join(updated), parse_mode(params.get("mode")))
    return changed(f"{path}: block {'inserted' if state == 'present' else 'removed'}")
