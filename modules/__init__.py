"""Capability modules: one idempotent ``apply(params) -> ModuleResult`` per module type."""

from __future__ import annotations

from lib.types import ApplyFunc

from .base import ModuleResult
from . import apt, edits, files, service, system, ufw, users

MODULES: dict[str, ApplyFunc] = {
    "apt": apt.apply,
    "service": service.apply,
    "file": files.apply_file,
    "copy": files.apply_copy,
    "lineinfile": edits.apply_lineinfile,
    "blockinfile": edits.apply_blockinfile,
    "ufw": ufw.apply,
    "timezone": system.apply_timezone,
    "debconf": system.apply_debconf,
    "user": users.apply_user,
    "authorized_key": users.apply_authorized_key,
}

__all__ = ["MODULES", "ModuleResult"]
