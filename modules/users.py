"""Local accounts (``user``) and their SSH authorized keys (``authorized_key``)."""

from __future__ import annotations

import grp
import os
import pwd
import shlex
from typing import Optional

from lib.errors import ModuleError
from lib.remote_utils import is_dry_run, probe, run
from lib.types import Params, StrList
from modules.base import (
    ModuleResult, as_bool, as_list, attributes_differ, changed, ok, read_text,
    require, set_attributes, write_text,
)

SHADOW_FILE = "/etc/shadow"


def get_user(name: str) -> Optional[pwd.struct_passwd]:
    try:
        return pwd.getpwnam(name)
    except KeyError:
        return None


def user_groups(name: str) -> set[str]:
    """Groups ``name`` belongs to: its primary group plus those listing it as a member."""
    groups = {g.gr_name for g in grp.getgrall() if name in g.gr_mem}
    account = get_user(name)
    if account is not None:
        try:
            groups.add(grp.getgrgid(account.pw_gid).gr_name)
        except KeyError:
            # gid with no group entry
            pass
    return groups


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """SHA-512 crypt hash (``$6$...``) computed by openssl."""
    cmd = "openssl passwd -6 -stdin"
    if salt:
        cmd += f" -salt {shlex.quote(salt)}"
    result = probe(cmd, input=f"{password}\n")
    if result.returncode != 0 or not result.stdout.startswith("$6$"):
        raise ModuleError(f"user: cannot hash password: {result.stderr.strip() or 'openssl failed'}")
    return result.stdout.strip()


def shadow_hash(name: str) -> Optional[str]:
    content = read_text(SHADOW_FILE) or ""
    for line in content.splitlines():
        fields = line.split(":")
        if len(fields) > 1 and fields[0] == name:
            return fields[1]
    return None


def password_matches(password: str, current_hash: Optional[str]) -> bool:
    """Re-hash with the stored salt so an unchanged password is not rewritten."""
    if not current_hash or not current_hash.startswith("$6$"):
        return False
    parts = current_hash.split("$")
    # $6$<salt>$<digest> or $6$rounds=N$<salt>$<digest>
    if len(parts) < 4 or parts[2].startswith("rounds="):
        return False
    return hash_password(password, parts[2]) == current_hash


def _set_password_hash(name: str, hashed: str) -> None:
    run("chpasswd -e", input=f"{name}:{hashed}\n")


def apply_user(params: Params) -> ModuleResult:
    name = str(require(params, "name", "user"))
    groups = as_list(params.get("groups"))
    append = as_bool(params.get("append", False))
    shell = params.get("shell", "/bin/bash")
    password = params.get("password")

    for group in groups:
        try:
            grp.getgrnam(group)
        except KeyError:
            raise ModuleError(f"user: group '{group}' does not exist")

    safe_name = shlex.quote(name)
    actions: StrList = []

    if get_user(name) is None:
        cmd = f"useradd -s {shlex.quote(shell)}"
        if as_bool(params.get("create_home", True)):
            cmd += " -m"
        if groups:
            cmd += f" -G {shlex.quote(','.join(groups))}"
        run(f"{cmd} {safe_name}")
        actions.append("created")
        if password:
            _set_password_hash(name, hash_password(str(password)))
            actions.append("password set")
        return changed(f"user {name} {' and '.join(actions)}")

    current = user_groups(name)
    if append:
        missing = [g for g in groups if g not in current]
        if missing:
            run(f"usermod -aG {shlex.quote(','.join(missing))} {safe_name}")
            actions.append(f"added to {', '.join(missing)}")
    elif params.get("groups") is not None and set(groups) != current:
        run(f"usermod -G {shlex.quote(','.join(groups))} {safe_name}")
        actions.append(f"groups set to {', '.join(groups) or '(none)'}")

    if password and not password_matches(str(password), shadow_hash(name)):
        _set_password_hash(name, hash_password(str(password)))
        actions.append("password updated")

    if actions:
        return changed(f"user {name} {' and '.join(actions)}")
    return ok(f"user {name} already configured")


def key_identity(line: str) -> Optional[tuple[str, str]]:
    """(type, base64 body) of an authorized_keys line, ignoring options and comments."""
    parts = line.strip().split()
    for i, part in enumerate(parts[:-1]):
        if part.startswith(("ssh-", "ecdsa-", "sk-")):
            return part, parts[i + 1]
    return None


def apply_authorized_key(params: Params) -> ModuleResult:
    user = str(require(params, "user", "authorized_key"))
    key = str(require(params, "key", "authorized_key")).strip()
    state = params.get("state", "present")
    if state not in ("present", "absent"):
        raise ModuleError(f"authorized_key: unsupported state '{state}'")

    identity = key_identity(key)
    if identity is None:
        raise ModuleError("authorized_key: key is not an OpenSSH public key")

    account = get_user(user)
    if account is None:
        if is_dry_run():
            return changed(f"key for {user} (user not created yet)")
        raise ModuleError(f"authorized_key: user '{user}' does not exist")

    ssh_dir = os.path.join(account.pw_dir, ".ssh")
    keys_file = os.path.join(ssh_dir, "authorized_keys")
    uid, gid = account.pw_uid, account.pw_gid
    actions: StrList = []

    if as_bool(params.get("manage_dir", True)):
        if not os.path.isdir(ssh_dir):
            if not is_dry_run():
                os.makedirs(ssh_dir, exist_ok=True)
            set_attributes(ssh_dir, 0o700, uid, gid)
            actions.append(f"created {ssh_dir}")
        elif attributes_differ(ssh_dir, 0o700, uid, gid):
            set_attributes(ssh_dir, 0o700, uid, gid)
            actions.append(f"fixed permissions on {ssh_dir}")

    existing = read_text(keys_file)
    lines = existing.splitlines() if existing else []
    present = [line for line in lines if key_identity(line) == identity]

    content_changed = False
    if state == "present" and not present:
        write_text(keys_file, "".join(f"{line}\n" for line in lines + [key]), 0o600)
        actions.append("key added")
        content_changed = True
    elif state == "absent" and present:
        kept = [line for line in lines if key_identity(line) != identity]
        write_text(keys_file, "".join(f"{line}\n" for line in kept), 0o600)
        actions.append("key removed")
        content_changed = True

    if os.path.exists(keys_file) and attributes_differ(keys_file, 0o600, uid, gid):
        set_attributes(keys_file, 0o600, uid, gid)
        if not content_changed:
            actions.append(f"fixed permissions on {keys_file}")

    if actions:
        return changed(f"{user}: {', '.join(actions)}")
    return ok(f"{user}: key already {state}")
