#!/usr/bin/env python3

"""Run configuration and variable resolution.

Variables are declared once (VARIABLES) and resolved once per run, before
any step executes. Environment lookups come first; file lookups read the
file named by an already-resolved variable.
"""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import dataclass, field, asdict, replace
from typing import Callable, Mapping, Optional, Any

from lib.errors import FileLookupError, VariableError
from lib.types import StrDict, StrList, VariableSource
from lib.validators import (
    validate_ssh_public_key, validate_timezone, validate_username, validate_zoneinfo_name,
)


@dataclass
class Variable:
    name: str
    source: VariableSource
    key: str
    required: bool = True
    fallback_keys: tuple[str, ...] = ()
    validator: Optional[Callable[[str], bool]] = None


VARIABLES: list[Variable] = [
    Variable("TIMEZONE", "env", "TIMEZONE", validator=validate_timezone),
    Variable("SSH_KEY_PATH", "env", "SSH_KEY_PATH"),
    Variable("NEW_USER_NAME", "env", "NEW_USER_NAME", validator=validate_username),
    Variable("NEW_USER_PASSWORD", "env", "NEW_USER_PASSWORD"),
    Variable("ADMIN_USER", "env", "ADMIN_USER", fallback_keys=("ANSIBLE_USER",),
             validator=validate_username),
    Variable("SSH_PUBLIC_KEY", "file", "SSH_KEY_PATH", validator=validate_ssh_public_key),
]


def host_variables() -> list[Variable]:
    """VARIABLES as resolved on the provisioned host, where pytz is not installed."""
    return [
        replace(var, validator=validate_zoneinfo_name) if var.validator is validate_timezone else var
        for var in VARIABLES
    ]


def _lookup_env(var: Variable, environ: Mapping[str, str]) -> Optional[str]:
    for key in (var.key,) + var.fallback_keys:
        value = environ.get(key, "").strip()
        if value:
            return value
    return None


def _lookup_file(var: Variable, resolved: StrDict) -> Optional[str]:
    path = resolved.get(var.key)
    if not path:
        raise VariableError(var.name, f"file lookup needs {var.key}, which is not resolved")
    path = os.path.expanduser(path)
    try:
        with open(path, "r") as f:
            content = f.read()
    except FileNotFoundError:
        raise FileLookupError(var.name, path)
    except (PermissionError, IsADirectoryError) as e:
        raise FileLookupError(var.name, path, reason=f"cannot read ({e.strerror})")
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    return lines[0] if lines else None


def resolve_variables(
    environ: Optional[Mapping[str, str]] = None,
    declarations: Optional[list[Variable]] = None,
) -> StrDict:
    """Resolve every declared variable, raising VariableError on the first bad one."""
    environ = os.environ if environ is None else environ
    declarations = VARIABLES if declarations is None else declarations

    resolved: StrDict = {}
    # env lookups first so file lookups can reference them regardless of order
    ordered = sorted(declarations, key=lambda v: v.source != "env")
    for var in ordered:
        if var.source == "env":
            value = _lookup_env(var, environ)
        else:
            value = _lookup_file(var, resolved)

        if value is None:
            if var.required:
                keys = " or ".join((var.key,) + var.fallback_keys)
                where = f"environment variable {keys}" if var.source == "env" else f"file {resolved.get(var.key)}"
                raise VariableError(var.name, f"missing or empty ({where})")
            continue

        if var.validator and not var.validator(value):
            shown = "<hidden>" if "PASSWORD" in var.name else value
            raise VariableError(var.name, f"invalid value: {shown}")

        resolved[var.name] = value

    return resolved


def require_variables(variables: StrDict, declarations: Optional[list[Variable]] = None) -> None:
    """Check already-resolved values (e.g. loaded on the host) for required names."""
    declarations = VARIABLES if declarations is None else declarations
    for var in declarations:
        if var.required and not str(variables.get(var.name, "")).strip():
            raise VariableError(var.name, "missing or empty")


def load_variables(path: str) -> StrDict:
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileLookupError("vars", path)
    except json.JSONDecodeError as e:
        raise VariableError("vars", f"invalid JSON in {path}: {e}")
    if not isinstance(data, dict):
        raise VariableError("vars", f"expected a JSON object in {path}")
    return {str(k): str(v) for k, v in data.items()}


@dataclass
class ProvisionConfig:
    host: Optional[str] = None
    login_user: str = "root"
    ssh_key: Optional[str] = None
    port: int = 22
    local: bool = False
    dry_run: bool = False
    steps: Optional[StrList] = None
    list_steps: bool = False
    log_dir: Optional[str] = None
    variables: StrDict = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop('variables', None)
        return data

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> 'ProvisionConfig':
        steps = None
        if getattr(args, 'steps', None):
            steps = [s.strip() for s in args.steps.split(',') if s.strip()]

        return cls(
            host=getattr(args, 'host', None),
            login_user=getattr(args, 'login_user', None) or "root",
            ssh_key=getattr(args, 'ssh_key', None),
            port=getattr(args, 'port', None) or 22,
            local=getattr(args, 'local', False),
            dry_run=getattr(args, 'dry_run', False),
            steps=steps,
            list_steps=getattr(args, 'list_steps', False),
            log_dir=getattr(args, 'log_dir', None),
        )
