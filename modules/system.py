"""Host-wide settings: timezone and debconf answers."""

from __future__ import annotations

import os
import shlex
from typing import Optional

from lib.errors import ModuleError
from lib.remote_utils import probe, run
from lib.types import Params
from lib.validators import validate_zoneinfo_name
from modules.base import ModuleResult, changed, ok, read_text, require


def current_timezone() -> Optional[str]:
    result = probe("timedatectl show -p Timezone --value")
    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip()

    tz = (read_text("/etc/timezone") or "").strip()
    if tz:
        return tz

    if os.path.islink("/etc/localtime"):
        target = os.readlink("/etc/localtime")
        if "zoneinfo/" in target:
            return target.split("zoneinfo/", 1)[1]
    return None


def apply_timezone(params: Params) -> ModuleResult:
    name = str(require(params, "name", "timezone"))
    if not validate_zoneinfo_name(name):
        raise ModuleError(f"timezone: unknown timezone '{name}'")

    if current_timezone() == name:
        return ok(f"timezone already {name}")

    run(f"timedatectl set-timezone {shlex.quote(name)}")
    return changed(f"timezone set to {name}")


def debconf_answers(package: str) -> dict[str, str]:
    """Current answers for a package, as printed by ``debconf-show``."""
    result = probe(f"debconf-show {shlex.quote(package)}")
    answers = {}
    for line in result.stdout.splitlines():
        line = line.lstrip("* ").rstrip()
        if ":" not in line:
            continue
        question, _, value = line.partition(":")
        answers[question.strip()] = value.strip()
    return answers


def apply_debconf(params: Params) -> ModuleResult:
    package = str(require(params, "name", "debconf"))
    question = str(require(params, "question", "debconf"))
    vtype = str(require(params, "vtype", "debconf"))
    value = params.get("value", "")
    if isinstance(value, bool):
        value = "true" if value else "false"
    value = str(value)

    if debconf_answers(package).get(question) == value:
        return ok(f"{question} already {value}")

    run("debconf-set-selections", input=f"{package} {question} {vtype} {value}\n")
    return changed(f"{question} set to {value}")
