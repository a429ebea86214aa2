"""The basic server playbook: step order and handlers."""

from __future__ import annotations

from typing import Optional

from lib.runner import Handler, Step, select_steps
from lib.types import StrList

from common.steps import (
    SYSTEM_UPDATE_STEPS,
    TIME_STEPS,
    ADMIN_SSH_STEPS,
    USER_STEPS,
    PACKAGE_STEPS,
)
from security.steps import (
    SSH_HARDENING_STEPS,
    INTRUSION_PREVENTION_STEPS,
    FIREWALL_STEPS,
    AUTO_UPDATE_STEPS,
    SECURITY_HANDLERS,
)


SERVER_STEPS: list[Step] = (
    SYSTEM_UPDATE_STEPS
    + TIME_STEPS
    + ADMIN_SSH_STEPS
    + USER_STEPS
    + SSH_HARDENING_STEPS
    + PACKAGE_STEPS
    + INTRUSION_PREVENTION_STEPS
    + FIREWALL_STEPS
    + AUTO_UPDATE_STEPS
)

HANDLERS: list[Handler] = list(SECURITY_HANDLERS)


def get_steps(names: Optional[StrList] = None) -> list[Step]:
    return select_steps(SERVER_STEPS, names)


def get_handlers() -> list[Handler]:
    return list(HANDLERS)


def list_step_names() -> StrList:
    return [step.name for step in SERVER_STEPS]
