"""systemd service state: started/stopped/restarted/reloaded and enabled at boot."""

from __future__ import annotations

import shlex

from lib.errors import ModuleError
from lib.remote_utils import is_service_active, is_service_enabled, run
from lib.types import Params
from modules.base import ModuleResult, as_bool, changed, ok, require

STATES = ("started", "stopped", "restarted", "reloaded")


def apply(params: Params) -> ModuleResult:
    name = str(require(params, "name", "service"))
    state = params.get("state")
    enabled = params.get("enabled")
    if state is None and enabled is None:
        raise ModuleError("service: one of 'state' or 'enabled' is required")
    if state is not None and state not in STATES:
        raise ModuleError(f"service: unsupported state '{state}'")

    safe_name = shlex.quote(name)
    actions = []

    if enabled is not None:
        want_enabled = as_bool(enabled)
        if want_enabled != is_service_enabled(name):
            run(f"systemctl {'enable' if want_enabled else 'disable'} {safe_name}")
            actions.append("enabled" if want_enabled else "disabled")

    if state == "started" and not is_service_active(name):
        run(f"systemctl start {safe_name}")
        actions.append("started")
    elif state == "stopped" and is_service_active(name):
        run(f"systemctl stop {safe_name}")
        actions.append("stopped")
    elif state == "restarted":
        run(f"systemctl restart {safe_name}")
        actions.append("restarted")
    elif state == "reloaded":
        run(f"systemctl reload-or-restart {safe_name}")
        actions.append("reloaded")

    if actions:
        return changed(f"{name} {' and '.join(actions)}")
    return ok(f"{name} already in requested state")
