"""Uncomplicated Firewall: rules, default policies and the enabled state."""

from __future__ import annotations

import shlex

from lib.errors import ModuleError
from lib.remote_utils import probe, run
from lib.types import Params
from modules.base import ModuleResult, changed, ok, read_text

UFW_DEFAULTS_FILE = "/etc/default/ufw"

RULE_ACTIONS = ("allow", "deny", "limit", "reject")
POLICY_VALUES = {"allow": "ACCEPT", "deny": "DROP", "reject": "REJECT"}
POLICY_KEYS = {
    "incoming": "DEFAULT_INPUT_POLICY",
    "outgoing": "DEFAULT_OUTPUT_POLICY",
    "routed": "DEFAULT_FORWARD_POLICY",
}


def rule_spec(params: Params) -> str:
    """The rule as ufw prints it in ``ufw show added`` (without the leading 'ufw')."""
    action = params["rule"]
    if action not in RULE_ACTIONS:
        raise ModuleError(f"ufw: unsupported rule '{action}'")
    if params.get("name"):
        return f"{action} {params['name']}"
    if params.get("port"):
        port = str(params["port"])
        proto = params.get("proto")
        return f"{action} {port}/{proto}" if proto and proto != "any" else f"{action} {port}"
    raise ModuleError("ufw: a rule needs 'name' or 'port'")


def added_rules() -> list[str]:
    result = probe("ufw show added")
    if result.returncode != 0:
        raise ModuleError(f"ufw: cannot list rules: {result.stderr.strip()}")
    return [line.strip()[len("ufw "):] for line in result.stdout.splitlines() if line.strip().startswith("ufw ")]


def current_policy(direction: str) -> str:
    key = POLICY_KEYS[direction]
    for line in (read_text(UFW_DEFAULTS_FILE) or "").splitlines():
        if line.startswith(f"{key}="):
            return line.split("=", 1)[1].strip().strip('"')
    return ""


def is_active() -> bool:
    result = probe("ufw status")
    return result.returncode == 0 and "Status: active" in result.stdout


def apply(params: Params) -> ModuleResult:
    if not any(params.get(k) for k in ("rule", "policy", "state")):
        raise ModuleError("ufw: one of 'rule', 'policy' or 'state' is required")

    actions = []

    if params.get("rule"):
        spec = rule_spec(params)
        if spec not in added_rules():
            run(f"ufw {' '.join(shlex.quote(part) for part in spec.split())}")
            actions.append(f"rule '{spec}' added")

    if params.get("policy"):
        policy = params["policy"]
        direction = params.get("direction", "incoming")
        if policy not in POLICY_VALUES:
            raise ModuleError(f"ufw: unsupported policy '{policy}'")
        if direction not in POLICY_KEYS:
            raise ModuleError(f"ufw: unsupported direction '{direction}'")
        if current_policy(direction) != POLICY_VALUES[policy]:
            run(f"ufw default {policy} {direction}")
            actions.append(f"default {direction} policy set to {policy}")

    state = params.get("state")
    if state == "enabled" and not is_active():
        run("ufw --force enable")
        actions.append("firewall enabled")
    elif state == "disabled" and is_active():
        run("ufw disable")
        actions.append("firewall disabled")
    elif state not in (None, "enabled", "disabled"):
        raise ModuleError(f"ufw: unsupported state '{state}'")

    if actions:
        return changed("; ".join(actions))
    return ok("firewall already configured")
