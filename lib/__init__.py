"""provision_tools - Idempotent basic setup for a remote Debian/Ubuntu server."""

from __future__ import annotations

from .config import ProvisionConfig, resolve_variables
from .validators import validate_host, validate_ip_address, validate_username
from .remote_utils import run, set_dry_run, is_dry_run

__all__ = [
    "ProvisionConfig",
    "resolve_variables",
    "validate_host",
    "validate_ip_address",
    "validate_username",
    "run",
    "set_dry_run",
    "is_dry_run",
]
