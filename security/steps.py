"""Security hardening steps."""

from __future__ import annotations

from .security_steps import (
    SSH_HARDENING_STEPS,
    INTRUSION_PREVENTION_STEPS,
    FIREWALL_STEPS,
    AUTO_UPDATE_STEPS,
    SECURITY_HANDLERS,
)

__all__ = [
    'SSH_HARDENING_STEPS',
    'INTRUSION_PREVENTION_STEPS',
    'FIREWALL_STEPS',
    'AUTO_UPDATE_STEPS',
    'SECURITY_HANDLERS',
]
