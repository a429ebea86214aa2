"""Base system steps."""

from __future__ import annotations

from .common_steps import (
    SYSTEM_UPDATE_STEPS,
    TIME_STEPS,
    ADMIN_SSH_STEPS,
    USER_STEPS,
    PACKAGE_STEPS,
    UTILITY_PACKAGES,
)

__all__ = [
    'SYSTEM_UPDATE_STEPS',
    'TIME_STEPS',
    'ADMIN_SSH_STEPS',
    'USER_STEPS',
    'PACKAGE_STEPS',
    'UTILITY_PACKAGES',
]
