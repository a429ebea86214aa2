#!/usr/bin/env python3

"""Validation utilities for provisioning inputs."""

import os
import re

ZONEINFO_DIR = "/usr/share/zoneinfo"


def validate_ip_address(ip: str) -> bool:
    """Validate an IPv4 address."""
    pattern = r'^(\d{1,3}\.){3}\d{1,3}$'
    if not re.match(pattern, ip):
        return False
    octets = ip.split('.')
    return all(0 <= int(octet) <= 255 for octet in octets)


def validate_host(host: str) -> bool:
    """Validate a hostname or IP address."""
    normalized_host = host.lower().rstrip('.')
    if validate_ip_address(normalized_host):
        return True
    hostname_pattern = r'^([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)*[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?$'
    return bool(re.match(hostname_pattern, normalized_host))


def validate_username(username: str) -> bool:
    """Validate a Unix username."""
    pattern = r'^[a-z_][a-z0-9_-]{0,31}$'
    return bool(re.match(pattern, username))


def validate_timezone(timezone: str) -> bool:
    """Validate an IANA timezone name (e.g. 'Europe/Kyiv') against pytz's database."""
    import pytz
    return timezone in pytz.all_timezones_set


def validate_zoneinfo_name(timezone: str, zoneinfo_dir: str = ZONEINFO_DIR) -> bool:
    """Check a timezone name against the host's own tzdata files.

    Used on the provisioned host, which only has the standard library.
    """
    if not timezone or timezone.startswith("/") or ".." in timezone.split("/"):
        return False
    path = os.path.join(zoneinfo_dir, timezone)
    try:
        with open(path, "rb") as f:
            return f.read(4) == b"TZif"
    except OSError:
        return False


def validate_ssh_public_key(key: str) -> bool:
    """Check that a line looks like an OpenSSH public key: '<type> <base64> [comment]'."""
    parts = key.split()
    if len(parts) < 2:
        return False
    key_type, body = parts[0], parts[1]
    if not (key_type.startswith("ssh-") or key_type.startswith("ecdsa-") or key_type.startswith("sk-")):
        return False
    return bool(re.match(r'^[A-Za-z0-9+/]+={0,3}$', body))
