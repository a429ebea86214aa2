"""Base system steps: package updates, time, accounts and SSH keys."""

from __future__ import annotations

from lib.runner import Step

UTILITY_PACKAGES = ["vim", "curl", "htop", "git", "mtr"]


SYSTEM_UPDATE_STEPS: list[Step] = [
    Step("Update apt cache", "apt", {"update_cache": True}),
    Step("Upgrade all packages", "apt", {"upgrade": "dist"}),
]

TIME_STEPS: list[Step] = [
    Step("Set timezone", "timezone", {"name": "{{ TIMEZONE }}"}),
    Step("Install chrony for time synchronization", "apt", {"name": "chrony", "state": "present"}),
    Step("Enable and start chrony service", "service",
         {"name": "chrony", "state": "started", "enabled": True}),
]

ADMIN_SSH_STEPS: list[Step] = [
    Step("Create SSH directory for the admin user", "file",
         {"path": "~{{ ADMIN_USER }}/.ssh", "state": "directory", "mode": "0700"}),
    Step("Add SSH key to the admin user's authorized_keys", "authorized_key",
         {"user": "{{ ADMIN_USER }}", "key": "{{ SSH_PUBLIC_KEY }}", "state": "present"}),
]

USER_STEPS: list[Step] = [
    Step("Add user", "user", {
        "name": "{{ NEW_USER_NAME }}",
        "groups": ["sudo"],
        "append": True,
        "password": "{{ NEW_USER_PASSWORD }}",
        "shell": "/bin/bash",
    }),
    # visudo rejects the content before it is installed, so a bad drop-in never lands
    Step("Configure sudo privileges for new user", "copy", {
        "dest": "/etc/sudoers.d/{{ NEW_USER_NAME }}",
        "content": "{{ NEW_USER_NAME }} ALL=(ALL) ALL\n",
        "mode": "0440",
        "validate": "/usr/sbin/visudo -cf %s",
    }),
    Step("Create .ssh directory for new user", "file", {
        "path": "~{{ NEW_USER_NAME }}/.ssh",
        "state": "directory",
        "mode": "0700",
        "owner": "{{ NEW_USER_NAME }}",
        "group": "{{ NEW_USER_NAME }}",
    }),
    Step("Add SSH key to new user's authorized_keys", "authorized_key",
         {"user": "{{ NEW_USER_NAME }}", "key": "{{ SSH_PUBLIC_KEY }}", "state": "present"}),
]

PACKAGE_STEPS: list[Step] = [
    Step("Install packages", "apt", {"name": UTILITY_PACKAGES, "state": "present"}),
]
