"""Security hardening steps: SSH daemon, fail2ban, firewall and automatic updates."""

from __future__ import annotations

from lib.runner import Handler, Step

SSHD_CONFIG = "/etc/ssh/sshd_config"
UNATTENDED_UPGRADES_CONFIG = "/etc/apt/apt.conf.d/50unattended-upgrades"

SSHD_SETTINGS = [
    {"regexp": r"^#?PermitRootLogin", "line": "PermitRootLogin prohibit-password"},
    {"regexp": r"^#?PasswordAuthentication", "line": "PasswordAuthentication no"},
    {"regexp": r"^#?ChallengeResponseAuthentication", "line": "ChallengeResponseAuthentication no"},
    {"regexp": r"^#?UsePAM", "line": "UsePAM no"},
    {"regexp": r"^#?PubkeyAuthentication", "line": "PubkeyAuthentication yes"},
]

UNATTENDED_UPGRADES_BLOCK = """\
Unattended-Upgrade::Allowed-Origins {
    "${distro_id}:${distro_codename}";
    "${distro_id}:${distro_codename}-security";
    "${distro_id}ESMApps:${distro_codename}-apps-security";
    "${distro_id}ESM:${distro_codename}-infra-security";
};
Unattended-Upgrade::AutoFixInterruptedDpkg "true";
Unattended-Upgrade::MinimalSteps "true";
Unattended-Upgrade::InstallOnShutdown "false";
Unattended-Upgrade::Remove-Unused-Dependencies "true";
Unattended-Upgrade::Automatic-Reboot "false";
"""


SSH_HARDENING_STEPS: list[Step] = [
    Step("Configure secure SSH configuration", "lineinfile",
         {"path": SSHD_CONFIG, "state": "present"},
         loop=SSHD_SETTINGS, notify="restart ssh"),
    Step("Create custom SSH config", "copy", {
        "src": "config/ssh/99-custom.conf",
        "dest": "/etc/ssh/sshd_config.d/99-custom.conf",
        "mode": "0644",
    }, notify="restart ssh"),
]

INTRUSION_PREVENTION_STEPS: list[Step] = [
    Step("Install security packages", "apt", {"name": ["fail2ban", "ufw"], "state": "present"}),
    Step("Create fail2ban jail.local file", "copy", {
        "src": "config/fail2ban/jail.local",
        "dest": "/etc/fail2ban/jail.local",
        "mode": "0644",
    }, notify="restart fail2ban"),
    Step("Enable fail2ban service", "service",
         {"name": "fail2ban", "state": "started", "enabled": True}),
]

# SSH is allowed before the firewall is switched on so the session survives
FIREWALL_STEPS: list[Step] = [
    Step("Allow OpenSSH through UFW", "ufw", {"rule": "allow", "name": "OpenSSH"}),
    Step("Enable UFW", "ufw", {"state": "enabled", "policy": "deny", "direction": "incoming"}),
]

AUTO_UPDATE_STEPS: list[Step] = [
    Step("Install unattended-upgrades", "apt", {"name": "unattended-upgrades", "state": "present"}),
    Step("Enable unattended-upgrades", "debconf", {
        "name": "unattended-upgrades",
        "question": "unattended-upgrades/enable_auto_updates",
        "value": "true",
        "vtype": "boolean",
    }),
    Step("Configure unattended-upgrades", "blockinfile", {
        "path": UNATTENDED_UPGRADES_CONFIG,
        "create": True,
        "block": UNATTENDED_UPGRADES_BLOCK,
        "marker": "// {mark} MANAGED BLOCK",
    }),
    Step("Configure automatic updates", "copy", {
        "src": "config/apt/20auto-upgrades",
        "dest": "/etc/apt/apt.conf.d/20auto-upgrades",
        "mode": "0644",
    }),
    Step("Start and enable unattended-upgrades service", "service",
         {"name": "unattended-upgrades", "state": "started", "enabled": True}),
]

SECURITY_HANDLERS: list[Handler] = [
    Handler("restart ssh", "service", {"name": "ssh", "state": "restarted"}),
    Handler("restart fail2ban", "service", {"name": "fail2ban", "state": "restarted"}),
]
