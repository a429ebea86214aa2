#!/usr/bin/env python3

"""Shared driver for the control-side and host-side entry points."""

from __future__ import annotations

import io
import json
import os
import shlex
import subprocess
import sys
import tarfile
import time
from typing import Optional

from lib.arg_parser import create_provision_argument_parser
from lib.config import ProvisionConfig, require_variables, resolve_variables
from lib.errors import ProvisionError
from lib.logging_utils import get_console_logger, get_run_logger, log_subprocess_result
from lib.operation_log import create_operation_logger
from lib.playbook import get_handlers, get_steps, list_step_names
from lib.remote_utils import detect_os, set_dry_run
from lib.runner import Runner
from lib.types import StrDict
from lib.validators import validate_host, validate_username


SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_DIR = os.path.dirname(SCRIPT_DIR)
REMOTE_INSTALL_DIR = "/opt/provision_tools"
REMOTE_VARS_FILE = "vars.json"
ARCHIVE_ITEMS = ["remote_setup.py", "lib", "modules", "common", "security", "config"]


def _safe_filter(tarinfo: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
    tarinfo.name = os.path.normpath(tarinfo.name)
    if tarinfo.name.startswith('..') or tarinfo.name.startswith('/'):
        return None
    if "__pycache__" in tarinfo.name.split(os.sep):
        return None
    return tarinfo


def create_tar_archive(variables: StrDict) -> bytes:
    """Pack the host-side runner plus resolved variables into a gzip tarball."""
    tar_buffer = io.BytesIO()

    with tarfile.open(fileobj=tar_buffer, mode='w:gz') as tar:
        for item in ARCHIVE_ITEMS:
            tar.add(os.path.join(PROJECT_DIR, item), arcname=item, filter=_safe_filter)

        payload = json.dumps(variables, indent=2).encode()
        info = tarfile.TarInfo(REMOTE_VARS_FILE)
        info.size = len(payload)
        info.mode = 0o600
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(payload))

    return tar_buffer.getvalue()


def ssh_command(config: ProvisionConfig) -> list[str]:
    ssh_opts = [
        "-o", "StrictHostKeyChecking=accept-new",
        "-o", "BatchMode=yes",
        "-o", "ConnectTimeout=30",
        "-o", "ServerAliveInterval=30",
        "-p", str(config.port),
    ]
    if config.ssh_key:
        ssh_opts.extend(["-i", config.ssh_key])
    return ["ssh"] + ssh_opts + [f"{config.login_user}@{config.host}"]


def build_remote_command(config: ProvisionConfig) -> str:
    """Shell command run on the host: unpack, apply, always remove the variables file."""
    install_dir = shlex.quote(REMOTE_INSTALL_DIR)
    sudo = "" if config.login_user == "root" else "sudo "

    cmd_parts = [
        f"python3 {install_dir}/remote_setup.py",
        f"--vars {install_dir}/{REMOTE_VARS_FILE}",
    ]
    if config.dry_run:
        cmd_parts.append("--dry-run")
    if config.steps:
        cmd_parts.append(f"--steps {shlex.quote(','.join(config.steps))}")
    if config.log_dir:
        cmd_parts.append(f"--log-dir {shlex.quote(config.log_dir)}")

    return (
        f"{sudo}mkdir -p {install_dir} && "
        f"{sudo}tar xzf - -C {install_dir} && "
        f"{{ {sudo}{' '.join(cmd_parts)}; rc=$?; {sudo}rm -f {install_dir}/{REMOTE_VARS_FILE}; exit $rc; }}"
    )


def check_ssh_connection(config: ProvisionConfig) -> bool:
    # control side writes a log file only when --log-dir asks for one
    logger = get_run_logger(log_dir=config.log_dir) if config.log_dir else get_console_logger()
    try:
        result = subprocess.run(
            ssh_command(config) + ["true"],
            capture_output=True, text=True, timeout=60
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"⚠ SSH connection to {config.host} timed out")
        return False
    return log_subprocess_result(logger, f"SSH connection to {config.login_user}@{config.host}", result)


def run_remote_setup(config: ProvisionConfig, variables: StrDict) -> int:
    """Stream the runner to the host over SSH and relay its output; returns its exit code."""
    try:
        tar_data = create_tar_archive(variables)
    except FileNotFoundError as e:
        print(f"Error: Remote setup files not found: {e}")
        return 1

    cmd = ssh_command(config) + [build_remote_command(config)]

    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=False,
            bufsize=0,
        )
    except OSError as e:
        print(f"Error: cannot start ssh: {e}")
        return 1

    assert process.stdin is not None and process.stdout is not None
    process.stdin.write(tar_data)
    process.stdin.close()

    for line in io.TextIOWrapper(process.stdout, encoding='utf-8', errors='replace'):
        print(line, end='', flush=True)

    return process.wait()


def run_playbook(config: ProvisionConfig, variables: StrDict) -> int:
    """Apply the playbook on this machine. Returns a process exit code."""
    set_dry_run(config.dry_run)
    logger = get_run_logger(log_dir=config.log_dir)

    if not config.dry_run and hasattr(os, "geteuid") and os.geteuid() != 0:
        logger.error("Error: provisioning must run as root (or use --dry-run)")
        return 1

    detect_os()

    try:
        require_variables(variables)
        steps = get_steps(config.steps)
        operation_log = create_operation_logger("provision", config.log_dir)
        runner = Runner(steps, get_handlers(), variables, logger=logger, operation_log=operation_log)
        result = runner.run()
    except ProvisionError as e:
        logger.error(f"\n✗ Provisioning failed: {e}")
        return 1

    if result.handlers:
        logger.info(f"Handlers run: {', '.join(result.handlers)}")
    return 0


def print_step_list() -> None:
    for i, name in enumerate(list_step_names(), 1):
        print(f"{i:2d}. {name}")


def setup_main(description: str) -> int:
    parser = create_provision_argument_parser(description)
    args = parser.parse_args()
    config = ProvisionConfig.from_args(args)

    if config.list_steps:
        print_step_list()
        return 0

    if not config.local:
        if not config.host:
            print("Error: a host is required unless --local is given")
            return 1
        if not validate_host(config.host):
            print(f"Error: Invalid host: {config.host}")
            return 1
        if not validate_username(config.login_user):
            print(f"Error: Invalid username: {config.login_user}")
            return 1

    # Every variable is resolved before the host is touched
    try:
        config.variables = resolve_variables()
        get_steps(config.steps)
    except ProvisionError as e:
        print(f"Error: {e}")
        return 1

    print("=" * 60)
    print(description)
    print("=" * 60)
    print(f"Host: {'localhost' if config.local else config.host}")
    print(f"Admin user: {config.variables['ADMIN_USER']}")
    print(f"New user: {config.variables['NEW_USER_NAME']}")
    print(f"Timezone: {config.variables['TIMEZONE']}")
    if config.steps:
        print(f"Steps: {', '.join(config.steps)}")
    if config.dry_run:
        print("Dry-run: Yes")
    print("=" * 60)
    sys.stdout.flush()

    if config.local:
        returncode = run_playbook(config, config.variables)
    else:
        if not check_ssh_connection(config):
            return 1
        returncode = run_remote_setup(config, config.variables)

    if returncode != 0:
        print(f"\n✗ Setup failed (exit code: {returncode})")
        return 1

    print()
    print("=" * 60)
    print("Setup Complete!")
    print("=" * 60)
    if not config.local:
        print(f"Connect via SSH: ssh {config.variables['NEW_USER_NAME']}@{config.host}")
    print("=" * 60)
    return 0
