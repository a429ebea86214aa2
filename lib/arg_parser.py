#!/usr/bin/env python3

from __future__ import annotations

import argparse


def create_provision_argument_parser(
    description: str,
    for_remote: bool = False,
) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)

    if not for_remote:
        parser.add_argument("host", nargs="?", default=None,
                           help="IP address or hostname of the server to provision")
        parser.add_argument("--local", action="store_true",
                           help="Provision this machine instead of a remote host")
        parser.add_argument("-u", "--user", dest="login_user", default="root",
                           help="SSH login user on the server (default: root)")
        parser.add_argument("-k", "--key", dest="ssh_key", help="SSH private key path")
        parser.add_argument("-p", "--port", type=int, default=22, help="SSH port (default: 22)")
    else:
        parser.add_argument("--vars", dest="vars_file", default=None,
                           help="JSON file with resolved variables (written by provision_server.py)")

    parser.add_argument("--dry-run", dest="dry_run", action="store_true",
                       help="Report what would change without changing anything")
    parser.add_argument("--steps", dest="steps",
                       help="Comma-separated step names to run (declaration order is kept)")
    parser.add_argument("--list-steps", dest="list_steps", action="store_true",
                       help="List the steps of the playbook and exit")
    parser.add_argument("--log-dir", dest="log_dir", default=None,
                       help="Directory for run logs (default: /var/log/provision_tools)")

    return parser
