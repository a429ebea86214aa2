"""Tests for lib/setup_common.py: archive contents, ssh and remote commands, argument parsing."""

from __future__ import annotations

import io
import json
import os
import subprocess
import sys
import tarfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lib.arg_parser import create_provision_argument_parser
from lib.config import ProvisionConfig
from lib.remote_utils import set_dry_run
from lib.setup_common import (
    REMOTE_INSTALL_DIR,
    build_remote_command,
    check_ssh_connection,
    create_tar_archive,
    run_playbook,
    ssh_command,
)

VARIABLES = {'TIMEZONE': 'UTC', 'NEW_USER_NAME': 'deploy', 'NEW_USER_PASSWORD': 's3cret'}


class TestCreateTarArchive(unittest.TestCase):
    def setUp(self):
        data = create_tar_archive(VARIABLES)
        self.tar = tarfile.open(fileobj=io.BytesIO(data), mode='r:gz')
        self.addCleanup(self.tar.close)

    def test_contains_runner_and_config(self):
        names = self.tar.getnames()
        for expected in ('remote_setup.py', 'lib/runner.py', 'modules/apt.py',
                         'security/security_steps.py', 'config/fail2ban/jail.local'):
            self.assertIn(expected, names)

    def test_variables_file_private(self):
        member = self.tar.getmember('vars.json')
        self.assertEqual(member.mode, 0o600)
        self.assertEqual(json.load(self.tar.extractfile(member)), VARIABLES)

    def test_no_bytecode(self):
        self.assertFalse(any('__pycache__' in name for name in self.tar.getnames()))


class TestRemoteCommands(unittest.TestCase):
    def test_ssh_command(self):
        config = ProvisionConfig(host='203.0.113.5', login_user='admin', ssh_key='/keys/id', port=2222)
        cmd = ssh_command(config)
        self.assertEqual(cmd[0], 'ssh')
        self.assertEqual(cmd[-1], 'admin@203.0.113.5')
        self.assertIn('BatchMode=yes', cmd)
        self.assertEqual(cmd[cmd.index('-p') + 1], '2222')
        self.assertEqual(cmd[cmd.index('-i') + 1], '/keys/id')

    def test_root_login_without_sudo(self):
        command = build_remote_command(ProvisionConfig(host='h'))
        self.assertNotIn('sudo', command)
        self.assertIn(f'python3 {REMOTE_INSTALL_DIR}/remote_setup.py', command)

    def test_variables_removed_after_run(self):
        command = build_remote_command(ProvisionConfig(host='h', login_user='admin'))
        self.assertIn(f'sudo rm -f {REMOTE_INSTALL_DIR}/vars.json', command)
        self.assertTrue(command.rstrip().endswith('exit $rc; }'))

    def test_options_forwarded(self):
        config = ProvisionConfig(host='h', dry_run=True, steps=['Set timezone', 'Enable UFW'])
        command = build_remote_command(config)
        self.assertIn('--dry-run', command)
        self.assertIn("--steps 'Set timezone,Enable UFW'", command)

    def test_password_not_on_command_line(self):
        config = ProvisionConfig(host='h', variables=dict(VARIABLES))
        self.assertNotIn('s3cret', build_remote_command(config))


class TestArgumentParser(unittest.TestCase):
    def test_control_side_defaults(self):
        args = create_provision_argument_parser('test').parse_args(['server.example.com'])
        self.assertEqual(args.host, 'server.example.com')
        self.assertEqual(args.login_user, 'root')
        self.assertEqual(args.port, 22)
        self.assertFalse(args.dry_run)

    def test_remote_side(self):
        args = create_provision_argument_parser('test', for_remote=True).parse_args(
            ['--vars', '/opt/provision_tools/vars.json', '--dry-run'])
        self.assertEqual(args.vars_file, '/opt/provision_tools/vars.json')
        self.assertTrue(args.dry_run)


@patch('lib.setup_common.subprocess.run')
@patch('lib.setup_common.get_run_logger')
class TestCheckSshConnection(unittest.TestCase):
    def test_no_log_files_on_control_machine(self, mock_run_logger, mock_ssh):
        mock_ssh.return_value = subprocess.CompletedProcess(args=['ssh'], returncode=0, stdout='', stderr='')
        self.assertTrue(check_ssh_connection(ProvisionConfig(host='h')))
        mock_run_logger.assert_not_called()

    def test_log_dir_honoured(self, mock_run_logger, mock_ssh):
        mock_ssh.return_value = subprocess.CompletedProcess(args=['ssh'], returncode=255, stdout='',
                                                            stderr='Permission denied (publickey).')
        self.assertFalse(check_ssh_connection(ProvisionConfig(host='h', log_dir='/tmp/provision-logs')))
        mock_run_logger.assert_called_once_with(log_dir='/tmp/provision-logs')


@patch('lib.setup_common.get_run_logger')
class TestRunPlaybook(unittest.TestCase):
    def tearDown(self):
        set_dry_run(False)

    @patch('lib.setup_common.os.geteuid', return_value=1000)
    def test_requires_root(self, _euid, _logger):
        self.assertEqual(run_playbook(ProvisionConfig(local=True), VARIABLES), 1)

    @patch('lib.setup_common.Runner')
    @patch('lib.setup_common.detect_os')
    def test_missing_variables_fail_before_any_step(self, _os, mock_runner, _logger):
        config = ProvisionConfig(local=True, dry_run=True)
        self.assertEqual(run_playbook(config, {'TIMEZONE': 'UTC'}), 1)
        mock_runner.assert_not_called()


if __name__ == '__main__':
    unittest.main()
