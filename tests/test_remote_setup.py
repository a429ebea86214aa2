"""Tests for remote_setup.py: the host side runs on a bare python3 without pytz."""

from __future__ import annotations

import importlib
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lib.config import host_variables, resolve_variables
from lib.validators import validate_timezone, validate_zoneinfo_name

HOST_PACKAGES = ('remote_setup', 'lib', 'modules', 'common', 'security')
PUBLIC_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIOMqqnkVzrm0SdG6UOoqKLsabgH5C9okWi0dh2l9GKJl admin@laptop"


def without_pytz():
    """sys.modules with pytz unimportable and the project modules forgotten."""
    modules = {name: mod for name, mod in sys.modules.items()
               if name.split('.')[0] not in HOST_PACKAGES}
    modules['pytz'] = None
    return modules


class TestHostImports(unittest.TestCase):
    def test_import_without_pytz(self):
        with patch.dict(sys.modules, without_pytz(), clear=True):
            with self.assertRaises(ImportError):
                importlib.import_module('pytz')
            remote_setup = importlib.import_module('remote_setup')
            self.assertTrue(callable(remote_setup.main))
            importlib.import_module('modules.system')


class TestHostVariables(unittest.TestCase):
    def test_timezone_checked_against_zoneinfo(self):
        validators = {var.name: var.validator for var in host_variables()}
        self.assertIs(validators['TIMEZONE'], validate_zoneinfo_name)
        self.assertNotIn(validate_timezone, validators.values())

    def test_resolve_without_pytz(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            zone = os.path.join(tmpdir, 'UTC')
            with open(zone, 'wb') as f:
                f.write(b'TZif2')
            key_path = os.path.join(tmpdir, 'id.pub')
            with open(key_path, 'w') as f:
                f.write(PUBLIC_KEY + "\n")

            declarations = host_variables()
            for var in declarations:
                if var.name == 'TIMEZONE':
                    var.validator = lambda name: validate_zoneinfo_name(name, tmpdir)

            environ = {
                'TIMEZONE': 'UTC',
                'SSH_KEY_PATH': key_path,
                'NEW_USER_NAME': 'deploy',
                'NEW_USER_PASSWORD': 's3cret',
                'ANSIBLE_USER': 'admin',
            }
            with patch.dict(sys.modules, {'pytz': None}):
                resolved = resolve_variables(environ, declarations)

        self.assertEqual(resolved['TIMEZONE'], 'UTC')
        self.assertEqual(resolved['ADMIN_USER'], 'admin')


if __name__ == '__main__':
    unittest.main()
