"""Tests for modules/edits.py: lineinfile and blockinfile."""

from __future__ import annotations

import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lib.errors import ModuleError
from lib.remote_utils import set_dry_run
from modules.edits import apply_blockinfile, apply_lineinfile, ensure_block, ensure_line, remove_lines

SSHD_CONFIG = """\
Include /etc/ssh/sshd_config.d/*.conf
#PermitRootLogin prohibit-password
PasswordAuthentication yes
#PubkeyAuthentication yes
"""


class TestEnsureLine(unittest.TestCase):
    def test_replaces_match(self):
        lines, did_change = ensure_line(['a', '#PermitRootLogin yes', 'b'], 'PermitRootLogin no', r'^#?PermitRootLogin')
        self.assertTrue(did_change)
        self.assertEqual(lines, ['a', 'PermitRootLogin no', 'b'])

    def test_replaces_last_match_only(self):
        lines, _ = ensure_line(['Port 22', 'x', 'Port 2222'], 'Port 22', r'^Port ')
        self.assertEqual(lines, ['Port 22', 'x', 'Port 22'])

    def test_already_present(self):
        original = ['PermitRootLogin no']
        lines, did_change = ensure_line(original, 'PermitRootLogin no', r'^#?PermitRootLogin')
        self.assertFalse(did_change)
        self.assertEqual(lines, original)

    def test_appends_when_no_match(self):
        lines, did_change = ensure_line(['a'], 'MaxAuthTries 3', r'^#?MaxAuthTries')
        self.assertTrue(did_change)
        self.assertEqual(lines, ['a', 'MaxAuthTries 3'])

    def test_without_regexp(self):
        self.assertFalse(ensure_line(['x'], 'x')[1])
        self.assertEqual(ensure_line(['x'], 'y'), (['x', 'y'], True))

    def test_invalid_regexp(self):
        with self.assertRaises(ModuleError):
            ensure_line([], 'x', '(')

    def test_remove_lines(self):
        self.assertEqual(remove_lines(['a', 'b', 'ab'], regexp='^a'), (['b'], True))
        self.assertEqual(remove_lines(['a'], line='b'), (['a'], False))


class TestEnsureBlock(unittest.TestCase):
    def test_appends_block(self):
        lines, did_change = ensure_block(['keep'], 'one\ntwo\n')
        self.assertTrue(did_change)
        self.assertEqual(lines, ['keep', '# BEGIN MANAGED BLOCK', 'one', 'two', '# END MANAGED BLOCK'])

    def test_replaces_existing_block(self):
        existing = ['a', '# BEGIN MANAGED BLOCK', 'old', '# END MANAGED BLOCK', 'z']
        lines, did_change = ensure_block(existing, 'new')
        self.assertTrue(did_change)
        self.assertEqual(lines, ['a', '# BEGIN MANAGED BLOCK', 'new', '# END MANAGED BLOCK', 'z'])

    def test_unchanged_block(self):
        existing = ['// BEGIN MANAGED BLOCK', 'new', '// END MANAGED BLOCK']
        self.assertFalse(ensure_block(existing, 'new', '// {mark} MANAGED BLOCK')[1])

    def test_remove_block(self):
        existing = ['a', '# BEGIN MANAGED BLOCK', 'old', '# END MANAGED BLOCK']
        self.assertEqual(ensure_block(existing, 'old', present=False), (['a'], True))

    def test_begin_without_end(self):
        existing = ['a', '# BEGIN MANAGED BLOCK', 'old', 'z']
        with self.assertRaises(ModuleError):
            ensure_block(existing, 'new')

    def test_end_without_begin(self):
        with self.assertRaises(ModuleError):
            ensure_block(['old', '# END MANAGED BLOCK'], 'new')


class FileTestCase(unittest.TestCase):
    def setUp(self):
        set_dry_run(False)
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, 'sshd_config')

    def tearDown(self):
        set_dry_run(False)
        self.tmpdir.cleanup()

    def write(self, content):
        with open(self.path, 'w') as f:
            f.write(content)

    def read(self):
        with open(self.path) as f:
            return f.read()


class TestApplyLineinfile(FileTestCase):
    def test_converges(self):
        self.write(SSHD_CONFIG)
        params = {'path': self.path, 'regexp': r'^#?PermitRootLogin', 'line': 'PermitRootLogin no'}
        self.assertTrue(apply_lineinfile(params).changed)
        self.assertIn('PermitRootLogin no\n', self.read())
        self.assertNotIn('#PermitRootLogin', self.read())
        self.assertFalse(apply_lineinfile(params).changed)

    def test_keeps_file_mode(self):
        self.write(SSHD_CONFIG)
        os.chmod(self.path, 0o600)
        apply_lineinfile({'path': self.path, 'line': 'MaxAuthTries 3'})
        self.assertEqual(os.stat(self.path).st_mode & 0o777, 0o600)

    def test_missing_file(self):
        with self.assertRaises(ModuleError):
            apply_lineinfile({'path': self.path, 'line': 'x'})

    def test_create(self):
        result = apply_lineinfile({'path': self.path, 'line': 'x', 'create': True})
        self.assertTrue(result.changed)
        self.assertEqual(self.read(), 'x\n')

    def test_absent(self):
        self.write(SSHD_CONFIG)
        result = apply_lineinfile({'path': self.path, 'regexp': '^PasswordAuthentication', 'state': 'absent'})
        self.assertTrue(result.changed)
        self.assertNotIn('PasswordAuthentication', self.read())

    def test_dry_run_leaves_file(self):
        self.write(SSHD_CONFIG)
        set_dry_run(True)
        result = apply_lineinfile({'path': self.path, 'regexp': r'^#?PermitRootLogin', 'line': 'PermitRootLogin no'})
        self.assertTrue(result.changed)
        self.assertTrue(result.msg.startswith('would change'))
        self.assertEqual(self.read(), SSHD_CONFIG)


class TestApplyBlockinfile(FileTestCase):
    def test_create_and_converge(self):
        params = {'path': self.path, 'block': 'Unattended-Upgrade::Mail "root";',
                  'marker': '// {mark} MANAGED BLOCK', 'create': True}
        self.assertTrue(apply_blockinfile(params).changed)
        self.assertEqual(self.read(), '// BEGIN MANAGED BLOCK\nUnattended-Upgrade::Mail "root";\n// END MANAGED BLOCK\n')
        self.assertFalse(apply_blockinfile(params).changed)

    def test_marker_requires_placeholder(self):
        with self.assertRaises(ModuleError):
            apply_blockinfile({'path': self.path, 'block': 'x', 'marker': '# managed', 'create': True})

    def test_preserves_surrounding_content(self):
        self.write('before\n')
        apply_blockinfile({'path': self.path, 'block': 'x'})
        self.assertTrue(self.read().startswith('before\n# BEGIN MANAGED BLOCK\n'))

    def test_unbalanced_markers_leave_file(self):
        content = 'before\n# BEGIN MANAGED BLOCK\nhand edited\nafter\n'
        self.write(content)
        with self.assertRaises(ModuleError):
            apply_blockinfile({'path': self.path, 'block': 'x'})
        self.assertEqual(self.read(), content)


if __name__ == '__main__':
    unittest.main()
