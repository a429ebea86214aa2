"""Tests for lib/operation_log.py: OperationLogger and create_operation_logger."""

from __future__ import annotations

import json
import os
import sys
import tempfile
import unittest
import uuid

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lib.operation_log import OperationLogger, create_operation_logger


def read_events(logger):
    for h in logger.logger.handlers:
        h.flush()
    events = []
    with open(logger.log_file, 'r') as f:
        for line in f:
            events.append(json.loads(line.split(' - ', 3)[3]))
    return events


class TestOperationLogger(unittest.TestCase):
    def _make_logger(self, tmpdir):
        op_id = f'test-op-{uuid.uuid4().hex[:8]}'
        log_file = os.path.join(tmpdir, f'{op_id}.log')
        return OperationLogger(op_id, log_file)

    def test_initial_status(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            self.assertEqual(logger.status, 'running')
            self.assertIsNone(logger.current_step)

    def test_log_step(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            logger.log_step('Set timezone', 'started')
            self.assertEqual(logger.current_step, 'Set timezone')

    def test_changed_steps_tracked(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            logger.log_step('a', 'ok')
            logger.log_step('b', 'changed', 'timezone set to UTC', 0.5)
            self.assertEqual(logger.changed_steps, ['b'])

    def test_log_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            logger.log_step('a', 'started')
            logger.log_error('step_execution_error', 'something broke')
            # Should not change status
            self.assertEqual(logger.status, 'running')
            error = read_events(logger)[-1]
            self.assertEqual(error['event_type'], 'error')
            self.assertEqual(error['current_step'], 'a')

    def test_complete(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            logger.log_step('a', 'changed')
            logger.complete('completed', 'ok=0 changed=1 failed=0')
            self.assertEqual(logger.status, 'completed')
            event = read_events(logger)[-1]
            self.assertEqual(event['event_type'], 'operation_complete')
            self.assertEqual(event['changed_steps'], 1)
            self.assertEqual(event['summary'], 'ok=0 changed=1 failed=0')

    def test_log_handler(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            logger.log_handler('restart ssh', 'completed', ['Harden sshd', 'Install sshd drop-in'])
            event = read_events(logger)[-1]
            self.assertEqual(event['handler'], 'restart ssh')
            self.assertEqual(event['notified_by'], ['Harden sshd', 'Install sshd drop-in'])

    def test_events_are_json_lines(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = self._make_logger(tmpdir)
            logger.log_step('a', 'ok')
            events = read_events(logger)
            self.assertEqual(events[0]['event_type'], 'operation_start')
            self.assertTrue(all(e['operation_id'] == logger.operation_id for e in events))


class TestCreateOperationLogger(unittest.TestCase):
    def test_log_file_under_operations(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = create_operation_logger('provision', tmpdir)
            self.assertEqual(os.path.dirname(logger.log_file), os.path.join(tmpdir, 'operations'))
            self.assertTrue(os.path.basename(logger.log_file).startswith('provision_'))
            self.assertTrue(os.path.exists(logger.log_file))


if __name__ == '__main__':
    unittest.main()
