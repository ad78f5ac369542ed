#!/usr/bin/env python3
# Copyright 2026 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""Tests for the plugin's logging setup."""

import logging
from pathlib import Path
import tempfile
import unittest

from pybuf_compiler import log


class InstallTest(unittest.TestCase):
    """Tests for log.install."""

    def setUp(self):
        self._root = logging.getLogger()
        self._handlers = list(self._root.handlers)
        self._level = self._root.level

    def tearDown(self):
        for handler in self._root.handlers:
            if handler not in self._handlers:
                self._root.removeHandler(handler)
                if handler is not log._STDERR_HANDLER:
                    handler.close()
        self._root.setLevel(self._level)

    def test_level_names_are_shortened(self):
        log.install()
        self.assertEqual(logging.getLevelName(logging.WARNING), 'WRN')
        self.assertEqual(logging.getLevelName(logging.DEBUG), 'DBG')
        self.assertIn(log._STDERR_HANDLER, self._root.handlers)
        self.assertEqual(log._STDERR_HANDLER.level, logging.INFO)

    def test_log_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'plugin.log'
            log.install(level=logging.DEBUG, log_file=path)
            logging.getLogger('pybuf_compiler.test').warning('to the file')
            for handler in self._root.handlers:
                handler.flush()

            self.assertIn('WRN to the file', path.read_text())
            self.assertGreater(log._STDERR_HANDLER.level, logging.CRITICAL)


if __name__ == '__main__':
    unittest.main()
