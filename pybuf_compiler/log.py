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
"""Tools for configuring Python logging.

stdout carries the plugin's response to protoc, so all logs go to stderr.
"""

import logging
from pathlib import Path
from typing import NamedTuple


class _LogLevel(NamedTuple):
    level: int
    ascii: str


# Shorten all the log levels to 3 characters for column-aligned logs.
_LOG_LEVELS = (
    _LogLevel(logging.CRITICAL, 'CRT'),
    _LogLevel(logging.ERROR, 'ERR'),
    _LogLevel(logging.WARNING, 'WRN'),
    _LogLevel(logging.INFO, 'INF'),
    _LogLevel(logging.DEBUG, 'DBG'),
)

_STDERR_HANDLER = logging.StreamHandler()


def _setup_handler(
    handler: logging.Handler, formatter: logging.Formatter, level: int
) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logging.getLogger().addHandler(handler)


def install(
    level: int = logging.INFO,
    hide_timestamp: bool = True,
    log_file: str | Path | None = None,
) -> None:
    """Configures the system logger for the plugin's log format.

    protoc prefixes plugin output with its own context, so timestamps are
    left out unless requested.
    """
    timestamp_fmt = '' if hide_timestamp else '%(asctime)s '
    formatter = logging.Formatter(
        timestamp_fmt + '%(levelname)s %(message)s', '%Y%m%d %H:%M:%S'
    )

    # The handlers filter by level; the root logger passes everything on.
    logging.getLogger().setLevel(1)

    _setup_handler(_STDERR_HANDLER, formatter, level)

    if log_file:
        _setup_handler(logging.FileHandler(log_file), formatter, level)
        # Since we're using a file, filter logs out of the stderr handler.
        _STDERR_HANDLER.setLevel(logging.CRITICAL + 1)

    for log_level in _LOG_LEVELS:
        logging.addLevelName(log_level.level, log_level.ascii)
