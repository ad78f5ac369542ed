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
"""Parameters passed through from protoc to the pybuf plugin."""

from dataclasses import dataclass, field
import logging
from shlex import shlex

from pybuf_compiler.errors import ParameterError

_LOG = logging.getLogger(__name__)


@dataclass
class GeneratorOptions:
    """Options which apply to every file of a generation run.

    Attributes:
      import_prefix: Prepended to the module path of every import.
      import_path: Overrides the package identifier of generated files.
      import_map: Module paths to use for specific .proto files, from
          M<file.proto>=<module> parameters.
      strict_imports: Fail when a publicly imported type cannot be found
          through any direct dependency, instead of logging a warning.
    """
    import_prefix: str = ''
    import_path: str = ''
    import_map: dict[str, str] = field(default_factory=dict)
    strict_imports: bool = False


def _split_parameter(parameter: str) -> list[str]:
    # protoc passes the custom arguments in shell quoted form, separated by
    # commas. Use shlex to split them, correctly handling quoted sections, with
    # equivalent options to IFS=","
    lex = shlex(parameter)
    lex.whitespace_split = True
    lex.whitespace = ','
    lex.commenters = ''
    return list(lex)


def parse_parameter_options(parameter: str) -> GeneratorOptions:
    """Parses parameters passed through from protoc.

    These come in via `--pybuf_opt` (or the `--pybuf_out=<params>:<dir>` form)
    as a comma separated list of key=value pairs.
    """
    options = GeneratorOptions()

    for arg in _split_parameter(parameter):
        key, sep, value = arg.partition('=')
        if key.startswith('M') and len(key) > 1 and sep:
            options.import_map[key[1:]] = value
        elif key == 'import_prefix':
            options.import_prefix = value
        elif key == 'import_path':
            options.import_path = value
        elif key == 'strict_imports':
            options.strict_imports = value.lower() not in ('false', '0')
        elif key == 'plugins':
            _LOG.warning('Ignoring plugins=%s; service stubs are not generated',
                         value)
        else:
            raise ParameterError(f'unknown parameter {arg!r}')

    return options
