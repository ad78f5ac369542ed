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
"""Exceptions raised while generating protobuf bindings."""


class GeneratorError(Exception):
    """A fatal problem that aborts the whole generation run."""

    def __init__(self, error_message: str, proto_path: str | None = None):
        super().__init__(f'pybuf codegen error: {error_message}')
        self.error_message = error_message
        self.proto_path = proto_path

    def formatted_message(self) -> str:
        lines = [f'pybuf codegen error: {self.error_message}']
        if self.proto_path:
            lines.append(f'    at {self.proto_path}')
        return '\n'.join(lines)


class InternalError(GeneratorError):
    """The descriptor tree and the generator disagree on its shape."""


class UnresolvedTypeError(GeneratorError):
    """A type name could not be located in the compilation."""


class ParameterError(GeneratorError):
    """A plugin parameter was malformed or unknown."""
