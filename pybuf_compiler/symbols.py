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
"""Exported symbols and the forwarding aliases generated for them.

When a file is generated, each symbol it defines is recorded in the file's
export table. A file that publicly imports it replays those records to define
the same names in its own module, forwarding to the defining module.
"""

import abc
from dataclasses import dataclass, field
import re
from typing import Callable

from pybuf_compiler.output_file import OutputFile

_QUALIFIER = re.compile(r'\b[A-Za-z_][A-Za-z0-9_]*\.')


def _unqualified(annotation: str) -> str:
    """Drops module qualifiers from a type annotation.

    The types a forwarded getter returns are hoisted next to it, so they are
    referred to by their local names.
    """
    return _QUALIFIER.sub('', annotation)


class Symbol(abc.ABC):
    """A name a generated module defines for one schema element."""

    @abc.abstractmethod
    def generate_alias(
        self,
        output: OutputFile,
        module: str,
        record_type_use: Callable[[str], None],
    ) -> None:
        """Writes a definition of the symbol forwarding to module."""


@dataclass
class GetterSymbol:
    """A getter which can be forwarded by an alias of its message.

    typ is the getter's return annotation. type_name is the schema type it
    returns, if any, and gen_type is set when that type is a message or enum
    generated in the same module.
    """
    name: str
    typ: str
    type_name: str = ''
    gen_type: bool = False


@dataclass
class MessageSymbol(Symbol):
    """A generated message class."""
    sym: str
    has_extensions: bool = False
    is_message_set: bool = False
    has_oneof: bool = False
    getters: list[GetterSymbol] = field(default_factory=list)

    def generate_alias(
        self,
        output: OutputFile,
        module: str,
        record_type_use: Callable[[str], None],
    ) -> None:
        remote = f'{module}.{self.sym}'
        output.write_line(f'class {self.sym}(proto.Message):')
        with output.indent():
            output.write_line(f'"""Forwarding alias for {remote}."""')
            output.write_line()
            output.write_line(f'_original = proto.original_type({remote})')
            output.write_line(f'_fields = {remote}._fields')
            output.write_line(f'_oneofs = {remote}._oneofs')
            output.write_line()
            output.write_line('def __init__(self, *args, **kwargs):')
            with output.indent():
                output.write_line(f'{remote}.__init__(self, *args, **kwargs)')
            output.write_line()
            output.write_line('def reset(self):')
            with output.indent():
                output.write_line(f'{remote}.reset(self)')
            output.write_line()
            output.write_line('def string(self) -> str:')
            with output.indent():
                output.write_line(f'return {remote}.string(self)')
            output.write_line()
            output.write_line('def proto_message(self):')
            with output.indent():
                output.write_line('pass')

            if self.has_extensions:
                output.write_line()
                output.write_line('def extension_range_array(self):')
                with output.indent():
                    output.write_line(
                        f'return {remote}.extension_range_array(self)')
                if self.is_message_set:
                    for method in ('marshal', 'unmarshal'):
                        output.write_line()
                        output.write_line(f'def {method}(self, *args):')
                        with output.indent():
                            output.write_line(
                                f'return {remote}.{method}(self, *args)')

            if self.has_oneof:
                # The remote oneof functions only touch the attributes both
                # classes share.
                output.write_line()
                output.write_line('def oneof_funcs(self):')
                with output.indent():
                    output.write_line(f'return {remote}.oneof_funcs(self)')

            for getter in self.getters:
                if getter.type_name:
                    record_type_use(getter.type_name)
                typ = getter.typ
                if getter.gen_type:
                    typ = _unqualified(typ)
                output.write_line()
                output.write_line(f'def {getter.name}(self) -> {typ!r}:')
                with output.indent():
                    output.write_line(f'return {remote}.{getter.name}(self)')
        output.write_line()


@dataclass
class EnumSymbol(Symbol):
    """A generated enum class and its name/value maps."""
    name: str

    def generate_alias(
        self,
        output: OutputFile,
        module: str,
        record_type_use: Callable[[str], None],
    ) -> None:
        output.write_line(f'{self.name} = {module}.{self.name}')
        output.write_line(f'{self.name}_name = {module}.{self.name}_name')
        output.write_line(f'{self.name}_value = {module}.{self.name}_value')


@dataclass
class ConstSymbol(Symbol):
    """A module-level constant or variable."""
    name: str

    def generate_alias(
        self,
        output: OutputFile,
        module: str,
        record_type_use: Callable[[str], None],
    ) -> None:
        output.write_line(f'{self.name} = {module}.{self.name}')
