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
"""Run-scoped name tables for a generation run.

A CompilationContext is built once per plugin request. It wraps every file in
the request, assigns each one a unique package identifier (the alias its
generated module is imported under) and maps every fully-qualified type name
to the node that defines it.
"""

import logging
from typing import Iterable

from google.protobuf import descriptor_pb2

from pybuf_compiler.errors import UnresolvedTypeError
from pybuf_compiler.names import base_name, clean_identifier
from pybuf_compiler.options import GeneratorOptions
from pybuf_compiler.proto_tree import (
    ImportedNode,
    NodeArena,
    ProtoFile,
    ProtoNode,
    build_file_tree,
)

_LOG = logging.getLogger(__name__)

# Names of the modules every generated file imports. They are registered
# before any file, so files never take them.
SUPPORT_PACKAGES = ('proto', 'math')

# Names generated code uses for its own module-level and local variables,
# which a package alias must not shadow.
GENERATED_NAMES = ('_', 'm', 'b', 'x', 'n', 's', 'tag', 'wire', 'data', 'self')

OUTPUT_SUFFIX = '_pb'


def output_name(proto_file_name: str) -> str:
    """The name of the generated file for a .proto file."""
    if proto_file_name.endswith('.proto'):
        proto_file_name = proto_file_name[:-len('.proto')]
    return proto_file_name + OUTPUT_SUFFIX + '.py'


def default_module_path(proto_file_name: str) -> str:
    """The module a generated file is imported as, absent any override."""
    return output_name(proto_file_name)[:-len('.py')].replace('/', '.')


class CompilationContext:
    """Registries shared by every component for one generation run."""

    def __init__(self, options: GeneratorOptions | None = None):
        self.options = options if options is not None else GeneratorOptions()
        self.arena = NodeArena()
        self._package_names: set[str] = set()
        self._files: list[ProtoFile] = []
        self._files_by_name: dict[str, ProtoFile] = {}
        self._objects: dict[str, ProtoNode] = {}

        for name in SUPPORT_PACKAGES + GENERATED_NAMES:
            self.register_package(name)

    @classmethod
    def from_files(
        cls,
        proto_files: Iterable[descriptor_pb2.FileDescriptorProto],
        files_to_generate: Iterable[str],
        options: GeneratorOptions | None = None,
    ) -> 'CompilationContext':
        """Builds the context for a set of files.

        proto_files must be in dependency order, as protoc sends them.
        """
        context = cls(options)
        context.wrap_files(proto_files)
        context.select_files(files_to_generate)
        context.set_package_names()
        context.build_type_name_map()
        return context

    def register_package(self, candidate: str) -> str:
        """Returns a package identifier derived from candidate, unused so far.

        Collisions are resolved by appending 1, 2, 3 and so on.
        """
        original = clean_identifier(candidate)
        name = original
        i = 1
        while name in self._package_names:
            name = f'{original}{i}'
            i += 1

        self._package_names.add(name)
        return name

    def wrap_files(
        self, proto_files: Iterable[descriptor_pb2.FileDescriptorProto]
    ) -> None:
        for proto_file in proto_files:
            file = build_file_tree(self.arena, proto_file)
            self._files.append(file)
            self._files_by_name[file.name()] = file

        for file in self._files:
            self._wrap_imported(file)

    def _wrap_imported(self, file: ProtoFile) -> None:
        """Records the symbols a file re-exports through public imports.

        Public imports are followed transitively. Every symbol is attributed
        to the directly imported file, whose generated module re-exports it.
        """
        visited: set[str] = set()

        def hoist(dependency: ProtoFile, via: ProtoFile) -> None:
            if dependency.name() in visited:
                return
            visited.add(dependency.name())

            for message in dependency.messages():
                file.add_imported(
                    ImportedNode(self.arena, file, message, via))
            for enum in dependency.enums():
                file.add_imported(ImportedNode(self.arena, file, enum, via))
            for extension in dependency.extensions():
                file.add_imported(
                    ImportedNode(self.arena, file, extension, via))

            for name in dependency.public_dependencies():
                hoist(self.file_named(name), via)

        for name in file.public_dependencies():
            public = self.file_named(name)
            hoist(public, public)

    def select_files(self, names: Iterable[str]) -> None:
        for index, name in enumerate(names):
            file = self.file_named(name)
            file.generate = True
            file.index = index

    def set_package_names(self) -> None:
        """Assigns every file its package identifier and module path."""
        for file in self._files:
            if file.generate and self.options.import_path:
                candidate = self.options.import_path.replace('.', '/')
                candidate = candidate.rstrip('/').rsplit('/', 1)[-1]
            elif file.package():
                candidate = file.package()
            else:
                candidate = base_name(file.name())

            file.package_name = self.register_package(candidate)
            file.module_path = self.options.import_map.get(
                file.name(), default_module_path(file.name()))

    def build_type_name_map(self) -> None:
        for file in self._files:
            for node in [*file.messages(), *file.enums()]:
                self._objects[node.proto_name()] = node

    def files(self) -> list[ProtoFile]:
        return list(self._files)

    def files_to_generate(self) -> list[ProtoFile]:
        return sorted((f for f in self._files if f.generate),
                      key=lambda f: f.index)

    def file_named(self, name: str) -> ProtoFile:
        file = self._files_by_name.get(name)
        if file is None:
            raise UnresolvedTypeError(f'can\'t find file {name!r}')
        return file

    def lookup(self, type_name: str) -> ProtoNode:
        """Returns the node defining a fully-qualified type name."""
        node = self._objects.get(type_name)
        if node is None:
            raise UnresolvedTypeError(
                f'can\'t find object with type {type_name}')
        return node

    def is_direct(self, node: ProtoNode, file: ProtoFile) -> bool:
        """Whether file can refer to node's own file without a public import.
        """
        defining = node.file().name()
        return defining == file.name() or defining in file.dependencies()

    def resolve(self, type_name: str, file: ProtoFile) -> ProtoNode:
        """Finds the node a type name refers to, as seen from file.

        A type defined in file or one of its direct dependencies resolves to
        its own node. A type that file can only see through a public import
        of a direct dependency resolves to that dependency's ImportedNode.
        """
        node = self.lookup(type_name)
        if self.is_direct(node, file):
            return node

        for name in file.dependencies():
            for imported in self.file_named(name).imported():
                if imported.original() is node:
                    return imported

        message = (f'failed finding publicly imported dependency for '
                   f'{type_name}, used in {file.name()}')
        if self.options.strict_imports:
            raise UnresolvedTypeError(message, file.name())

        _LOG.warning('%s', message)
        return node
