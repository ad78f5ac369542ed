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
"""This module defines data structures for protobuf entities.

Every node built for a compilation lives in a NodeArena. Nodes own their
children through lists of ids and look up their parent (and file) by id, so
the tree never holds ownership cycles.
"""

import abc
import enum
from typing import Callable, Iterator, TypeVar

from google.protobuf import descriptor_pb2

from pybuf_compiler.errors import InternalError
from pybuf_compiler.names import camel_case, camel_case_slice

T = TypeVar('T')  # pylint: disable=invalid-name

# Field numbers of the descriptor.proto elements used in source code info
# location paths.
_PACKAGE_PATH = 2
_MESSAGE_PATH = 4
_ENUM_PATH = 5
_NESTED_MESSAGE_PATH = 3
_NESTED_ENUM_PATH = 4
MESSAGE_FIELD_PATH = 2
MESSAGE_ONEOF_PATH = 8
ENUM_VALUE_PATH = 2

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto


class NodeArena:
    """Owns every ProtoNode created for a compilation, addressed by id."""

    def __init__(self) -> None:
        self._nodes: list['ProtoNode'] = []

    def add(self, node: 'ProtoNode') -> int:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def get(self, node_id: int) -> 'ProtoNode':
        return self._nodes[node_id]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator['ProtoNode']:
        return iter(self._nodes)


class ProtoNode(abc.ABC):
    """A named schema element: a file, message, enum or extension."""

    class Type(enum.Enum):
        """The type of a ProtoNode.

        FILE is a compilation unit.
        MESSAGE maps to a generated class.
        ENUM maps to a generated int subclass and its constants.
        EXTENSION maps to a generated extension descriptor object.
        IMPORTED is a symbol made visible through a public import.
        """
        FILE = 1
        MESSAGE = 2
        ENUM = 3
        EXTENSION = 4
        IMPORTED = 5

    def __init__(
        self, arena: NodeArena, file_id: int | None, parent_id: int | None
    ):
        self._arena = arena
        self._parent_id = parent_id
        self._id = arena.add(self)
        self._file_id = self._id if file_id is None else file_id
        self._type_name: list[str] | None = None

    @abc.abstractmethod
    def type(self) -> 'ProtoNode.Type':
        """The type of the node."""

    @abc.abstractmethod
    def name(self) -> str:
        """The unqualified schema name of the node."""

    def node_id(self) -> int:
        return self._id

    def arena(self) -> NodeArena:
        return self._arena

    def parent(self) -> 'ProtoNode | None':
        if self._parent_id is None:
            return None
        return self._arena.get(self._parent_id)

    def file(self) -> 'ProtoFile':
        node = self._arena.get(self._file_id)
        assert isinstance(node, ProtoFile)
        return node

    def type_name(self) -> list[str]:
        """The path of names from the outermost message down to this node.

        The result is computed once and shared; callers must not modify it.
        """
        if self._type_name is None:
            self._type_name = list(
                self._attr_hierarchy(lambda node: node.name()))
        return self._type_name

    def camel_name(self) -> str:
        """The CamelCased, '_'-joined name used for generated classes."""
        return camel_case_slice(self.type_name())

    def proto_name(self) -> str:
        """Fully-qualified schema name, starting with a dot."""
        parts = self.type_name()
        package = self.file().package()
        if package:
            parts = [package] + parts
        return '.' + '.'.join(parts)

    def _attr_hierarchy(
        self, attr_accessor: Callable[['ProtoNode'], T]
    ) -> Iterator[T]:
        """Fetches node attributes from the outermost scope to this node.

        The file node is not part of the hierarchy.
        """
        hierarchy = []
        node: ProtoNode | None = self
        while node is not None and node.type() != ProtoNode.Type.FILE:
            hierarchy.append(attr_accessor(node))
            node = node.parent()
        return reversed(hierarchy)


class ProtoFile(ProtoNode):
    """A compilation unit and the flattened lists of what it declares."""

    def __init__(
        self, arena: NodeArena, proto: descriptor_pb2.FileDescriptorProto
    ):
        super().__init__(arena, None, None)
        self._proto = proto
        self._message_ids: list[int] = []
        self._enum_ids: list[int] = []
        self._extension_ids: list[int] = []
        self._imported_ids: list[int] = []
        self._exported: dict[int, list] = {}
        self._comments: dict[str, descriptor_pb2.SourceCodeInfo.Location] = {}

        # Assigned by the CompilationContext.
        self.index = 0
        self.package_name = ''
        self.module_path = ''
        self.generate = False

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.FILE

    def name(self) -> str:
        return self._proto.name

    def proto(self) -> descriptor_pb2.FileDescriptorProto:
        return self._proto

    def package(self) -> str:
        return self._proto.package

    def proto3(self) -> bool:
        return self._proto.syntax == 'proto3'

    def messages(self) -> list['ProtoMessage']:
        """All messages declared in the file, outer messages first."""
        return [self._arena.get(i) for i in self._message_ids]  # type: ignore

    def top_level_messages(self) -> list['ProtoMessage']:
        return [m for m in self.messages() if m.parent() is self]

    def enums(self) -> list['ProtoEnum']:
        """All enums declared in the file, top-level enums first."""
        return [self._arena.get(i) for i in self._enum_ids]  # type: ignore

    def extensions(self) -> list['ProtoExtension']:
        """Extensions declared at file scope."""
        return [self._arena.get(i) for i in self._extension_ids
                ]  # type: ignore

    def imported(self) -> list['ImportedNode']:
        return [self._arena.get(i) for i in self._imported_ids]  # type: ignore

    def add_imported(self, node: 'ImportedNode') -> None:
        self._imported_ids.append(node.node_id())

    def dependencies(self) -> list[str]:
        return list(self._proto.dependency)

    def public_dependencies(self) -> list[str]:
        return [self._proto.dependency[i] for i in self._proto.public_dependency]

    def is_weak_dependency(self, index: int) -> bool:
        return index in self._proto.weak_dependency

    def var_name(self) -> str:
        """Name of the generated variable holding the descriptor blob."""
        return f'fileDescriptor{self.index}'

    def add_export(self, node: ProtoNode, symbol) -> None:
        self._exported.setdefault(node.node_id(), []).append(symbol)

    def exported(self, node: ProtoNode) -> list:
        return list(self._exported.get(node.node_id(), ()))

    def comments(self, path: str):
        """Returns the leading comments recorded for a location path."""
        location = self._comments.get(path)
        if location is None:
            return None
        return location.leading_comments

    def package_comments(self):
        return self.comments(str(_PACKAGE_PATH))


class ProtoMessage(ProtoNode):
    """Representation of a message in a .proto file."""

    def __init__(
        self,
        arena: NodeArena,
        file: ProtoFile,
        parent: ProtoNode,
        proto: descriptor_pb2.DescriptorProto,
        index: int,
    ):
        super().__init__(arena, file.node_id(), parent.node_id())
        self._proto = proto
        self._index = index
        self._nested_ids: list[int] = []
        self._enum_ids: list[int] = []
        self._extension_ids: list[int] = []
        self._group = False

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.MESSAGE

    def name(self) -> str:
        return self._proto.name

    def proto(self) -> descriptor_pb2.DescriptorProto:
        return self._proto

    def fields(self) -> list[descriptor_pb2.FieldDescriptorProto]:
        return list(self._proto.field)

    def nested(self) -> list['ProtoMessage']:
        return [self._arena.get(i) for i in self._nested_ids]  # type: ignore

    def enums(self) -> list['ProtoEnum']:
        return [self._arena.get(i) for i in self._enum_ids]  # type: ignore

    def extensions(self) -> list['ProtoExtension']:
        return [self._arena.get(i) for i in self._extension_ids
                ]  # type: ignore

    def is_group(self) -> bool:
        return self._group

    def is_map_entry(self) -> bool:
        return (self._proto.options.map_entry
                and len(self._proto.field) == 2
                and self._proto.field[0].number == 1
                and self._proto.field[1].number == 2)

    def proto3(self) -> bool:
        return self.file().proto3()

    def indexes(self) -> list[int]:
        """Positions of this message and its ancestors in their parents."""
        indexes = []
        node: ProtoNode | None = self
        while isinstance(node, ProtoMessage):
            indexes.append(node._index)  # pylint: disable=protected-access
            node = node.parent()
        return list(reversed(indexes))

    def path(self) -> str:
        """The source code info location path of the message."""
        parent = self.parent()
        if isinstance(parent, ProtoMessage):
            return f'{parent.path()},{_NESTED_MESSAGE_PATH},{self._index}'
        return f'{_MESSAGE_PATH},{self._index}'


class ProtoEnum(ProtoNode):
    """Representation of an enum in a .proto file."""

    def __init__(
        self,
        arena: NodeArena,
        file: ProtoFile,
        parent: ProtoNode,
        proto: descriptor_pb2.EnumDescriptorProto,
        index: int,
    ):
        super().__init__(arena, file.node_id(), parent.node_id())
        self._proto = proto
        self._index = index

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.ENUM

    def name(self) -> str:
        return self._proto.name

    def proto(self) -> descriptor_pb2.EnumDescriptorProto:
        return self._proto

    def values(self) -> list[descriptor_pb2.EnumValueDescriptorProto]:
        return list(self._proto.value)

    def prefix(self) -> str:
        """The prefix of generated value constant names.

        Values of a top-level enum are prefixed with the enum's name. Values
        of a nested enum are prefixed with the name of the enclosing message,
        the way the values of a C++ nested enum live in the message's scope.
        """
        parent = self.parent()
        if not isinstance(parent, ProtoMessage):
            return camel_case(self.name()) + '_'
        return camel_case_slice(self.type_name()[:-1]) + '_'

    def indexes(self) -> list[int]:
        parent = self.parent()
        if isinstance(parent, ProtoMessage):
            return parent.indexes() + [self._index]
        return [self._index]

    def path(self) -> str:
        parent = self.parent()
        if isinstance(parent, ProtoMessage):
            return f'{parent.path()},{_NESTED_ENUM_PATH},{self._index}'
        return f'{_ENUM_PATH},{self._index}'


class ProtoExtension(ProtoNode):
    """An extension field, declared at file scope or inside a message."""

    def __init__(
        self,
        arena: NodeArena,
        file: ProtoFile,
        parent: ProtoNode,
        proto: descriptor_pb2.FieldDescriptorProto,
    ):
        super().__init__(arena, file.node_id(), parent.node_id())
        self._proto = proto

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.EXTENSION

    def name(self) -> str:
        return self._proto.name

    def proto(self) -> descriptor_pb2.FieldDescriptorProto:
        return self._proto

    def message(self) -> 'ProtoMessage | None':
        parent = self.parent()
        return parent if isinstance(parent, ProtoMessage) else None

    def desc_name(self) -> str:
        """Name of the generated extension descriptor variable."""
        return 'E_' + camel_case_slice(self.type_name())


class ImportedNode(ProtoNode):
    """A symbol that a file re-exports through a public import.

    The node belongs to the importing file. via is the directly, publicly
    imported file whose generated module provides the symbol, which is the
    file defining it or one that itself re-exports it.
    """

    def __init__(
        self,
        arena: NodeArena,
        file: ProtoFile,
        original: ProtoNode,
        via: ProtoFile,
    ):
        super().__init__(arena, file.node_id(), file.node_id())
        self._original_id = original.node_id()
        self._via_id = via.node_id()

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.IMPORTED

    def name(self) -> str:
        return self.original().name()

    def original(self) -> ProtoNode:
        return self._arena.get(self._original_id)

    def via(self) -> ProtoFile:
        node = self._arena.get(self._via_id)
        assert isinstance(node, ProtoFile)
        return node

    def type_name(self) -> list[str]:
        return self.original().type_name()

    def proto_name(self) -> str:
        return self.original().proto_name()


def _is_group(
    file: ProtoFile,
    parent: ProtoNode,
    proto: descriptor_pb2.DescriptorProto,
    type_name: list[str],
) -> bool:
    """Checks whether the parent declares a group field of this type."""
    if not isinstance(parent, ProtoMessage):
        return False

    parts = type_name
    if file.package():
        parts = [file.package()] + parts
    expected = '.' + '.'.join(parts + [proto.name])
    return any(field.type == _FieldDescriptorProto.TYPE_GROUP
               and field.type_name == expected for field in parent.fields())


def _link_children(file: ProtoFile) -> None:
    """Attaches each nested message and enum to its parent message.

    Children are found by their parent id, then checked against the counts
    in the descriptor.
    """
    # pylint: disable=protected-access
    messages = file.messages()
    for message in messages:
        message._nested_ids = [
            m.node_id() for m in messages if m._parent_id == message.node_id()
        ]
        if len(message._nested_ids) != len(message.proto().nested_type):
            raise InternalError(
                f'nesting failure for {message.name()}: expected '
                f'{len(message.proto().nested_type)} nested messages, found '
                f'{len(message._nested_ids)}', message.proto_name())

        message._enum_ids = [
            e.node_id() for e in file.enums()
            if e._parent_id == message.node_id()
        ]
        if len(message._enum_ids) != len(message.proto().enum_type):
            raise InternalError(
                f'nesting failure for enums of {message.name()}',
                message.proto_name())
    # pylint: enable=protected-access


def build_file_tree(
    arena: NodeArena, proto_file: descriptor_pb2.FileDescriptorProto
) -> ProtoFile:
    """Wraps a file descriptor and everything it declares in ProtoNodes.

    Messages are wrapped first, outer before inner, and only then linked to
    their parents, so the tree can be checked against the descriptor.
    """
    # pylint: disable=protected-access
    file = ProtoFile(arena, proto_file)

    def wrap_message(
        parent: ProtoNode, proto: descriptor_pb2.DescriptorProto, index: int
    ) -> None:
        message = ProtoMessage(arena, file, parent, proto, index)
        message._group = _is_group(file, parent, proto,
                                   parent.type_name() if isinstance(
                                       parent, ProtoMessage) else [])
        file._message_ids.append(message.node_id())
        for i, nested in enumerate(proto.nested_type):
            wrap_message(message, nested, i)

    for i, proto in enumerate(proto_file.message_type):
        wrap_message(file, proto, i)

    for i, proto_enum in enumerate(proto_file.enum_type):
        file._enum_ids.append(
            ProtoEnum(arena, file, file, proto_enum, i).node_id())

    for message in file.messages():
        for i, proto_enum in enumerate(message.proto().enum_type):
            file._enum_ids.append(
                ProtoEnum(arena, file, message, proto_enum, i).node_id())

        for extension in message.proto().extension:
            message._extension_ids.append(
                ProtoExtension(arena, file, message, extension).node_id())

    for extension in proto_file.extension:
        file._extension_ids.append(
            ProtoExtension(arena, file, file, extension).node_id())

    _link_children(file)

    for location in proto_file.source_code_info.location:
        if not location.HasField('leading_comments'):
            continue
        path = ','.join(str(p) for p in location.path)
        file._comments[path] = location
    # pylint: enable=protected-access

    return file
