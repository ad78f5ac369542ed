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
"""This module defines the generated code for pybuf Python modules.

Each .proto file becomes one module. Its body is generated first, recording
which dependencies it refers to, and the header and imports are written in
front of it last.
"""

import ast
from dataclasses import dataclass
import gzip
import logging

from google.protobuf import descriptor_pb2

from pybuf_compiler import oneof
from pybuf_compiler.errors import InternalError
from pybuf_compiler.names import IdentifierAllocator, camel_case, unique_name
from pybuf_compiler.output_file import OutputFile
from pybuf_compiler.proto_tree import (
    ENUM_VALUE_PATH,
    MESSAGE_FIELD_PATH,
    MESSAGE_ONEOF_PATH,
    ImportedNode,
    ProtoEnum,
    ProtoExtension,
    ProtoFile,
    ProtoMessage,
    ProtoNode,
)
from pybuf_compiler.registry import CompilationContext, output_name
from pybuf_compiler.symbols import (
    ConstSymbol,
    EnumSymbol,
    GetterSymbol,
    MessageSymbol,
    Symbol,
)
from pybuf_compiler.wire import (
    FieldKind,
    default_literal,
    field_tag,
    in_oneof,
    is_repeated,
)

_LOG = logging.getLogger(__name__)

PLUGIN_NAME = 'protoc-gen-pybuf'

# Messages of the google.protobuf package with special JSON mappings.
WELL_KNOWN_TYPES = frozenset((
    'Any',
    'Duration',
    'Empty',
    'Struct',
    'Timestamp',
    'Value',
    'ListValue',
    'DoubleValue',
    'FloatValue',
    'Int64Value',
    'UInt64Value',
    'Int32Value',
    'UInt32Value',
    'BoolValue',
    'StringValue',
    'BytesValue',
))
_WELL_KNOWN_PACKAGE = 'google.protobuf'
_WELL_KNOWN_ENUM = 'NullValue'

_MESSAGE_SET_TYPE = '.proto2_bridge.MessageSet'
_MESSAGE_SET_EXTENSION = 'message_set_extension'

_BLOB_BYTES_PER_LINE = 16

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto


@dataclass
class FieldBinding:
    """A field of a message and the names and metadata generated for it."""
    field: _FieldDescriptorProto
    kind: FieldKind
    attr: str
    getter: str
    annotation: str
    tag: str = ''
    type_ref: str = ''
    type_node: ProtoNode | None = None
    map_key: 'FieldBinding | None' = None
    map_value: 'FieldBinding | None' = None

    def is_map(self) -> bool:
        return self.map_key is not None

    def is_repeated(self) -> bool:
        return is_repeated(self.field)

    def default_is_none(self) -> bool:
        """Whether the getter returns None for an unset message.

        This holds for repeated fields, messages and groups, and for bytes
        fields without an explicit default.
        """
        if self.is_repeated():
            return True
        if self.kind in (FieldKind.MESSAGE, FieldKind.GROUP):
            return True
        return (self.kind is FieldKind.BYTES
                and not self.field.HasField('default_value'))

    def type_name(self) -> str | None:
        """The registered name of the field's message or enum type."""
        if not self.field.type_name:
            return None
        return self.field.type_name.lstrip('.')


def _original(node: ProtoNode) -> ProtoNode:
    if isinstance(node, ImportedNode):
        return node.original()
    return node


def _docstring_text(text: str) -> str:
    return text.replace('\\', '\\\\').replace('"""', '\\"\\"\\"')


class _FileGenerator:
    """Generates the module for a single .proto file."""

    def __init__(self, context: CompilationContext, file: ProtoFile):
        self._context = context
        self._file = file
        self._used_files: set[str] = set()
        self._init: list[str] = []
        # Module-level constant names already defined.
        self._constants: set[str] = set()

    def generate(self) -> OutputFile:
        body = OutputFile(output_name(self._file.name()))

        for imported in self._file.imported():
            self._generate_imported(imported, body)

        for enum in self._file.enums():
            self._generate_enum(enum, body)

        for message in self._file.messages():
            # Map entries are represented as dicts, not classes.
            if message.is_map_entry():
                continue
            self._generate_message(message, body)

        # Extensions are defined once every message class exists, since they
        # refer to the class they extend.
        for message in self._file.messages():
            for extension in message.extensions():
                self._generate_extension(extension, body)
        for extension in self._file.extensions():
            self._generate_extension(extension, body)

        self._generate_registrations(body)
        self._generate_file_descriptor(body)

        output = OutputFile(body.name())
        self._generate_header(output)
        self._generate_imports(output)
        for line in body.content().splitlines():
            output.write_line(line)
        return output

    def _record_use(self, node: ProtoNode) -> None:
        if node.file() is not self._file:
            self._used_files.add(node.file().name())

    def _qualifier(self, node: ProtoNode) -> str:
        """The prefix naming the module which provides node, if not this one.
        """
        if node.file() is self._file:
            return ''
        return node.file().package_name + '.'

    def _type_ref(self, type_name: str) -> tuple[ProtoNode, str]:
        """Resolves a type name to its node and an expression for its class."""
        node = self._context.resolve(type_name, self._file)
        self._record_use(node)
        return node, self._qualifier(node) + node.camel_name()

    def _record_type_use(self, type_name: str) -> None:
        self._type_ref(type_name)

    def _generate_header(self, output: OutputFile) -> None:
        output.write_line(f'# Code generated by {PLUGIN_NAME}. DO NOT EDIT.')
        output.write_line(f'# source: {self._file.name()}')

        if not self._file.generate or self._file.index != 0:
            output.write_line()
            return

        generated = self._context.files_to_generate()
        output.write_line('"""')
        output.write_line(f'Package {self._file.package_name} is a generated '
                          'protocol buffer package.')
        output.write_line()

        comments = self._file.package_comments()
        if comments:
            for line in comments.rstrip('\n').split('\n'):
                line = line[1:] if line.startswith(' ') else line
                output.write_line(_docstring_text(line).rstrip())
            output.write_line()

        output.write_line('It is generated from these files:')
        with output.indent():
            for file in generated:
                output.write_line(_docstring_text(file.name()))
        output.write_line()
        output.write_line('It has these top-level messages:')
        with output.indent():
            for file in generated:
                for message in file.top_level_messages():
                    output.write_line(message.camel_name())
        output.write_line('"""')
        output.write_line()

    def _generate_imports(self, output: OutputFile) -> None:
        prefix = self._context.options.import_prefix

        output.write_line(f'from {prefix}pybuf import proto')
        output.write_line('import math  # pylint: disable=unused-import')

        for i, name in enumerate(self._file.dependencies()):
            dependency = self._context.file_named(name)
            module = prefix + dependency.module_path
            if self._file.is_weak_dependency(i):
                _LOG.debug('%s: skipping weak import %s', self._file.name(),
                           name)
                output.write_line(f'# skipping weak import {module}')
                continue

            if name in self._used_files:
                output.write_line(
                    f'import {module} as {dependency.package_name}')
            else:
                output.write_line(
                    f'import {module} as _  # pylint: disable=unused-import')

        output.write_line()
        output.write_line(f'_PACKAGE = {self._file.package_name!r}')
        output.write_line()

    def _export(self, node: ProtoNode, symbol: Symbol) -> None:
        self._file.add_export(node, symbol)

    def _generate_imported(
        self, imported: ImportedNode, output: OutputFile
    ) -> None:
        """Defines the names a publicly imported symbol has in this module.

        Symbols are replayed from the export table of the file the public
        import names, and re-exported for files importing this one.
        """
        original = imported.original()
        via = imported.via()
        symbols = via.exported(original)
        if not symbols:
            return

        output.write_line(
            f'# {original.name()} from public import {via.name()}')
        self._used_files.add(via.name())
        for symbol in symbols:
            symbol.generate_alias(output, via.package_name,
                                  self._record_type_use)
            if isinstance(symbol, ConstSymbol):
                self._constants.add(symbol.name)
            self._export(original, symbol)
        output.write_line()
        output.write_line()

    def _write_comments(self, path: str, output: OutputFile) -> bool:
        comments = self._file.comments(path)
        if comments:
            output.write_comment(comments)
            return True
        return False

    def _generate_enum(self, enum: ProtoEnum, output: OutputFile) -> None:
        class_name = enum.camel_name()
        prefix = enum.prefix()

        self._write_comments(enum.path(), output)
        output.write_line(f'class {class_name}(proto.Enum):')
        with output.indent():
            output.write_line('def string(self) -> str:')
            with output.indent():
                output.write_line(
                    f'return proto.enum_name({class_name}_name, self)')
            output.write_line()
            output.write_line('def enum_descriptor(self):')
            with output.indent():
                output.write_line(f'return {self._file.var_name()}, '
                                  f'{enum.indexes()!r}')
            if (enum.file().package() == _WELL_KNOWN_PACKAGE
                    and enum.name() == _WELL_KNOWN_ENUM):
                output.write_line()
                output.write_line('def xxx_well_known_type(self) -> str:')
                with output.indent():
                    output.write_line(f'return {enum.name()!r}')
        output.write_line()
        output.write_line()
        self._export(enum, EnumSymbol(class_name))

        for i, value in enumerate(enum.values()):
            self._write_comments(f'{enum.path()},{ENUM_VALUE_PATH},{i}',
                                 output)
            name = prefix + value.name
            output.write_line(f'{name} = {class_name}({value.number})')
            self._export(enum, ConstSymbol(name))
        output.write_line()

        output.write_line(f'{class_name}_name = {{')
        with output.indent():
            seen: set[int] = set()
            for value in enum.values():
                entry = f'{value.number}: {value.name!r},'
                if value.number in seen:
                    entry = '# Duplicate value: ' + entry
                output.write_line(entry)
                seen.add(value.number)
        output.write_line('}')
        output.write_line(f'{class_name}_value = {{')
        with output.indent():
            for value in enum.values():
                output.write_line(f'{value.name!r}: {value.number},')
        output.write_line('}')
        output.write_line()
        output.write_line()

    def _field_binding(
        self,
        message: ProtoMessage,
        field: _FieldDescriptorProto,
        attr: str,
        getter: str,
    ) -> FieldBinding:
        """Computes the names, types and tag of a field."""
        kind = FieldKind.of(field)
        binding = FieldBinding(field, kind, attr, getter,
                               kind.python_type() or '')

        enum_name = None
        enum_values = None
        if kind in (FieldKind.MESSAGE, FieldKind.GROUP, FieldKind.ENUM):
            binding.type_node, binding.type_ref = self._type_ref(
                field.type_name)
            binding.annotation = binding.type_ref

        target = _original(binding.type_node) if binding.type_node else None
        if isinstance(target, ProtoEnum):
            enum_name = target.proto_name().lstrip('.')
            enum_values = {v.name: v.number for v in target.values()}

        if isinstance(target, ProtoMessage) and target.is_map_entry():
            key_field, value_field = target.fields()
            binding.map_key = self._field_binding(target, key_field, 'key',
                                                  '')
            binding.map_value = self._field_binding(target, value_field,
                                                    'value', '')
            binding.annotation = (f'dict[{binding.map_key.annotation}, '
                                  f'{binding.map_value.annotation}]')
        elif binding.is_repeated():
            binding.annotation = f'list[{binding.annotation}]'

        binding.tag = field_tag(field, message.proto3(), enum_name,
                                enum_values)
        return binding

    @staticmethod
    def _field_entry(binding: FieldBinding) -> str:
        """Source of the proto.Field describing a field to the runtime."""
        kind = 'map' if binding.is_map() else binding.kind.value
        args = [repr(binding.attr), repr(kind), repr(binding.tag)]
        if binding.is_map():
            assert binding.map_key and binding.map_value
            args.append(f'key={_FileGenerator._field_entry(binding.map_key)}')
            args.append(
                f'value={_FileGenerator._field_entry(binding.map_value)}')
        elif binding.type_name():
            args.append(repr(binding.type_name()))
        return f'proto.Field({", ".join(args)})'

    def _default_constant(
        self, message: ProtoMessage, binding: FieldBinding
    ) -> tuple[str, str] | None:
        """Returns the name and value of a field's default constant."""
        field = binding.field
        if not field.default_value:
            return None

        enum_prefix = ''
        if binding.kind is FieldKind.ENUM:
            assert binding.type_node is not None
            enum = _original(binding.type_node)
            if not isinstance(enum, ProtoEnum):
                _LOG.warning('don\'t know how to generate constant for %s',
                             field.name)
                return None
            enum_prefix = self._qualifier(binding.type_node) + enum.prefix()

        value = default_literal(field, enum_prefix)
        if value is None:
            return None
        name = unique_name(
            f'Default_{message.camel_name()}_{camel_case(field.name)}',
            self._constants,
        )
        self._constants.add(name)
        return name, value

    def _fallback_value(self, binding: FieldBinding) -> str:
        """What a getter returns when the field holds no value."""
        kind = binding.kind
        if kind in (FieldKind.MESSAGE, FieldKind.GROUP, FieldKind.BYTES):
            return 'None'
        if kind is FieldKind.ENUM:
            # An enum defaults to its first declared value, not to zero.
            assert binding.type_node is not None
            enum = _original(binding.type_node)
            if isinstance(enum, ProtoEnum) and enum.values():
                return (self._qualifier(binding.type_node) + enum.prefix() +
                        enum.values()[0].name)
            return '0'
        return kind.zero_value()

    def _generate_getter(
        self,
        message: ProtoMessage,
        binding: FieldBinding,
        default_name: str | None,
        group: oneof.OneofGroup | None,
        variant: str | None,
        output: OutputFile,
    ) -> str:
        """Writes a field's getter and returns its return annotation."""
        annotation = binding.annotation
        if binding.default_is_none() or (group is not None
                                         and binding.kind is FieldKind.BYTES):
            annotation += ' | None'

        output.write_line()
        output.write_line(f'def {binding.getter}(self) -> {annotation!r}:')
        with output.indent():
            if group is not None:
                output.write_line(f'if self is not None and isinstance('
                                  f'self.{group.attr}, {variant}):')
                with output.indent():
                    output.write_line(
                        f'return self.{group.attr}.{binding.attr}')
            elif binding.default_is_none():
                output.write_line('if self is not None:')
                with output.indent():
                    output.write_line(f'return self.{binding.attr}')
                output.write_line('return None')
                return annotation
            elif message.proto3() and not binding.field.proto3_optional:
                output.write_line('if self is not None:')
                with output.indent():
                    output.write_line(f'return self.{binding.attr}')
            else:
                output.write_line(f'if self is not None and '
                                  f'self.{binding.attr} is not None:')
                with output.indent():
                    output.write_line(f'return self.{binding.attr}')

            if default_name is not None:
                output.write_line(f'return {default_name}')
            else:
                output.write_line(f'return {self._fallback_value(binding)}')
        return annotation

    def _init_parameter(
        self, message: ProtoMessage, binding: FieldBinding
    ) -> tuple[str, str]:
        """Returns the __init__ parameter and assignment for a field."""
        attr = binding.attr
        if binding.is_map() or binding.is_repeated():
            empty = '{}' if binding.is_map() else '[]'
            return (f'{attr}: {binding.annotation + " | None"!r} = None',
                    f'self.{attr} = {empty} if {attr} is None else {attr}')

        if (message.proto3() and not binding.field.proto3_optional
                and binding.kind not in (FieldKind.MESSAGE, FieldKind.GROUP)):
            return (f'{attr}: {binding.annotation!r} = '
                    f'{binding.kind.zero_value()}', f'self.{attr} = {attr}')

        return (f'{attr}: {binding.annotation + " | None"!r} = None',
                f'self.{attr} = {attr}')

    def _oneof_groups(
        self,
        message: ProtoMessage,
        bindings: list[FieldBinding],
        allocator: IdentifierAllocator,
    ) -> dict[int, oneof.OneofGroup]:
        """Builds the oneof groups of a message, keyed by oneof index."""
        class_name = message.camel_name()
        nested_names = {m.camel_name() for m in message.nested()}
        nested_names.update(e.camel_name() for e in message.enums())

        groups: dict[int, oneof.OneofGroup] = {}
        for binding in bindings:
            if not in_oneof(binding.field):
                continue

            index = binding.field.oneof_index
            group = groups.get(index)
            if group is None:
                name = message.proto().oneof_decl[index].name
                attr, getter = allocator.allocate(name, 'get_' + name)
                group = oneof.OneofGroup(
                    name=name,
                    attr=attr,
                    getter=getter,
                    discriminator=f'is{class_name}_{camel_case(attr)}')
                groups[index] = group

            # Variant classes must not shadow nested types or each other.
            variant = unique_name(
                f'{class_name}_{camel_case(binding.attr)}', nested_names
            )
            nested_names.add(variant)
            group.members.append(
                oneof.OneofMember(field=binding.field,
                                  kind=binding.kind,
                                  attr=binding.attr,
                                  variant=variant,
                                  type_ref=binding.type_ref,
                                  annotation=binding.annotation))
        return groups

    def _generate_message(
        self, message: ProtoMessage, output: OutputFile
    ) -> None:
        class_name = message.camel_name()
        proto = message.proto()
        allocator = IdentifierAllocator()

        bindings = []
        for field in message.fields():
            attr, getter = allocator.allocate(field.name, 'get_' + field.name)
            bindings.append(self._field_binding(message, field, attr, getter))

        groups = self._oneof_groups(message, bindings, allocator)
        variants = {
            member.field.number: member.variant
            for group in groups.values() for member in group.members
        }

        # Members in declaration order, with each oneof at its first field.
        members: list[FieldBinding | oneof.OneofGroup] = []
        for binding in bindings:
            if not in_oneof(binding.field):
                members.append(binding)
                continue
            group = groups[binding.field.oneof_index]
            if group not in members:
                members.append(group)

        defaults: dict[int, tuple[str, str]] = {}
        for binding in bindings:
            default = self._default_constant(message, binding)
            if default is not None:
                defaults[binding.field.number] = default

        has_extensions = len(proto.extension_range) > 0
        is_message_set = (has_extensions
                          and proto.options.message_set_wire_format)
        getters: list[GetterSymbol] = []

        self._write_comments(message.path(), output)
        output.write_line(f'class {class_name}(proto.Message):')
        with output.indent():
            output.write_line('_fields = (')
            with output.indent():
                for i, binding in enumerate(bindings):
                    if in_oneof(binding.field):
                        continue
                    self._write_comments(
                        f'{message.path()},{MESSAGE_FIELD_PATH},{i}', output)
                    output.write_line(self._field_entry(binding) + ',')
            output.write_line(')')
            oneof_attrs = ''.join(f'{group.attr!r}, '
                                  for group in groups.values())
            output.write_line(f'_oneofs = ({oneof_attrs.rstrip()})')

            params = []
            assignments = []
            for member in members:
                if isinstance(member, oneof.OneofGroup):
                    params.append(f'{member.attr}: '
                                  f'{member.discriminator + " | None"!r} = '
                                  'None')
                    assignments.append(f'self.{member.attr} = {member.attr}')
                else:
                    param, assignment = self._init_parameter(message, member)
                    params.append(param)
                    assignments.append(assignment)
            if has_extensions:
                assignments.append('self._extensions = {}')
            if not message.proto3():
                assignments.append("self._unrecognized = b''")

            output.write_line()
            if params:
                output.write_line('def __init__(')
                with output.indent():
                    output.write_line('self,')
                    for param in params:
                        output.write_line(param + ',')
                output.write_line('):')
            else:
                output.write_line('def __init__(self):')
            with output.indent():
                if assignments:
                    output.write_lines(assignments)
                else:
                    output.write_line('pass')

            output.write_line()
            output.write_line('def reset(self):')
            with output.indent():
                output.write_line('self.__init__()')
            output.write_line()
            output.write_line('def string(self) -> str:')
            with output.indent():
                output.write_line('return proto.compact_text_string(self)')
            output.write_line()
            output.write_line('def proto_message(self):')
            with output.indent():
                output.write_line('pass')
            output.write_line()
            output.write_line('def descriptor(self):')
            with output.indent():
                output.write_line(f'return {self._file.var_name()}, '
                                  f'{message.indexes()!r}')

            if (message.file().package() == _WELL_KNOWN_PACKAGE
                    and message.name() in WELL_KNOWN_TYPES):
                output.write_line()
                output.write_line('def xxx_well_known_type(self) -> str:')
                with output.indent():
                    output.write_line(f'return {message.name()!r}')

            if is_message_set:
                output.write_line()
                output.write_line('def marshal(self) -> bytes:')
                with output.indent():
                    output.write_line(
                        'return proto.marshal_message_set(self._extensions)')
                output.write_line()
                output.write_line('def unmarshal(self, data: bytes) -> None:')
                with output.indent():
                    output.write_line(
                        'proto.unmarshal_message_set(data, self._extensions)')

            if has_extensions:
                output.write_line()
                output.write_line('def extension_range_array(self):')
                with output.indent():
                    output.write_line(f'return extRange_{class_name}')

            for group in groups.values():
                output.write_line()
                output.write_line(f'def {group.getter}(self) -> '
                                  f'{group.discriminator + " | None"!r}:')
                with output.indent():
                    output.write_line('if self is not None:')
                    with output.indent():
                        output.write_line(f'return self.{group.attr}')
                    output.write_line('return None')
                getters.append(
                    GetterSymbol(group.getter,
                                 f'{group.discriminator} | None'))

            for binding in bindings:
                group = (groups[binding.field.oneof_index]
                         if in_oneof(binding.field) else None)
                default = defaults.get(binding.field.number)
                typ = self._generate_getter(
                    message, binding, default[0] if default else None, group,
                    variants.get(binding.field.number), output)
                getter = self._exported_getter(message, binding, typ)
                if getter is not None:
                    getters.append(getter)

            if groups:
                output.write_line()
                output.write_line('def oneof_funcs(self):')
                with output.indent():
                    output.write_line('return (')
                    with output.indent():
                        output.write_line(
                            oneof.marshaler_name(class_name) + ',')
                        output.write_line(
                            oneof.unmarshaler_name(class_name) + ',')
                        output.write_line(oneof.sizer_name(class_name) + ',')
                        output.write_line('[')
                        with output.indent():
                            for group in groups.values():
                                for member in group.members:
                                    output.write_line(member.variant + ',')
                        output.write_line('],')
                    output.write_line(')')
        output.write_line()
        output.write_line()

        if has_extensions:
            output.write_line(f'extRange_{class_name} = [')
            with output.indent():
                for extension_range in proto.extension_range:
                    # Ranges are inclusive at both ends.
                    output.write_line(f'proto.ExtensionRange('
                                      f'{extension_range.start}, '
                                      f'{extension_range.end - 1}),')
            output.write_line(']')
            output.write_line()

        if not message.is_group():
            self._export(
                message,
                MessageSymbol(class_name,
                              has_extensions=has_extensions,
                              is_message_set=is_message_set,
                              has_oneof=bool(groups),
                              getters=getters))

        if defaults:
            for name, value in defaults.values():
                output.write_line(f'{name} = {value}')
                self._export(message, ConstSymbol(name))
            output.write_line()
            output.write_line()

        if groups:
            for group_index, group in groups.items():
                self._write_comments(
                    f'{message.path()},{MESSAGE_ONEOF_PATH},{group_index}',
                    output)
                oneof.generate_oneof_types(group, class_name, output)
            oneof.generate_oneof_funcs(list(groups.values()), class_name,
                                       output)

        self._init.append(f'proto.register_type({class_name}, '
                          f'{message.proto_name().lstrip(".")!r})')

    def _exported_getter(
        self, message: ProtoMessage, binding: FieldBinding, typ: str
    ) -> GetterSymbol | None:
        """The getter a public import of the message may forward, if any.

        Group getters are never forwarded. Getters returning messages or
        enums are forwarded only when the type is defined next to the
        message, since a module forwarding them may not import any other
        file.
        """
        if binding.kind is FieldKind.GROUP:
            return None
        if binding.kind in (FieldKind.MESSAGE, FieldKind.ENUM):
            assert binding.type_node is not None
            if binding.type_node.file() is not message.file():
                return None
            return GetterSymbol(binding.getter, typ,
                                binding.field.type_name, gen_type=True)
        return GetterSymbol(binding.getter, typ, binding.field.type_name)

    def _generate_extension(
        self, extension: ProtoExtension, output: OutputFile
    ) -> None:
        field = extension.proto()
        extendee_node, extended_type = self._type_ref(field.extendee)
        extendee = _original(extendee_node)
        if not isinstance(extendee, ProtoMessage):
            raise InternalError(
                f'extension {field.name} extends {field.extendee}, which is '
                'not a message', extension.proto_name())

        kind = FieldKind.of(field)
        enum_name = None
        enum_values = None
        type_ref = ''
        if field.type_name:
            type_node, type_ref = self._type_ref(field.type_name)
            target = _original(type_node)
            if isinstance(target, ProtoEnum):
                enum_name = target.proto_name().lstrip('.')
                enum_values = {v.name: v.number for v in target.values()}
        tag = field_tag(field, extendee.proto3(), enum_name, enum_values)

        type_name = list(extension.type_name())
        message_set = (extendee.proto_name() == _MESSAGE_SET_TYPE
                       and type_name[-1] == _MESSAGE_SET_EXTENSION)
        if message_set:
            type_name = type_name[:-1]

        # Extension names always use the package the .proto file declares.
        ext_name = '.'.join(type_name)
        if self._file.package():
            ext_name = f'{self._file.package()}.{ext_name}'

        desc_name = extension.desc_name()
        output.write_line(f'{desc_name} = proto.ExtensionDesc(')
        with output.indent():
            output.write_line(f'extended_type={extended_type},')
            output.write_line(f'extension_type={kind.value!r},')
            output.write_line(f'field={field.number},')
            output.write_line(f'name={ext_name!r},')
            output.write_line(f'tag={tag!r},')
            output.write_line(f'filename={self._file.name()!r},')
            if field.type_name:
                output.write_line(
                    f'type_name={field.type_name.lstrip(".")!r},')
        output.write_line(')')
        output.write_line()

        if message_set:
            self._init.append(f'proto.register_message_set_type({type_ref}, '
                              f'{field.number}, {ext_name!r})')

        self._export(extension, ConstSymbol(desc_name))

    def _generate_registrations(self, output: OutputFile) -> None:
        for enum in self._file.enums():
            self._init.append(
                f'proto.register_enum({enum.proto_name().lstrip(".")!r}, '
                f'{enum.camel_name()}_name, {enum.camel_name()}_value, '
                f'{enum.camel_name()})')
        for message in self._file.messages():
            for extension in message.extensions():
                self._init.append(
                    f'proto.register_extension({extension.desc_name()})')
        for extension in self._file.extensions():
            self._init.append(
                f'proto.register_extension({extension.desc_name()})')

        if self._init:
            output.write_line()
            output.write_lines(self._init)

    def _generate_file_descriptor(self, output: OutputFile) -> None:
        """Embeds the file's gzipped descriptor, without source info."""
        stripped = descriptor_pb2.FileDescriptorProto()
        stripped.CopyFrom(self._file.proto())
        stripped.ClearField('source_code_info')
        blob = gzip.compress(stripped.SerializeToString(),
                             compresslevel=9,
                             mtime=0)

        var_name = self._file.var_name()
        output.write_line()
        output.write_line(f'{var_name} = bytes([')
        with output.indent():
            output.write_line(
                f'# {len(blob)} bytes of a gzipped FileDescriptorProto')
            for start in range(0, len(blob), _BLOB_BYTES_PER_LINE):
                chunk = blob[start:start + _BLOB_BYTES_PER_LINE]
                output.write_line(' '.join(f'0x{b:02x},' for b in chunk))
        output.write_line('])')
        output.write_line()
        output.write_line(
            f'proto.register_file({self._file.name()!r}, {var_name})')


def _check_syntax(output: OutputFile) -> None:
    content = output.content()
    try:
        ast.parse(content, output.name())
    except SyntaxError as err:
        numbered = '\n'.join(
            f'{line_number:5d}\t{line}'
            for line_number, line in enumerate(content.splitlines(), 1))
        raise InternalError(
            f'bad Python source code was generated: {err}\n{numbered}',
            output.name()) from err


def generate_files(context: CompilationContext) -> list[OutputFile]:
    """Generates the modules for every file to generate in a context.

    Every file in the context is run through the generator, in order, so
    that the symbols a file exports are known before any file publicly
    importing it is generated. Only the modules of the files to generate are
    returned, in the order they were requested.
    """
    outputs: dict[str, OutputFile] = {}
    for file in context.files():
        _LOG.debug('Generating %s', file.name())
        output = _FileGenerator(context, file).generate()
        if file.generate:
            _check_syntax(output)
            outputs[file.name()] = output

    return [outputs[file.name()] for file in context.files_to_generate()]
