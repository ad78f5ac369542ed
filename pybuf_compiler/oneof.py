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
"""Generates the classes and codec functions of oneof groups.

A oneof group is stored in a single message attribute holding either None or
an instance of one of the group's variant classes. Every variant derives from
the group's discriminator class. Encoding, decoding and sizing of the active
variant is done by three module-level functions per message, which the
message hands to the runtime through its oneof_funcs method.
"""

import abc
from dataclasses import dataclass, field
from typing import Type

from google.protobuf import descriptor_pb2

from pybuf_compiler.errors import InternalError
from pybuf_compiler.output_file import OutputFile
from pybuf_compiler.wire import FieldKind


@dataclass
class OneofMember:
    """A field of a oneof group, with the names generated for it.

    Attributes:
      field: The field's descriptor.
      kind: The field's kind.
      attr: The variant attribute holding the value.
      variant: The name of the variant class.
      type_ref: Expression naming the message or enum class of the field,
          empty for other kinds.
      annotation: Type annotation of the value.
    """
    field: descriptor_pb2.FieldDescriptorProto
    kind: FieldKind
    attr: str
    variant: str
    type_ref: str = ''
    annotation: str = ''

    def number(self) -> int:
        return self.field.number


@dataclass
class OneofGroup:
    """A oneof declaration of a message.

    Attributes:
      name: The declared name of the oneof.
      attr: The message attribute holding the active variant.
      getter: The name of the message's getter for attr.
      discriminator: The name of the class every variant derives from.
      members: The group's fields, in declaration order.
    """
    name: str
    attr: str
    getter: str
    discriminator: str
    members: list[OneofMember] = field(default_factory=list)


class OneofCase(abc.ABC):
    """Generates the code handling one variant of a oneof group."""

    wire = 'proto.WIRE_VARINT'

    def __init__(self, member: OneofMember):
        self._member = member

    def _value(self) -> str:
        return f'x.{self._member.attr}'

    def _tag(self, wire: str | None = None) -> str:
        return f'{self._member.number()} << 3 | {wire or self.wire}'

    def encode(self) -> list[str]:
        """Lines writing the tag and value of the variant held in x."""
        return [f'b.encode_varint({self._tag()})'] + self._encode_value()

    def decode(self, group: OneofGroup) -> list[str]:
        """Lines decoding the variant from b and storing it in m."""
        number = self._member.number()
        return [
            f'if wire != {self.wire}:',
            f'    raise proto.BadWireTypeError({number}, wire, {self.wire})',
            *self._decode_value(),
            f'm.{group.attr} = {self._member.variant}(x)',
            'return True',
        ]

    def size(self) -> list[str]:
        """Lines adding the encoded size of the variant held in x to n."""
        return [f'n += proto.size_varint({self._tag()})'] + self._size_value()

    @abc.abstractmethod
    def _encode_value(self) -> list[str]:
        """Lines writing the value, following its tag."""

    @abc.abstractmethod
    def _decode_value(self) -> list[str]:
        """Lines reading the value from b into x."""

    @abc.abstractmethod
    def _size_value(self) -> list[str]:
        """Lines adding the size of the value to n."""


class DoubleCase(OneofCase):
    wire = 'proto.WIRE_FIXED64'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_fixed64(proto.float64_bits({self._value()}))']

    def _decode_value(self) -> list[str]:
        return ['x = proto.float64_from_bits(b.decode_fixed64())']

    def _size_value(self) -> list[str]:
        return ['n += 8']


class FloatCase(OneofCase):
    wire = 'proto.WIRE_FIXED32'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_fixed32(proto.float32_bits({self._value()}))']

    def _decode_value(self) -> list[str]:
        return ['x = proto.float32_from_bits(b.decode_fixed32())']

    def _size_value(self) -> list[str]:
        return ['n += 4']


class VarintCase(OneofCase):
    """Integer kinds encoded as plain varints."""

    # Conversions from the decoded unsigned 64-bit value.
    _CONVERSIONS = {
        FieldKind.INT64: 'proto.int64({})',
        FieldKind.UINT64: '{}',
        FieldKind.INT32: 'proto.int32({})',
        FieldKind.UINT32: 'proto.uint32({})',
    }

    def _encode_value(self) -> list[str]:
        return [f'b.encode_varint({self._value()})']

    def _decode_value(self) -> list[str]:
        conversion = self._CONVERSIONS[self._member.kind]
        return ['x = ' + conversion.format('b.decode_varint()')]

    def _size_value(self) -> list[str]:
        return [f'n += proto.size_varint({self._value()})']


class EnumCase(VarintCase):
    def _decode_value(self) -> list[str]:
        return [f'x = {self._member.type_ref}(proto.int32(b.decode_varint()))']


class BoolCase(OneofCase):
    def _encode_value(self) -> list[str]:
        return [f'b.encode_varint(1 if {self._value()} else 0)']

    def _decode_value(self) -> list[str]:
        return ['x = b.decode_varint() != 0']

    def _size_value(self) -> list[str]:
        return ['n += 1']


class Fixed64Case(OneofCase):
    wire = 'proto.WIRE_FIXED64'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_fixed64({self._value()})']

    def _decode_value(self) -> list[str]:
        if self._member.kind is FieldKind.SFIXED64:
            return ['x = proto.int64(b.decode_fixed64())']
        return ['x = b.decode_fixed64()']

    def _size_value(self) -> list[str]:
        return ['n += 8']


class Fixed32Case(OneofCase):
    wire = 'proto.WIRE_FIXED32'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_fixed32({self._value()})']

    def _decode_value(self) -> list[str]:
        if self._member.kind is FieldKind.SFIXED32:
            return ['x = proto.int32(b.decode_fixed32())']
        return ['x = b.decode_fixed32()']

    def _size_value(self) -> list[str]:
        return ['n += 4']


class ZigZag32Case(OneofCase):
    def _encode_value(self) -> list[str]:
        return [f'b.encode_zigzag32({self._value()})']

    def _decode_value(self) -> list[str]:
        return ['x = b.decode_zigzag32()']

    def _size_value(self) -> list[str]:
        return [f'n += proto.size_varint(proto.zigzag32({self._value()}))']


class ZigZag64Case(OneofCase):
    def _encode_value(self) -> list[str]:
        return [f'b.encode_zigzag64({self._value()})']

    def _decode_value(self) -> list[str]:
        return ['x = b.decode_zigzag64()']

    def _size_value(self) -> list[str]:
        return [f'n += proto.size_varint(proto.zigzag64({self._value()}))']


class StringCase(OneofCase):
    wire = 'proto.WIRE_BYTES'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_string_bytes({self._value()})']

    def _decode_value(self) -> list[str]:
        return ['x = b.decode_string_bytes()']

    def _size_value(self) -> list[str]:
        return [
            f"s = len({self._value()}.encode('utf-8'))",
            'n += proto.size_varint(s)',
            'n += s',
        ]


class BytesCase(OneofCase):
    wire = 'proto.WIRE_BYTES'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_raw_bytes({self._value()})']

    def _decode_value(self) -> list[str]:
        return ['x = b.decode_raw_bytes()']

    def _size_value(self) -> list[str]:
        return [
            f'n += proto.size_varint(len({self._value()}))',
            f'n += len({self._value()})',
        ]


class MessageCase(OneofCase):
    wire = 'proto.WIRE_BYTES'

    def _encode_value(self) -> list[str]:
        return [f'b.encode_message({self._value()})']

    def _decode_value(self) -> list[str]:
        return [
            f'x = {self._member.type_ref}()',
            'b.decode_message(x)',
        ]

    def _size_value(self) -> list[str]:
        return [
            f's = proto.size({self._value()})',
            'n += proto.size_varint(s)',
            'n += s',
        ]


class GroupCase(OneofCase):
    wire = 'proto.WIRE_START_GROUP'

    def _encode_value(self) -> list[str]:
        return [
            f'b.marshal({self._value()})',
            f'b.encode_varint({self._tag("proto.WIRE_END_GROUP")})',
        ]

    def _decode_value(self) -> list[str]:
        return [
            f'x = {self._member.type_ref}()',
            'b.decode_group(x)',
        ]

    def _size_value(self) -> list[str]:
        return [
            f'n += proto.size({self._value()})',
            f'n += proto.size_varint({self._tag("proto.WIRE_END_GROUP")})',
        ]


ONEOF_CASES: dict[FieldKind, Type[OneofCase]] = {
    FieldKind.DOUBLE: DoubleCase,
    FieldKind.FLOAT: FloatCase,
    FieldKind.INT64: VarintCase,
    FieldKind.UINT64: VarintCase,
    FieldKind.INT32: VarintCase,
    FieldKind.UINT32: VarintCase,
    FieldKind.ENUM: EnumCase,
    FieldKind.BOOL: BoolCase,
    FieldKind.FIXED64: Fixed64Case,
    FieldKind.SFIXED64: Fixed64Case,
    FieldKind.FIXED32: Fixed32Case,
    FieldKind.SFIXED32: Fixed32Case,
    FieldKind.SINT32: ZigZag32Case,
    FieldKind.SINT64: ZigZag64Case,
    FieldKind.STRING: StringCase,
    FieldKind.BYTES: BytesCase,
    FieldKind.MESSAGE: MessageCase,
    FieldKind.GROUP: GroupCase,
}


def oneof_case(member: OneofMember) -> OneofCase:
    case_class = ONEOF_CASES.get(member.kind)
    if case_class is None:
        raise InternalError(f'unhandled oneof field kind {member.kind} for '
                            f'field {member.field.name}')
    return case_class(member)


def marshaler_name(class_name: str) -> str:
    return f'_{class_name}_oneof_marshaler'


def unmarshaler_name(class_name: str) -> str:
    return f'_{class_name}_oneof_unmarshaler'


def sizer_name(class_name: str) -> str:
    return f'_{class_name}_oneof_sizer'


def generate_oneof_types(
    group: OneofGroup, class_name: str, output: OutputFile
) -> None:
    """Writes the discriminator and variant classes of a oneof group."""
    output.write_line(f'class {group.discriminator}(proto.OneofVariant):')
    with output.indent():
        output.write_line(
            f'"""Types that are valid to be assigned to {class_name}.'
            f'{group.attr}."""')
        output.write_line()
        output.write_line('__slots__ = ()')
        output.write_line()
        output.write_line(f'def {group.discriminator}(self):')
        with output.indent():
            output.write_line('pass')
    output.write_line()
    output.write_line()

    for member in group.members:
        output.write_line(f'class {member.variant}({group.discriminator}):')
        with output.indent():
            output.write_line(f'__slots__ = ({member.attr!r},)')
            output.write_line()
            default = member.kind.zero_value()
            output.write_line(f'def __init__(self, {member.attr}: '
                              f'{member.annotation!r} = {default}):')
            with output.indent():
                output.write_line(f'self.{member.attr} = {member.attr}')
            output.write_line()
            output.write_line(f'def {group.discriminator}(self):')
            with output.indent():
                output.write_line('pass')
        output.write_line()
        output.write_line()


def generate_oneof_funcs(
    groups: list[OneofGroup], class_name: str, output: OutputFile
) -> None:
    """Writes the encode, decode and size functions for a message's oneofs.

    An unexpected object in a oneof attribute is an encoding error; a
    variant arriving with the wrong wire type is a decoding error.
    """
    output.write_line(f'def {marshaler_name(class_name)}(m, b):')
    with output.indent():
        for group in groups:
            output.write_line(f'# {group.name}')
            output.write_line(f'x = m.{group.attr}')
            output.write_line('if x is None:')
            with output.indent():
                output.write_line('pass')
            for member in group.members:
                output.write_line(f'elif isinstance(x, {member.variant}):')
                with output.indent():
                    output.write_lines(oneof_case(member).encode())
            output.write_line('else:')
            with output.indent():
                output.write_line(
                    f"raise proto.EncodeError('{class_name}.{group.attr} has "
                    "unexpected type %s' % type(x).__name__)")
    output.write_line()
    output.write_line()

    output.write_line(f'def {unmarshaler_name(class_name)}(m, tag, wire, b):')
    with output.indent():
        for group in groups:
            for member in group.members:
                output.write_line(f'if tag == {member.number()}:  '
                                  f'# {group.name}.{member.field.name}')
                with output.indent():
                    output.write_lines(oneof_case(member).decode(group))
        output.write_line('return False')
    output.write_line()
    output.write_line()

    output.write_line(f'def {sizer_name(class_name)}(m):')
    with output.indent():
        output.write_line('n = 0')
        for group in groups:
            output.write_line(f'# {group.name}')
            output.write_line(f'x = m.{group.attr}')
            output.write_line('if x is None:')
            with output.indent():
                output.write_line('pass')
            for member in group.members:
                output.write_line(f'elif isinstance(x, {member.variant}):')
                with output.indent():
                    output.write_lines(oneof_case(member).size())
            output.write_line('else:')
            with output.indent():
                output.write_line(
                    "raise proto.EncodeError('proto: unexpected type %s in "
                    "oneof' % type(x).__name__)")
        output.write_line('return n')
    output.write_line()
    output.write_line()
