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
"""Wire format metadata derived from field descriptors."""

import enum
import struct

from google.protobuf import descriptor_pb2

from pybuf_compiler.errors import InternalError
from pybuf_compiler.names import unescape

_FieldDescriptorProto = descriptor_pb2.FieldDescriptorProto


class FieldKind(enum.Enum):
    """The closed set of field types a schema can declare.

    Each member's value is the name the runtime uses for the kind.
    """
    DOUBLE = 'double'
    FLOAT = 'float'
    INT64 = 'int64'
    UINT64 = 'uint64'
    INT32 = 'int32'
    FIXED64 = 'fixed64'
    FIXED32 = 'fixed32'
    BOOL = 'bool'
    STRING = 'string'
    GROUP = 'group'
    MESSAGE = 'message'
    BYTES = 'bytes'
    UINT32 = 'uint32'
    ENUM = 'enum'
    SFIXED32 = 'sfixed32'
    SFIXED64 = 'sfixed64'
    SINT32 = 'sint32'
    SINT64 = 'sint64'

    @classmethod
    def of(cls, field: _FieldDescriptorProto) -> 'FieldKind':
        try:
            return _KINDS_BY_TYPE[field.type]
        except KeyError:
            raise InternalError(
                f'unknown type {field.type} for field {field.name}') from None

    def wire_type(self) -> str:
        """The wire encoding name used in tag strings."""
        return _WIRE_TYPES[self]

    def is_scalar(self) -> bool:
        """Whether the kind is numeric, and so may be packed."""
        return self not in (FieldKind.STRING, FieldKind.BYTES,
                            FieldKind.MESSAGE, FieldKind.GROUP)

    def python_type(self) -> str | None:
        """The Python type of a scalar value, or None for named types."""
        return _PYTHON_TYPES.get(self)

    def zero_value(self) -> str:
        """Source text of the value an unset proto3 scalar holds."""
        return _ZERO_VALUES.get(self, 'None')


_KINDS_BY_TYPE = {
    _FieldDescriptorProto.TYPE_DOUBLE: FieldKind.DOUBLE,
    _FieldDescriptorProto.TYPE_FLOAT: FieldKind.FLOAT,
    _FieldDescriptorProto.TYPE_INT64: FieldKind.INT64,
    _FieldDescriptorProto.TYPE_UINT64: FieldKind.UINT64,
    _FieldDescriptorProto.TYPE_INT32: FieldKind.INT32,
    _FieldDescriptorProto.TYPE_FIXED64: FieldKind.FIXED64,
    _FieldDescriptorProto.TYPE_FIXED32: FieldKind.FIXED32,
    _FieldDescriptorProto.TYPE_BOOL: FieldKind.BOOL,
    _FieldDescriptorProto.TYPE_STRING: FieldKind.STRING,
    _FieldDescriptorProto.TYPE_GROUP: FieldKind.GROUP,
    _FieldDescriptorProto.TYPE_MESSAGE: FieldKind.MESSAGE,
    _FieldDescriptorProto.TYPE_BYTES: FieldKind.BYTES,
    _FieldDescriptorProto.TYPE_UINT32: FieldKind.UINT32,
    _FieldDescriptorProto.TYPE_ENUM: FieldKind.ENUM,
    _FieldDescriptorProto.TYPE_SFIXED32: FieldKind.SFIXED32,
    _FieldDescriptorProto.TYPE_SFIXED64: FieldKind.SFIXED64,
    _FieldDescriptorProto.TYPE_SINT32: FieldKind.SINT32,
    _FieldDescriptorProto.TYPE_SINT64: FieldKind.SINT64,
}

_WIRE_TYPES = {
    FieldKind.DOUBLE: 'fixed64',
    FieldKind.FLOAT: 'fixed32',
    FieldKind.INT64: 'varint',
    FieldKind.UINT64: 'varint',
    FieldKind.INT32: 'varint',
    FieldKind.UINT32: 'varint',
    FieldKind.FIXED64: 'fixed64',
    FieldKind.FIXED32: 'fixed32',
    FieldKind.BOOL: 'varint',
    FieldKind.STRING: 'bytes',
    FieldKind.GROUP: 'group',
    FieldKind.MESSAGE: 'bytes',
    FieldKind.BYTES: 'bytes',
    FieldKind.ENUM: 'varint',
    FieldKind.SFIXED32: 'fixed32',
    FieldKind.SFIXED64: 'fixed64',
    FieldKind.SINT32: 'zigzag32',
    FieldKind.SINT64: 'zigzag64',
}

_PYTHON_TYPES = {
    FieldKind.DOUBLE: 'float',
    FieldKind.FLOAT: 'float',
    FieldKind.INT64: 'int',
    FieldKind.UINT64: 'int',
    FieldKind.INT32: 'int',
    FieldKind.UINT32: 'int',
    FieldKind.FIXED64: 'int',
    FieldKind.FIXED32: 'int',
    FieldKind.SFIXED32: 'int',
    FieldKind.SFIXED64: 'int',
    FieldKind.SINT32: 'int',
    FieldKind.SINT64: 'int',
    FieldKind.BOOL: 'bool',
    FieldKind.STRING: 'str',
    FieldKind.BYTES: 'bytes',
}

_ZERO_VALUES = {
    kind: ('0' if python_type == 'int' else '0.0')
    for kind, python_type in _PYTHON_TYPES.items()
    if python_type in ('int', 'float')
}
_ZERO_VALUES.update({
    FieldKind.BOOL: 'False',
    FieldKind.STRING: "''",
    FieldKind.BYTES: "b''",
    FieldKind.ENUM: '0',
})

_SPECIAL_FLOATS = {
    'inf': 'math.inf',
    '-inf': '-math.inf',
    'nan': 'math.nan',
}


def is_repeated(field: _FieldDescriptorProto) -> bool:
    return field.label == _FieldDescriptorProto.LABEL_REPEATED


def in_oneof(field: _FieldDescriptorProto) -> bool:
    """Whether a field belongs to a declared oneof.

    proto3 optional fields sit in a synthetic oneof of their own; they are
    plain fields with explicit presence.
    """
    return field.HasField('oneof_index') and not field.proto3_optional


def field_label(field: _FieldDescriptorProto) -> str:
    if field.label == _FieldDescriptorProto.LABEL_REQUIRED:
        return 'req'
    if field.label == _FieldDescriptorProto.LABEL_REPEATED:
        return 'rep'
    return 'opt'


def is_packed(field: _FieldDescriptorProto, proto3: bool) -> bool:
    """Whether a field is encoded as a single packed record.

    An explicit packed option always wins. Otherwise repeated numeric fields
    are packed in proto3 files and unpacked in proto2 files.
    """
    if field.options.HasField('packed'):
        return field.options.packed
    return proto3 and is_repeated(field) and FieldKind.of(field).is_scalar()


def _shortest_float(value: float, float32: bool) -> str:
    """Formats a float with the fewest digits that read back the same."""
    if float32:
        value = struct.unpack('<f', struct.pack('<f', value))[0]
    for precision in range(1, 18):
        text = '%.*g' % (precision, value)
        parsed = float(text)
        if float32:
            parsed = struct.unpack('<f', struct.pack('<f', parsed))[0]
        if parsed == value:
            return text
    return repr(value)


def tag_default(field: _FieldDescriptorProto, enum_values=None) -> str:
    """The default value as written in a field's tag string.

    Booleans become 1 or 0 and enum values become their number. enum_values
    maps enum value names to numbers for enum fields.
    """
    value = field.default_value
    kind = FieldKind.of(field)

    if kind is FieldKind.BOOL:
        return '1' if value == 'true' else '0'

    if kind is FieldKind.ENUM:
        if enum_values is None or value not in enum_values:
            raise InternalError(
                f'cannot find value for enum constant {value}')
        return str(enum_values[value])

    if kind in (FieldKind.FLOAT, FieldKind.DOUBLE) and (value
                                                        not in _SPECIAL_FLOATS):
        try:
            return _shortest_float(float(value), kind is FieldKind.FLOAT)
        except ValueError:
            return value

    return value


def field_tag(
    field: _FieldDescriptorProto,
    proto3: bool,
    enum_name: str | None = None,
    enum_values=None,
) -> str:
    """Builds the structured tag string describing a field's encoding.

    The format is

      wire,number,label[,packed],name=X[,json=Y][,proto3][,enum=E][,oneof][,def=D]

    where enum_name is the enum's fully-qualified name in the schema's own
    package, for enum fields. The default always comes last since it may
    contain commas.
    """
    kind = FieldKind.of(field)
    parts = [kind.wire_type(), str(field.number), field_label(field)]

    if is_packed(field, proto3):
        parts.append('packed')

    name = field.name
    if kind is FieldKind.GROUP:
        # Groups are named by their type, whose capitalization the field
        # name loses.
        name = field.type_name.rsplit('.', 1)[-1]
    parts.append(f'name={name}')

    if (not field.HasField('extendee') and field.json_name
            and field.json_name != name):
        parts.append(f'json={field.json_name}')

    if proto3 and not field.proto3_optional:
        parts.append('proto3')

    if kind is FieldKind.ENUM and enum_name:
        parts.append(f'enum={enum_name}')

    if in_oneof(field):
        parts.append('oneof')

    if field.HasField('default_value'):
        parts.append(f'def={tag_default(field, enum_values)}')

    return ','.join(parts)


def default_literal(
    field: _FieldDescriptorProto, enum_prefix: str = ''
) -> str | None:
    """Source text of a field's explicit default value, or None.

    Special float values map onto the math module. enum_prefix is the
    prefix of the enum's constant names, qualified as needed.
    """
    value = field.default_value
    if not value:
        return None

    kind = FieldKind.of(field)
    if kind is FieldKind.BOOL:
        return 'True' if value == 'true' else 'False'
    if kind is FieldKind.STRING:
        return repr(value)
    if kind is FieldKind.BYTES:
        return repr(unescape(value))
    if value in _SPECIAL_FLOATS:
        return _SPECIAL_FLOATS[value]
    if kind is FieldKind.ENUM:
        return enum_prefix + value
    if kind in (FieldKind.FLOAT, FieldKind.DOUBLE):
        return repr(float(value))
    return value

