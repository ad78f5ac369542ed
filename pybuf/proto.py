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
"""Runtime support for modules generated by protoc-gen-pybuf.

Generated message classes describe their fields with a table of Field
entries. The functions here walk those tables to encode, decode and size
messages, and keep the registries of types, enums, extensions and file
descriptors that generated modules fill in when they are imported.
"""

import logging
import struct
from typing import Any, Callable, NamedTuple

_LOG = logging.getLogger(__name__)

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_BYTES = 2
WIRE_START_GROUP = 3
WIRE_END_GROUP = 4
WIRE_FIXED32 = 5

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1

# Wire types by the encoding names used in field tags.
_WIRE_TYPES = {
    'varint': WIRE_VARINT,
    'zigzag32': WIRE_VARINT,
    'zigzag64': WIRE_VARINT,
    'fixed64': WIRE_FIXED64,
    'fixed32': WIRE_FIXED32,
    'bytes': WIRE_BYTES,
    'group': WIRE_START_GROUP,
}

_UNPACKABLE_KINDS = frozenset(('string', 'bytes', 'message', 'group', 'map'))


class Error(Exception):
    """Base class for errors raised by the runtime."""


class EncodeError(Error):
    """A message could not be encoded."""


class DecodeError(Error):
    """Encoded data was malformed."""


class BadWireTypeError(DecodeError):
    """A field arrived with a wire type its declaration does not allow."""

    def __init__(self, number: int, wire: int, expected: int):
        super().__init__(f'proto: bad wiretype for field {number}: '
                         f'got wiretype {wire}, want {expected}')
        self.number = number
        self.wire = wire
        self.expected = expected


def size_varint(value: int) -> int:
    """Returns the number of bytes value occupies as a varint."""
    value &= _MASK64
    size = 1
    while value >= 0x80:
        value >>= 7
        size += 1
    return size


def zigzag32(value: int) -> int:
    return ((value << 1) ^ (value >> 31)) & _MASK32


def zigzag64(value: int) -> int:
    return ((value << 1) ^ (value >> 63)) & _MASK64


def int32(value: int) -> int:
    """Truncates value to a signed 32-bit integer."""
    value &= _MASK32
    return value - (1 << 32) if value & (1 << 31) else value


def int64(value: int) -> int:
    """Truncates value to a signed 64-bit integer."""
    value &= _MASK64
    return value - (1 << 64) if value & (1 << 63) else value


def uint32(value: int) -> int:
    return value & _MASK32


def float64_bits(value: float) -> int:
    return struct.unpack('<Q', struct.pack('<d', value))[0]


def float64_from_bits(bits: int) -> float:
    return struct.unpack('<d', struct.pack('<Q', bits))[0]


def float32_bits(value: float) -> int:
    return struct.unpack('<I', struct.pack('<f', value))[0]


def float32_from_bits(bits: int) -> float:
    return struct.unpack('<f', struct.pack('<I', bits))[0]


class Buffer:
    """Reads and writes the primitive encodings of the wire format.

    Writes append to the end of the buffer. Reads consume from a cursor that
    starts at the beginning.
    """

    def __init__(self, data: bytes = b''):
        self._data = bytearray(data)
        self._index = 0

    def bytes(self) -> bytes:
        return bytes(self._data)

    def index(self) -> int:
        return self._index

    def eof(self) -> bool:
        return self._index >= len(self._data)

    def write(self, raw: bytes) -> None:
        self._data += raw

    def encode_varint(self, value: int) -> None:
        value &= _MASK64
        while value >= 0x80:
            self._data.append((value & 0x7f) | 0x80)
            value >>= 7
        self._data.append(value)

    def encode_fixed64(self, value: int) -> None:
        self._data += struct.pack('<Q', value & _MASK64)

    def encode_fixed32(self, value: int) -> None:
        self._data += struct.pack('<I', value & _MASK32)

    def encode_zigzag32(self, value: int) -> None:
        self.encode_varint(zigzag32(value))

    def encode_zigzag64(self, value: int) -> None:
        self.encode_varint(zigzag64(value))

    def encode_raw_bytes(self, data: bytes) -> None:
        self.encode_varint(len(data))
        self._data += data

    def encode_string_bytes(self, value: str) -> None:
        self.encode_raw_bytes(value.encode('utf-8'))

    def encode_message(self, message: 'Message') -> None:
        """Writes a length-delimited, encoded message."""
        if message is None:
            raise EncodeError('proto: cannot encode a None message')
        self.encode_raw_bytes(marshal(message))

    def marshal(self, message: 'Message') -> None:
        """Writes the fields of a message without a length prefix."""
        if message is None:
            raise EncodeError('proto: cannot encode a None message')
        _marshal_into(self, message)

    def _take(self, count: int) -> bytes:
        end = self._index + count
        if count < 0 or end > len(self._data):
            raise DecodeError('proto: unexpected EOF')
        data = bytes(self._data[self._index:end])
        self._index = end
        return data

    def decode_varint(self) -> int:
        value = 0
        shift = 0
        while True:
            if self._index >= len(self._data):
                raise DecodeError('proto: unexpected EOF in varint')
            byte = self._data[self._index]
            self._index += 1
            value |= (byte & 0x7f) << shift
            if not byte & 0x80:
                return value & _MASK64
            shift += 7
            if shift >= 70:
                raise DecodeError('proto: integer overflow in varint')

    def decode_fixed64(self) -> int:
        return struct.unpack('<Q', self._take(8))[0]

    def decode_fixed32(self) -> int:
        return struct.unpack('<I', self._take(4))[0]

    def decode_zigzag32(self) -> int:
        value = self.decode_varint() & _MASK32
        return (value >> 1) ^ -(value & 1)

    def decode_zigzag64(self) -> int:
        value = self.decode_varint()
        return (value >> 1) ^ -(value & 1)

    def decode_raw_bytes(self) -> bytes:
        return self._take(self.decode_varint())

    def decode_string_bytes(self) -> str:
        try:
            return self.decode_raw_bytes().decode('utf-8')
        except UnicodeDecodeError as err:
            raise DecodeError(f'proto: invalid UTF-8 string: {err}') from err

    def decode_message(self, message: 'Message') -> None:
        """Reads a length-delimited message, merging it into message."""
        _merge_bytes(self.decode_raw_bytes(), message)

    def decode_group(self, message: 'Message') -> None:
        """Reads fields into message up to the end of the current group."""
        _merge(self, message, in_group=True)

    def skip_field(self, wire: int) -> None:
        """Consumes the value of a field whose key was just read."""
        if wire == WIRE_VARINT:
            self.decode_varint()
        elif wire == WIRE_FIXED64:
            self._take(8)
        elif wire == WIRE_BYTES:
            self.decode_raw_bytes()
        elif wire == WIRE_FIXED32:
            self._take(4)
        elif wire == WIRE_START_GROUP:
            while True:
                key = self.decode_varint()
                if key & 7 == WIRE_END_GROUP:
                    return
                self.skip_field(key & 7)
        else:
            raise DecodeError(f'proto: illegal wire type {wire}')


class Field:
    """One entry of a generated message's field table.

    The tag is the structured description the generator derives for every
    field, for example 'varint,1,opt,name=a,def=5'. Map fields carry Field
    entries for their key and value.
    """

    def __init__(
        self,
        attr: str,
        kind: str,
        tag: str,
        type_name: str | None = None,
        key: 'Field | None' = None,
        value: 'Field | None' = None,
    ):
        self.attr = attr
        self.kind = kind
        self.tag = tag
        self.type_name = type_name
        self.key = key
        self.value = value

        parts = tag.split(',')
        self.wire_type = _WIRE_TYPES[parts[0]]
        self.number = int(parts[1])
        self.repeated = parts[2] == 'rep'
        self.required = parts[2] == 'req'
        self.packed = False
        self.proto3 = False
        self.oneof = False
        self.name = attr
        self.json_name = ''
        self.enum = ''
        self.default: str | None = None

        for i, part in enumerate(parts[3:], 3):
            option, _, option_value = part.partition('=')
            if option == 'def':
                # The default is last and may itself contain commas.
                self.default = ','.join(parts[i:])[len('def='):]
                break
            if option == 'packed':
                self.packed = True
            elif option == 'proto3':
                self.proto3 = True
            elif option == 'oneof':
                self.oneof = True
            elif option == 'name':
                self.name = option_value
            elif option == 'json':
                self.json_name = option_value
            elif option == 'enum':
                self.enum = option_value

    def __repr__(self) -> str:
        return f'Field({self.attr!r}, {self.kind!r}, {self.tag!r})'


class ExtensionRange(NamedTuple):
    """An inclusive range of field numbers reserved for extensions."""
    start: int
    end: int


class ExtensionDesc:
    """Describes an extension field of another message type."""

    def __init__(
        self,
        extended_type: type,
        extension_type: str,
        field: int,
        name: str,
        tag: str,
        filename: str,
        type_name: str | None = None,
    ):
        self.extended_type = extended_type
        self.extension_type = extension_type
        self.field = field
        self.name = name
        self.tag = tag
        self.filename = filename
        self.type_name = type_name
        self._info: Field | None = None

    def info(self) -> Field:
        if self._info is None:
            self._info = Field('value', self.extension_type, self.tag,
                               self.type_name)
        return self._info

    def __repr__(self) -> str:
        return f'ExtensionDesc({self.name!r}, {self.field})'


def original_type(message_type_: type) -> type:
    """Returns the class that a forwarding alias class stands in for.

    Modules that publicly import a message define an alias class forwarding
    to the defining module's class. The alias records that class in
    _original; any other class is its own original.
    """
    return message_type_.__dict__.get('_original', message_type_)


class Message:
    """Base class of generated message classes."""

    _fields: tuple[Field, ...] = ()
    _oneofs: tuple[str, ...] = ()

    def _compared_attributes(self) -> list[str]:
        return ([f.attr for f in self._fields] + list(self._oneofs) +
                ['_extensions'])

    def __eq__(self, other: object) -> bool:
        if original_type(type(self)) is not original_type(type(other)):
            return False
        return all(
            getattr(self, attr, None) == getattr(other, attr, None)
            for attr in self._compared_attributes())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f'{type(self).__name__}({compact_text_string(self)})'

    def __str__(self) -> str:
        return compact_text_string(self)


class Enum(int):
    """Base class of generated enum types."""

    def string(self) -> str:
        return str(int(self))

    def __str__(self) -> str:
        return self.string()

    def __repr__(self) -> str:
        return f'{type(self).__name__}({int(self)})'


class OneofVariant:
    """Base class of the per-field wrappers of a oneof's active value."""

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and all(
            getattr(self, slot) == getattr(other, slot)
            for slot in self.__slots__)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        values = ', '.join(
            f'{slot}={getattr(self, slot)!r}' for slot in self.__slots__)
        return f'{type(self).__name__}({values})'


def enum_name(names: dict[int, str], value: int) -> str:
    """Returns the name of an enum value, or its number if it has none."""
    name = names.get(int(value))
    return name if name is not None else str(int(value))


# Registries filled in by generated modules as they are imported.
_message_types: dict[str, type] = {}
_enum_types: dict[str, type] = {}
_enum_values: dict[str, dict[str, int]] = {}
_extensions: dict[type, dict[int, ExtensionDesc]] = {}
_file_descriptors: dict[str, bytes] = {}
_message_set_types: dict[int, tuple[type, str]] = {}

_field_index: dict[type, dict[int, Field]] = {}


def register_type(message_type: type, name: str) -> None:
    if name in _message_types:
        _LOG.warning('proto: duplicate proto type registered: %s', name)
    _message_types[name] = message_type


def message_type(name: str) -> type:
    """Returns the class registered for a fully-qualified message name."""
    try:
        return _message_types[name]
    except KeyError:
        raise Error(f'proto: unknown message type {name}') from None


def register_enum(
    name: str,
    names: dict[int, str],
    values: dict[str, int],
    enum_type: type | None = None,
) -> None:
    if name in _enum_values:
        _LOG.warning('proto: duplicate enum registered: %s', name)
    _enum_values[name] = values
    if enum_type is not None:
        _enum_types[name] = enum_type


def enum_value_map(name: str) -> dict[str, int] | None:
    return _enum_values.get(name)


def register_file(filename: str, descriptor: bytes) -> None:
    """Registers the gzipped FileDescriptorProto of a .proto file."""
    _file_descriptors[filename] = descriptor


def file_descriptor(filename: str) -> bytes | None:
    return _file_descriptors.get(filename)


def register_extension(desc: ExtensionDesc) -> None:
    extensions = _extensions.setdefault(original_type(desc.extended_type), {})
    if desc.field in extensions:
        _LOG.warning('proto: duplicate extension registered: %s %d',
                     desc.extended_type.__name__, desc.field)
    extensions[desc.field] = desc


def registered_extensions(message: Message) -> dict[int, ExtensionDesc]:
    return dict(_extensions.get(original_type(type(message)), {}))


def register_message_set_type(
    message_type_: type, field_number: int, name: str
) -> None:
    """Registers the message type carried by a message set type id."""
    _message_set_types[field_number] = (message_type_, name)


def message_set_type(type_id: int) -> tuple[type, str] | None:
    """Returns the class and name registered for a message set type id."""
    return _message_set_types.get(type_id)


def _tag(number: int, wire: int) -> int:
    return (number << 3) | wire


def _encode_double(buf: Buffer, value: float) -> None:
    buf.encode_fixed64(float64_bits(value))


def _encode_float(buf: Buffer, value: float) -> None:
    buf.encode_fixed32(float32_bits(value))


def _encode_bool(buf: Buffer, value: bool) -> None:
    buf.encode_varint(1 if value else 0)


_ENCODERS: dict[str, Callable[[Buffer, Any], None]] = {
    'double': _encode_double,
    'float': _encode_float,
    'int64': Buffer.encode_varint,
    'uint64': Buffer.encode_varint,
    'int32': Buffer.encode_varint,
    'uint32': Buffer.encode_varint,
    'enum': Buffer.encode_varint,
    'fixed64': Buffer.encode_fixed64,
    'sfixed64': Buffer.encode_fixed64,
    'fixed32': Buffer.encode_fixed32,
    'sfixed32': Buffer.encode_fixed32,
    'bool': _encode_bool,
    'string': Buffer.encode_string_bytes,
    'bytes': Buffer.encode_raw_bytes,
    'message': Buffer.encode_message,
    'sint32': Buffer.encode_zigzag32,
    'sint64': Buffer.encode_zigzag64,
}

_DECODERS: dict[str, Callable[[Buffer], Any]] = {
    'double': lambda buf: float64_from_bits(buf.decode_fixed64()),
    'float': lambda buf: float32_from_bits(buf.decode_fixed32()),
    'int64': lambda buf: int64(buf.decode_varint()),
    'uint64': Buffer.decode_varint,
    'int32': lambda buf: int32(buf.decode_varint()),
    'uint32': lambda buf: uint32(buf.decode_varint()),
    'enum': lambda buf: int32(buf.decode_varint()),
    'fixed64': Buffer.decode_fixed64,
    'sfixed64': lambda buf: int64(buf.decode_fixed64()),
    'fixed32': Buffer.decode_fixed32,
    'sfixed32': lambda buf: int32(buf.decode_fixed32()),
    'bool': lambda buf: buf.decode_varint() != 0,
    'string': Buffer.decode_string_bytes,
    'bytes': Buffer.decode_raw_bytes,
    'sint32': Buffer.decode_zigzag32,
    'sint64': Buffer.decode_zigzag64,
}


def _encode_single(buf: Buffer, field: Field, value: Any) -> None:
    if field.kind == 'group':
        buf.encode_varint(_tag(field.number, WIRE_START_GROUP))
        buf.marshal(value)
        buf.encode_varint(_tag(field.number, WIRE_END_GROUP))
        return

    buf.encode_varint(_tag(field.number, field.wire_type))
    _ENCODERS[field.kind](buf, value)


def _encode_field(
    buf: Buffer, field: Field, value: Any, always: bool = False
) -> None:
    """Writes a field's value, skipping it if it is unset."""
    if field.kind == 'map':
        assert field.key is not None and field.value is not None
        for key, item in (value or {}).items():
            entry = Buffer()
            _encode_field(entry, field.key, key, always=True)
            _encode_field(entry, field.value, item, always=True)
            buf.encode_varint(_tag(field.number, WIRE_BYTES))
            buf.encode_raw_bytes(entry.bytes())
        return

    if field.repeated:
        if not value:
            return
        if field.packed:
            packed = Buffer()
            for item in value:
                _ENCODERS[field.kind](packed, item)
            buf.encode_varint(_tag(field.number, WIRE_BYTES))
            buf.encode_raw_bytes(packed.bytes())
        else:
            for item in value:
                _encode_single(buf, field, item)
        return

    if value is None:
        if field.required:
            raise EncodeError(f'proto: required field {field.name} not set')
        return

    if (field.proto3 and not always
            and field.kind not in ('message', 'group') and not value):
        return

    _encode_single(buf, field, value)


def _decode_single(buf: Buffer, field: Field, current: Any) -> Any:
    if field.kind in ('message', 'group'):
        assert field.type_name is not None
        message = current if current is not None else message_type(
            field.type_name)()
        if field.kind == 'message':
            buf.decode_message(message)
        else:
            buf.decode_group(message)
        return message

    value = _DECODERS[field.kind](buf)
    if field.kind == 'enum' and field.type_name in _enum_types:
        value = _enum_types[field.type_name](value)
    return value


def _decode_map_entry(buf: Buffer, field: Field, current: Any) -> dict:
    assert field.key is not None and field.value is not None
    entry = Buffer(buf.decode_raw_bytes())
    key = None
    value = None
    while not entry.eof():
        tag = entry.decode_varint()
        number, wire = tag >> 3, tag & 7
        if number == 1:
            key = _decode_field(entry, field.key, wire, None)
        elif number == 2:
            value = _decode_field(entry, field.value, wire, None)
        else:
            entry.skip_field(wire)

    if key is None:
        key = _zero_value(field.key)
    if value is None:
        value = _zero_value(field.value)

    mapping = current if current is not None else {}
    mapping[key] = value
    return mapping


def _zero_value(field: Field) -> Any:
    if field.kind in ('message', 'group'):
        assert field.type_name is not None
        return message_type(field.type_name)()
    if field.kind == 'string':
        return ''
    if field.kind == 'bytes':
        return b''
    if field.kind == 'bool':
        return False
    if field.kind in ('double', 'float'):
        return 0.0
    return 0


def _decode_field(buf: Buffer, field: Field, wire: int, current: Any) -> Any:
    """Reads one occurrence of a field and returns the field's new value."""
    if field.kind == 'map':
        if wire != WIRE_BYTES:
            raise BadWireTypeError(field.number, wire, WIRE_BYTES)
        return _decode_map_entry(buf, field, current)

    if field.repeated:
        values = current if current is not None else []
        if wire == WIRE_BYTES and field.kind not in _UNPACKABLE_KINDS:
            packed = Buffer(buf.decode_raw_bytes())
            while not packed.eof():
                values.append(_decode_single(packed, field, None))
            return values
        if wire != field.wire_type:
            raise BadWireTypeError(field.number, wire, field.wire_type)
        values.append(_decode_single(buf, field, None))
        return values

    if wire != field.wire_type:
        raise BadWireTypeError(field.number, wire, field.wire_type)
    return _decode_single(buf, field, current)


def _fields_by_number(message: Message) -> dict[int, Field]:
    cls = type(message)
    index = _field_index.get(cls)
    if index is None:
        index = {field.number: field for field in message._fields}
        _field_index[cls] = index
    return index


def _extension_ranges(message: Message) -> list[ExtensionRange]:
    ranges = getattr(message, 'extension_range_array', None)
    return list(ranges()) if ranges is not None else []


def _in_ranges(number: int, ranges: list[ExtensionRange]) -> bool:
    return any(r.start <= number <= r.end for r in ranges)


def _marshal_into(buf: Buffer, message: Message) -> None:
    custom = getattr(type(message), 'marshal', None)
    if custom is not None:
        buf.write(custom(message))
        return

    for field in message._fields:
        _encode_field(buf, field, getattr(message, field.attr))

    oneof_funcs = getattr(message, 'oneof_funcs', None)
    if oneof_funcs is not None:
        marshaler = oneof_funcs()[0]
        marshaler(message, buf)

    extensions = getattr(message, '_extensions', None)
    if extensions:
        for number in sorted(extensions):
            buf.write(extensions[number])

    unrecognized = getattr(message, '_unrecognized', None)
    if unrecognized:
        buf.write(unrecognized)


def _merge(buf: Buffer, message: Message, in_group: bool = False) -> None:
    """Reads fields from buf into message until EOF or the end of a group."""
    fields = _fields_by_number(message)
    oneof_funcs = getattr(message, 'oneof_funcs', None)
    unmarshaler = oneof_funcs()[1] if oneof_funcs is not None else None
    ranges = _extension_ranges(message)

    while not buf.eof():
        start = buf.index()
        tag = buf.decode_varint()
        number, wire = tag >> 3, tag & 7
        if wire == WIRE_END_GROUP:
            if in_group:
                return
            raise DecodeError('proto: unexpected end group')
        if number <= 0:
            raise DecodeError(f'proto: illegal tag {number}')

        field = fields.get(number)
        if field is not None:
            setattr(message, field.attr,
                    _decode_field(buf, field, wire, getattr(message,
                                                            field.attr)))
            continue

        if unmarshaler is not None and unmarshaler(message, number, wire,
                                                   buf):
            continue

        buf.skip_field(wire)
        raw = buf.bytes()[start:buf.index()]
        if _in_ranges(number, ranges):
            extensions = message._extensions  # pylint: disable=protected-access
            extensions[number] = extensions.get(number, b'') + raw
        elif hasattr(message, '_unrecognized'):
            message._unrecognized += raw  # pylint: disable=protected-access

    if in_group:
        raise DecodeError('proto: unexpected EOF in group')


def _merge_bytes(data: bytes, message: Message) -> None:
    custom = getattr(type(message), 'unmarshal', None)
    if custom is not None:
        custom(message, data)
        return
    _merge(Buffer(data), message)


def marshal(message: Message) -> bytes:
    """Encodes a message in the protobuf wire format."""
    buf = Buffer()
    _marshal_into(buf, message)
    return buf.bytes()


def unmarshal(data: bytes, message: Message) -> None:
    """Resets message and decodes data into it."""
    message.reset()  # type: ignore[attr-defined]
    _merge_bytes(data, message)


def merge(data: bytes, message: Message) -> None:
    """Decodes data into message, keeping the fields it already has."""
    _merge_bytes(data, message)


def _size_bytes(length: int) -> int:
    return size_varint(length) + length


_SIZERS: dict[str, Callable[[Any], int]] = {
    'double': lambda value: 8,
    'float': lambda value: 4,
    'int64': size_varint,
    'uint64': size_varint,
    'int32': size_varint,
    'uint32': size_varint,
    'enum': size_varint,
    'fixed64': lambda value: 8,
    'sfixed64': lambda value: 8,
    'fixed32': lambda value: 4,
    'sfixed32': lambda value: 4,
    'bool': lambda value: 1,
    'string': lambda value: _size_bytes(len(value.encode('utf-8'))),
    'bytes': lambda value: _size_bytes(len(value)),
    'message': lambda value: _size_bytes(size(value)),
    'sint32': lambda value: size_varint(zigzag32(value)),
    'sint64': lambda value: size_varint(zigzag64(value)),
}


def _size_single(field: Field, value: Any) -> int:
    if field.kind == 'group':
        return (size_varint(_tag(field.number, WIRE_START_GROUP)) +
                size(value) +
                size_varint(_tag(field.number, WIRE_END_GROUP)))
    if field.kind == 'message' and value is None:
        raise EncodeError('proto: cannot encode a None message')
    return (size_varint(_tag(field.number, field.wire_type)) +
            _SIZERS[field.kind](value))


def _size_field(field: Field, value: Any, always: bool = False) -> int:
    """Returns the encoded size of a field, mirroring _encode_field."""
    if field.kind == 'map':
        assert field.key is not None and field.value is not None
        n = 0
        for key, item in (value or {}).items():
            entry = (_size_field(field.key, key, always=True) +
                     _size_field(field.value, item, always=True))
            n += size_varint(_tag(field.number, WIRE_BYTES)) + _size_bytes(entry)
        return n

    if field.repeated:
        if not value:
            return 0
        if field.packed:
            packed = sum(_SIZERS[field.kind](item) for item in value)
            return (size_varint(_tag(field.number, WIRE_BYTES)) +
                    _size_bytes(packed))
        return sum(_size_single(field, item) for item in value)

    if value is None:
        if field.required:
            raise EncodeError(f'proto: required field {field.name} not set')
        return 0

    if (field.proto3 and not always
            and field.kind not in ('message', 'group') and not value):
        return 0

    return _size_single(field, value)


def size(message: Message) -> int:
    """Returns the size of a message's encoding without encoding it.

    Oneof groups are sized by the sizer the generated class returns from
    oneof_funcs. A message set sizes its own encoding.
    """
    if message is None:
        raise EncodeError('proto: cannot encode a None message')
    custom = getattr(type(message), 'marshal', None)
    if custom is not None:
        return len(custom(message))

    n = sum(
        _size_field(field, getattr(message, field.attr))
        for field in message._fields)

    oneof_funcs = getattr(message, 'oneof_funcs', None)
    if oneof_funcs is not None:
        sizer = oneof_funcs()[2]
        n += sizer(message)

    extensions = getattr(message, '_extensions', None)
    if extensions:
        n += sum(len(raw) for raw in extensions.values())

    n += len(getattr(message, '_unrecognized', b'') or b'')
    return n


def _check_extendable(message: Message, desc: ExtensionDesc) -> None:
    if original_type(type(message)) is not original_type(desc.extended_type):
        raise Error(f'proto: bad extended type; {desc.extended_type.__name__}'
                    f' does not extend {type(message).__name__}')
    if not _in_ranges(desc.field, _extension_ranges(message)):
        raise Error(f'proto: bad extension number; not in declared ranges: '
                    f'{desc.field}')


def has_extension(message: Message, desc: ExtensionDesc) -> bool:
    return desc.field in getattr(message, '_extensions', {})


def clear_extension(message: Message, desc: ExtensionDesc) -> None:
    getattr(message, '_extensions', {}).pop(desc.field, None)


def get_extension(message: Message, desc: ExtensionDesc) -> Any:
    """Decodes an extension's value, or returns None if it is not set."""
    _check_extendable(message, desc)
    raw = message._extensions.get(desc.field)  # type: ignore[attr-defined]
    if raw is None:
        return None

    info = desc.info()
    buf = Buffer(raw)
    value = None
    while not buf.eof():
        tag = buf.decode_varint()
        value = _decode_field(buf, info, tag & 7, value)
    return value


def set_extension(message: Message, desc: ExtensionDesc, value: Any) -> None:
    _check_extendable(message, desc)
    if value is None:
        raise Error('proto: set_extension called with None value')

    buf = Buffer()
    _encode_field(buf, desc.info(), value, always=True)
    message._extensions[desc.field] = buf.bytes()  # type: ignore[attr-defined]


# Field numbers of the message set item group and its members.
_MESSAGE_SET_ITEM = 1
_MESSAGE_SET_TYPE_ID = 2
_MESSAGE_SET_MESSAGE = 3


def marshal_message_set(extensions: dict[int, bytes]) -> bytes:
    """Encodes extensions in the message set wire format.

    Each extension must hold a single length-delimited record, which is
    written as an item group of its type id and message.
    """
    buf = Buffer()
    for number in sorted(extensions):
        record = Buffer(extensions[number])
        tag = record.decode_varint()
        if tag & 7 != WIRE_BYTES:
            raise EncodeError(
                f'proto: message set extension {number} is not a message')
        payload = record.decode_raw_bytes()

        buf.encode_varint(_tag(_MESSAGE_SET_ITEM, WIRE_START_GROUP))
        buf.encode_varint(_tag(_MESSAGE_SET_TYPE_ID, WIRE_VARINT))
        buf.encode_varint(number)
        buf.encode_varint(_tag(_MESSAGE_SET_MESSAGE, WIRE_BYTES))
        buf.encode_raw_bytes(payload)
        buf.encode_varint(_tag(_MESSAGE_SET_ITEM, WIRE_END_GROUP))
    return buf.bytes()


def unmarshal_message_set(data: bytes, extensions: dict[int, bytes]) -> None:
    """Decodes message set items into raw extension records."""
    buf = Buffer(data)
    while not buf.eof():
        tag = buf.decode_varint()
        if tag != _tag(_MESSAGE_SET_ITEM, WIRE_START_GROUP):
            buf.skip_field(tag & 7)
            continue

        type_id = None
        payload = None
        while True:
            tag = buf.decode_varint()
            if tag == _tag(_MESSAGE_SET_ITEM, WIRE_END_GROUP):
                break
            if tag == _tag(_MESSAGE_SET_TYPE_ID, WIRE_VARINT):
                type_id = buf.decode_varint()
            elif tag == _tag(_MESSAGE_SET_MESSAGE, WIRE_BYTES):
                payload = buf.decode_raw_bytes()
            else:
                buf.skip_field(tag & 7)

        if type_id is None or payload is None:
            raise DecodeError('proto: incomplete message set item')

        record = Buffer()
        record.encode_varint(_tag(type_id, WIRE_BYTES))
        record.encode_raw_bytes(payload)
        extensions[type_id] = record.bytes()


def _quote(value: bytes) -> str:
    out = []
    for byte in value:
        char = chr(byte)
        if char in '"\\':
            out.append('\\' + char)
        elif char == '\n':
            out.append('\\n')
        elif 0x20 <= byte < 0x7f:
            out.append(char)
        else:
            out.append(f'\\{byte:03o}')
    return '"' + ''.join(out) + '"'


def _text_value(name: str, value: Any) -> str:
    if isinstance(value, Message):
        return f'{name}:<{compact_text_string(value)}>'
    if isinstance(value, OneofVariant):
        slot = value.__slots__[0]
        return _text_value(slot, getattr(value, slot))
    if isinstance(value, str):
        return f'{name}:{_quote(value.encode("utf-8"))}'
    if isinstance(value, bytes):
        return f'{name}:{_quote(value)}'
    if isinstance(value, bool):
        return f'{name}:{"true" if value else "false"}'
    if isinstance(value, Enum):
        return f'{name}:{value.string()}'
    return f'{name}:{value!r}'


def compact_text_string(message: Message) -> str:
    """Formats the set fields of a message on a single line."""
    parts = []
    for field in message._fields:
        value = getattr(message, field.attr, None)
        if value is None:
            continue
        if field.kind == 'map':
            for key, item in value.items():
                parts.append(f'{field.name}:<{_text_value("key", key)} '
                             f'{_text_value("value", item)}>')
        elif field.repeated:
            parts.extend(_text_value(field.name, item) for item in value)
        elif not (field.proto3 and not value
                  and field.kind not in ('message', 'group')):
            parts.append(_text_value(field.name, value))

    for attr in message._oneofs:
        variant = getattr(message, attr, None)
        if variant is not None:
            parts.append(_text_value(attr, variant))

    if getattr(type(message), 'unmarshal', None) is not None:
        parts.extend(_message_set_text(getattr(message, '_extensions', {})))

    return ' '.join(parts)


def _message_set_text(extensions: dict[int, bytes]) -> list[str]:
    """Formats the message set members whose type id is registered."""
    parts = []
    for type_id in sorted(extensions):
        registered = message_set_type(type_id)
        if registered is None:
            continue
        item_type, name = registered
        record = Buffer(extensions[type_id])
        record.decode_varint()
        item = item_type()
        _merge_bytes(record.decode_raw_bytes(), item)
        parts.append(f'[{name}]:<{compact_text_string(item)}>')
    return parts
