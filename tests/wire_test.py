#!/usr/bin/env python3
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
"""Tests for wire metadata derived from field descriptors."""

import unittest

from google.protobuf import descriptor_pb2, text_format

from pybuf_compiler.errors import InternalError
from pybuf_compiler.wire import (
    FieldKind,
    default_literal,
    field_tag,
    in_oneof,
    is_packed,
    tag_default,
)

_ENUM_VALUES = {'FIRST': 3, 'SECOND': 5}


def _field(text: str) -> descriptor_pb2.FieldDescriptorProto:
    return text_format.Parse(text, descriptor_pb2.FieldDescriptorProto())


class FieldKindTest(unittest.TestCase):
    """Tests for FieldKind."""

    def test_of(self):
        field = _field('name: "a" number: 1 type: TYPE_SINT64')
        self.assertIs(FieldKind.of(field), FieldKind.SINT64)

    def test_wire_types(self):
        self.assertEqual(FieldKind.SINT32.wire_type(), 'zigzag32')
        self.assertEqual(FieldKind.DOUBLE.wire_type(), 'fixed64')
        self.assertEqual(FieldKind.SFIXED32.wire_type(), 'fixed32')
        self.assertEqual(FieldKind.ENUM.wire_type(), 'varint')
        self.assertEqual(FieldKind.MESSAGE.wire_type(), 'bytes')
        self.assertEqual(FieldKind.GROUP.wire_type(), 'group')

    def test_scalars(self):
        self.assertTrue(FieldKind.ENUM.is_scalar())
        self.assertTrue(FieldKind.FLOAT.is_scalar())
        self.assertFalse(FieldKind.STRING.is_scalar())
        self.assertFalse(FieldKind.GROUP.is_scalar())

    def test_python_types(self):
        self.assertEqual(FieldKind.UINT64.python_type(), 'int')
        self.assertEqual(FieldKind.FLOAT.python_type(), 'float')
        self.assertEqual(FieldKind.BYTES.python_type(), 'bytes')
        self.assertIsNone(FieldKind.MESSAGE.python_type())
        self.assertIsNone(FieldKind.ENUM.python_type())

    def test_zero_values(self):
        self.assertEqual(FieldKind.INT32.zero_value(), '0')
        self.assertEqual(FieldKind.DOUBLE.zero_value(), '0.0')
        self.assertEqual(FieldKind.BOOL.zero_value(), 'False')
        self.assertEqual(FieldKind.STRING.zero_value(), "''")
        self.assertEqual(FieldKind.BYTES.zero_value(), "b''")
        self.assertEqual(FieldKind.ENUM.zero_value(), '0')
        self.assertEqual(FieldKind.MESSAGE.zero_value(), 'None')


class PackedTest(unittest.TestCase):
    """Tests for is_packed."""

    _REPEATED_INT = 'name: "n" number: 1 label: LABEL_REPEATED type: TYPE_INT32'

    def test_proto3_packs_numeric_fields_by_default(self):
        self.assertTrue(is_packed(_field(self._REPEATED_INT), proto3=True))

    def test_proto2_does_not_pack_by_default(self):
        self.assertFalse(is_packed(_field(self._REPEATED_INT), proto3=False))

    def test_explicit_option_wins(self):
        packed = _field(self._REPEATED_INT + ' options { packed: true }')
        unpacked = _field(self._REPEATED_INT + ' options { packed: false }')
        self.assertTrue(is_packed(packed, proto3=False))
        self.assertFalse(is_packed(unpacked, proto3=True))

    def test_strings_are_never_packed_by_default(self):
        field = _field(
            'name: "s" number: 1 label: LABEL_REPEATED type: TYPE_STRING'
        )
        self.assertFalse(is_packed(field, proto3=True))

    def test_singular_fields_are_not_packed(self):
        field = _field(
            'name: "n" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32'
        )
        self.assertFalse(is_packed(field, proto3=True))


class FieldTagTest(unittest.TestCase):
    """Tests for field_tag."""

    def test_optional_with_default(self):
        field = _field(
            'name: "a" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 '
            'json_name: "a" default_value: "5"'
        )
        self.assertEqual(
            field_tag(field, proto3=False), 'varint,1,opt,name=a,def=5'
        )

    def test_json_name_and_proto3(self):
        field = _field(
            'name: "my_field" number: 2 label: LABEL_OPTIONAL '
            'type: TYPE_STRING json_name: "myField"'
        )
        self.assertEqual(
            field_tag(field, proto3=True),
            'bytes,2,opt,name=my_field,json=myField,proto3',
        )

    def test_packed_repeated(self):
        field = _field(
            'name: "nums" number: 3 label: LABEL_REPEATED type: TYPE_SINT32'
        )
        self.assertEqual(
            field_tag(field, proto3=True),
            'zigzag32,3,rep,packed,name=nums,proto3',
        )
        self.assertEqual(
            field_tag(field, proto3=False), 'zigzag32,3,rep,name=nums'
        )

    def test_enum(self):
        field = _field(
            'name: "e" number: 5 label: LABEL_OPTIONAL type: TYPE_ENUM '
            'type_name: ".pkg.E" default_value: "SECOND"'
        )
        self.assertEqual(
            field_tag(field, False, 'pkg.E', _ENUM_VALUES),
            'varint,5,opt,name=e,enum=pkg.E,def=5',
        )

    def test_unknown_enum_default(self):
        field = _field(
            'name: "e" number: 5 label: LABEL_OPTIONAL type: TYPE_ENUM '
            'type_name: ".pkg.E" default_value: "THIRD"'
        )
        with self.assertRaises(InternalError):
            field_tag(field, False, 'pkg.E', _ENUM_VALUES)

    def test_oneof_member(self):
        field = _field(
            'name: "x" number: 6 label: LABEL_OPTIONAL type: TYPE_INT32 '
            'oneof_index: 0'
        )
        self.assertTrue(in_oneof(field))
        self.assertEqual(
            field_tag(field, proto3=False), 'varint,6,opt,name=x,oneof'
        )

    def test_proto3_optional(self):
        field = _field(
            'name: "o" number: 7 label: LABEL_OPTIONAL type: TYPE_INT32 '
            'oneof_index: 0 proto3_optional: true'
        )
        self.assertFalse(in_oneof(field))
        self.assertEqual(field_tag(field, proto3=True), 'varint,7,opt,name=o')

    def test_group_is_named_by_its_type(self):
        field = _field(
            'name: "item" number: 8 label: LABEL_OPTIONAL type: TYPE_GROUP '
            'type_name: ".pkg.Outer.Item"'
        )
        self.assertEqual(
            field_tag(field, proto3=False), 'group,8,opt,name=Item'
        )

    def test_required(self):
        field = _field(
            'name: "d" number: 9 label: LABEL_REQUIRED type: TYPE_DOUBLE'
        )
        self.assertEqual(
            field_tag(field, proto3=False), 'fixed64,9,req,name=d'
        )

    def test_extension_omits_json_name(self):
        field = _field(
            'name: "ext_value" number: 100 label: LABEL_OPTIONAL '
            'type: TYPE_INT32 json_name: "extValue" extendee: ".pkg.Base"'
        )
        self.assertEqual(
            field_tag(field, proto3=False), 'varint,100,opt,name=ext_value'
        )

    def test_default_is_last_even_with_commas(self):
        field = _field(
            'name: "s" number: 10 label: LABEL_OPTIONAL type: TYPE_STRING '
            'default_value: "a,b"'
        )
        self.assertEqual(
            field_tag(field, proto3=False), 'bytes,10,opt,name=s,def=a,b'
        )


class TagDefaultTest(unittest.TestCase):
    """Tests for tag_default."""

    def _default(self, type_name: str, value: str) -> str:
        return tag_default(
            _field(
                f'name: "f" number: 1 type: {type_name} '
                f'default_value: "{value}"'
            )
        )

    def test_bool(self):
        self.assertEqual(self._default('TYPE_BOOL', 'true'), '1')
        self.assertEqual(self._default('TYPE_BOOL', 'false'), '0')

    def test_floats_use_shortest_form(self):
        self.assertEqual(self._default('TYPE_FLOAT', '0.1'), '0.1')
        self.assertEqual(self._default('TYPE_DOUBLE', '2.50'), '2.5')

    def test_special_floats_pass_through(self):
        self.assertEqual(self._default('TYPE_DOUBLE', 'inf'), 'inf')
        self.assertEqual(self._default('TYPE_FLOAT', 'nan'), 'nan')

    def test_other_values_pass_through(self):
        self.assertEqual(self._default('TYPE_INT64', '-12'), '-12')


class DefaultLiteralTest(unittest.TestCase):
    """Tests for default_literal."""

    def _literal(self, type_name: str, value: str, prefix: str = ''):
        field = _field(f'name: "f" number: 1 type: {type_name}')
        field.default_value = value
        return default_literal(field, prefix)

    def test_no_default(self):
        field = _field('name: "f" number: 1 type: TYPE_INT32')
        self.assertIsNone(default_literal(field))

    def test_scalars(self):
        self.assertEqual(self._literal('TYPE_INT32', '5'), '5')
        self.assertEqual(self._literal('TYPE_BOOL', 'true'), 'True')
        self.assertEqual(self._literal('TYPE_DOUBLE', '2'), '2.0')
        self.assertEqual(self._literal('TYPE_STRING', 'it\'s'), '"it\'s"')

    def test_bytes_are_unescaped(self):
        self.assertEqual(
            self._literal('TYPE_BYTES', r'\001x'), repr(b'\x01x')
        )

    def test_special_floats(self):
        self.assertEqual(self._literal('TYPE_DOUBLE', 'inf'), 'math.inf')
        self.assertEqual(self._literal('TYPE_FLOAT', '-inf'), '-math.inf')
        self.assertEqual(self._literal('TYPE_DOUBLE', 'nan'), 'math.nan')

    def test_enum_uses_constant_name(self):
        self.assertEqual(
            self._literal('TYPE_ENUM', 'SECOND', 'other.E_'), 'other.E_SECOND'
        )


if __name__ == '__main__':
    unittest.main()
