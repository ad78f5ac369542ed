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
"""Tests for identifier helpers and the identifier allocator."""

import unittest

from pybuf_compiler.names import (
    RESERVED_NAMES,
    IdentifierAllocator,
    base_name,
    camel_case,
    camel_case_slice,
    clean_identifier,
    unescape,
    unique_name,
)


class CamelCaseTest(unittest.TestCase):
    """Tests for camel_case and camel_case_slice."""

    def test_underscore_lower_case(self):
        self.assertEqual(camel_case('foo_bar'), 'FooBar')
        self.assertEqual(camel_case('a_b_c'), 'ABC')

    def test_already_camel_case(self):
        self.assertEqual(camel_case('FooBar'), 'FooBar')

    def test_digits_keep_underscore(self):
        self.assertEqual(camel_case('my_field_2'), 'MyField_2')

    def test_leading_underscore(self):
        self.assertEqual(camel_case('_my_field'), 'XMyField')

    def test_empty(self):
        self.assertEqual(camel_case(''), '')

    def test_slice(self):
        self.assertEqual(
            camel_case_slice(['Outer', 'inner_msg']), 'Outer_InnerMsg'
        )


class IdentifierTest(unittest.TestCase):
    """Tests for mapping names onto Python identifiers."""

    def test_clean_identifier_replaces_invalid_characters(self):
        self.assertEqual(clean_identifier('foo.bar-baz'), 'foo_bar_baz')

    def test_clean_identifier_escapes_keywords(self):
        self.assertEqual(clean_identifier('import'), '_import')

    def test_clean_identifier_leading_digit(self):
        self.assertEqual(clean_identifier('3d'), '_3d')

    def test_base_name(self):
        self.assertEqual(base_name('path/to/file.proto'), 'file')
        self.assertEqual(base_name('noext'), 'noext')

    def test_unique_name(self):
        self.assertEqual(unique_name('A', {'A', 'A_'}), 'A__')
        self.assertEqual(unique_name('B', {'A'}), 'B')


class UnescapeTest(unittest.TestCase):
    """Tests for decoding C-style escapes."""

    def test_simple_escapes(self):
        self.assertEqual(unescape(r'a\n\t\\\"\''), b'a\n\t\\"\'')

    def test_octal(self):
        self.assertEqual(unescape(r'\001\1234'), b'\x01S4')

    def test_hex(self):
        self.assertEqual(unescape(r'\x41\xff'), b'A\xff')

    def test_invalid_escapes_pass_through(self):
        self.assertEqual(unescape(r'\q'), b'\\q')
        self.assertEqual(unescape(r'\xZZ'), b'\\xZZ')
        self.assertEqual(unescape('\\'), b'\\')

    def test_octal_out_of_range_passes_through(self):
        self.assertEqual(unescape(r'\777'), b'\\777')


class IdentifierAllocatorTest(unittest.TestCase):
    """Tests for IdentifierAllocator."""

    def test_unique_names_are_unchanged(self):
        allocator = IdentifierAllocator()
        self.assertEqual(
            allocator.allocate('value', 'get_value'), ['value', 'get_value']
        )

    def test_reserved_name_renames_whole_batch(self):
        allocator = IdentifierAllocator()
        self.assertEqual(
            allocator.allocate('reset', 'get_reset'), ['reset_', 'get_reset_']
        )

    def test_keyword_is_reserved(self):
        allocator = IdentifierAllocator()
        self.assertEqual(
            allocator.allocate('class', 'get_class'), ['class_', 'get_class_']
        )

    def test_collision_with_earlier_getter(self):
        allocator = IdentifierAllocator()
        allocator.allocate('a', 'get_a')
        self.assertEqual(
            allocator.allocate('get_a', 'get_get_a'),
            ['get_a_', 'get_get_a_'],
        )

    def test_duplicate_names_in_batch(self):
        with self.assertRaises(ValueError):
            IdentifierAllocator().allocate('a', 'a')

    def test_allocated_names_are_distinct_and_not_reserved(self):
        allocator = IdentifierAllocator()
        candidates = [
            'a',
            'get_a',
            'string',
            'get_string',
            'descriptor',
            '_fields',
            'self',
            'for',
            'a_',
            'get_a_',
        ]
        allocated: list[str] = []
        for name in candidates:
            allocated.extend(allocator.allocate(name, 'get_' + name))

        self.assertEqual(len(allocated), len(set(allocated)))
        self.assertFalse(set(allocated) & RESERVED_NAMES)
        for name in allocated:
            self.assertTrue(allocator.is_used(name))


if __name__ == '__main__':
    unittest.main()
