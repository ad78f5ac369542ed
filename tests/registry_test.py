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
"""Tests for the run-scoped registries of a generation run."""

import unittest

from proto_fixtures import file_proto

from pybuf_compiler.errors import UnresolvedTypeError
from pybuf_compiler.options import GeneratorOptions
from pybuf_compiler.proto_tree import ImportedNode, ProtoNode
from pybuf_compiler.registry import (
    CompilationContext,
    default_module_path,
    output_name,
)

_LEAF = file_proto('''
name: "chain/leaf.proto"
package: "chain.leaf"
message_type {
  name: "Leaf"
  field { name: "v" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }
}
enum_type { name: "Shade" value { name: "DARK" number: 0 } }
''')

_MIDDLE = file_proto('''
name: "chain/middle.proto"
package: "chain.middle"
dependency: "chain/leaf.proto"
public_dependency: 0
''')

_TOP = file_proto('''
name: "chain/top.proto"
package: "chain.top"
dependency: "chain/middle.proto"
public_dependency: 0
''')

_USER = file_proto('''
name: "chain/user.proto"
package: "chain.user"
dependency: "chain/top.proto"
message_type {
  name: "User"
  field {
    name: "leaf"
    number: 1
    label: LABEL_OPTIONAL
    type: TYPE_MESSAGE
    type_name: ".chain.leaf.Leaf"
  }
}
''')

_STRAY = file_proto('''
name: "chain/stray.proto"
package: "chain.stray"
''')

_ALL = [_LEAF, _MIDDLE, _TOP, _USER, _STRAY]


def _context(options: GeneratorOptions | None = None) -> CompilationContext:
    return CompilationContext.from_files(
        _ALL, [f.name for f in _ALL], options
    )


class OutputNameTest(unittest.TestCase):
    """Tests for the names of generated files and modules."""

    def test_output_name(self):
        self.assertEqual(output_name('a/b/c.proto'), 'a/b/c_pb.py')
        self.assertEqual(output_name('noext'), 'noext_pb.py')

    def test_default_module_path(self):
        self.assertEqual(default_module_path('a/b/c.proto'), 'a.b.c_pb')


class PackageNameTest(unittest.TestCase):
    """Tests for package identifier assignment."""

    def test_support_names_are_taken(self):
        context = CompilationContext()
        self.assertEqual(context.register_package('proto'), 'proto1')
        self.assertEqual(context.register_package('proto'), 'proto2')
        self.assertEqual(context.register_package('math'), 'math1')
        self.assertEqual(context.register_package('b'), 'b1')

    def test_names_are_cleaned(self):
        context = CompilationContext()
        self.assertEqual(context.register_package('foo.bar'), 'foo_bar')
        self.assertEqual(context.register_package('foo-bar'), 'foo_bar1')
        self.assertEqual(context.register_package('class'), '_class')

    def test_files_get_distinct_names(self):
        same_a = file_proto('name: "dup/a.proto" package: "same.pkg"')
        same_b = file_proto('name: "dup/b.proto" package: "same.pkg"')
        bare = file_proto('name: "dup/nopkg.proto"')
        context = CompilationContext.from_files(
            [same_a, same_b, bare], ['dup/a.proto']
        )
        self.assertEqual(
            [f.package_name for f in context.files()],
            ['same_pkg', 'same_pkg1', 'nopkg'],
        )
        self.assertEqual(
            [f.module_path for f in context.files()],
            ['dup.a_pb', 'dup.b_pb', 'dup.nopkg_pb'],
        )

    def test_import_path_applies_to_generated_files(self):
        context = _context(GeneratorOptions(import_path='example.com/x/mine'))
        for file in context.files():
            self.assertTrue(file.package_name.startswith('mine'))

        context = CompilationContext.from_files(
            _ALL, ['chain/user.proto'], GeneratorOptions(import_path='mine')
        )
        self.assertEqual(
            context.file_named('chain/user.proto').package_name, 'mine'
        )
        self.assertEqual(
            context.file_named('chain/leaf.proto').package_name, 'chain_leaf'
        )

    def test_import_map_overrides_module_path(self):
        context = _context(
            GeneratorOptions(import_map={'chain/leaf.proto': 'vendor.leaf'})
        )
        self.assertEqual(
            context.file_named('chain/leaf.proto').module_path, 'vendor.leaf'
        )
        self.assertEqual(
            context.file_named('chain/top.proto').module_path,
            'chain.top_pb',
        )


class FileSelectionTest(unittest.TestCase):
    """Tests for choosing the files to generate."""

    def test_requested_order(self):
        context = CompilationContext.from_files(
            _ALL, ['chain/user.proto', 'chain/leaf.proto']
        )
        self.assertEqual(
            [f.name() for f in context.files_to_generate()],
            ['chain/user.proto', 'chain/leaf.proto'],
        )
        self.assertEqual(context.file_named('chain/user.proto').index, 0)
        self.assertFalse(context.file_named('chain/top.proto').generate)

    def test_unknown_file(self):
        with self.assertRaises(UnresolvedTypeError):
            _context().file_named('chain/missing.proto')


class ResolveTest(unittest.TestCase):
    """Tests for type lookup and public import resolution."""

    def setUp(self):
        self.context = _context()
        self.leaf = self.context.lookup('.chain.leaf.Leaf')

    def test_lookup(self):
        self.assertEqual(self.leaf.type(), ProtoNode.Type.MESSAGE)
        self.assertEqual(self.leaf.file().name(), 'chain/leaf.proto')
        shade = self.context.lookup('.chain.leaf.Shade')
        self.assertEqual(shade.type(), ProtoNode.Type.ENUM)

    def test_lookup_unknown_type(self):
        with self.assertRaises(UnresolvedTypeError):
            self.context.lookup('.chain.leaf.Missing')

    def test_public_imports_are_hoisted_transitively(self):
        top = self.context.file_named('chain/top.proto')
        hoisted = {node.proto_name(): node for node in top.imported()}
        self.assertEqual(
            set(hoisted), {'.chain.leaf.Leaf', '.chain.leaf.Shade'}
        )
        for node in hoisted.values():
            self.assertEqual(node.via().name(), 'chain/middle.proto')
            self.assertIs(node.file(), top)

    def test_direct_dependency_resolves_to_definition(self):
        middle = self.context.file_named('chain/middle.proto')
        self.assertIs(self.context.resolve('.chain.leaf.Leaf', middle),
                      self.leaf)

    def test_resolve_through_public_import(self):
        user = self.context.file_named('chain/user.proto')
        node = self.context.resolve('.chain.leaf.Leaf', user)

        self.assertIsInstance(node, ImportedNode)
        assert isinstance(node, ImportedNode)
        self.assertIs(node.original(), self.leaf)
        self.assertEqual(node.file().name(), 'chain/top.proto')
        self.assertEqual(node.via().name(), 'chain/middle.proto')
        self.assertEqual(node.camel_name(), 'Leaf')

    def test_unresolved_public_import_warns(self):
        stray = self.context.file_named('chain/stray.proto')
        with self.assertLogs('pybuf_compiler.registry', 'WARNING') as logs:
            node = self.context.resolve('.chain.leaf.Leaf', stray)

        self.assertIs(node, self.leaf)
        self.assertIn('.chain.leaf.Leaf', logs.output[0])

    def test_unresolved_public_import_fails_when_strict(self):
        context = _context(GeneratorOptions(strict_imports=True))
        stray = context.file_named('chain/stray.proto')
        with self.assertRaises(UnresolvedTypeError):
            context.resolve('.chain.leaf.Leaf', stray)


if __name__ == '__main__':
    unittest.main()
