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
"""Identifier helpers for generated Python bindings.

Schema names are not always valid (or unambiguous) Python identifiers. The
functions here map them onto identifiers deterministically, and the
IdentifierAllocator hands out collision-free member names for a message.
"""

import keyword
from typing import Container, Iterable

# Members every generated message class always carries. A schema field may
# not take one of these names, nor a Python keyword.
METHOD_NAMES = (
    'reset',
    'string',
    'proto_message',
    'marshal',
    'unmarshal',
    'extension_range_array',
    'extension_map',
    'descriptor',
    'oneof_funcs',
    'xxx_well_known_type',
)

# Attributes the runtime base class stores on every message instance.
RUNTIME_ATTRIBUTES = ('_fields', '_oneofs', '_extensions', '_unrecognized',
                      'self')

RESERVED_NAMES = frozenset(METHOD_NAMES + RUNTIME_ATTRIBUTES +
                           tuple(keyword.kwlist))

_SIMPLE_ESCAPES = {
    'a': 0x07,
    'b': 0x08,
    'f': 0x0c,
    'n': 0x0a,
    'r': 0x0d,
    't': 0x09,
    'v': 0x0b,
    '\\': 0x5c,
    '"': 0x22,
    '\'': 0x27,
    '?': 0x3f,
}

_OCTAL_DIGITS = '01234567'
_HEX_DIGITS = '0123456789abcdefABCDEF'


def _is_lower(c: str) -> bool:
    return 'a' <= c <= 'z'


def _is_digit(c: str) -> bool:
    return '0' <= c <= '9'


def camel_case(name: str) -> str:
    """Converts a schema identifier to CamelCase.

    An underscore followed by a lower-case letter is removed and the letter is
    capitalized. A leading underscore becomes 'X' so the result still starts
    with a capital letter. Other underscores and digits are kept, so
    'my_field_2' becomes 'MyField_2' and '_my_field' becomes 'XMyField'.
    """
    if not name:
        return ''

    out: list[str] = []
    i = 0
    if name[0] == '_':
        out.append('X')
        i += 1

    while i < len(name):
        c = name[i]
        if c == '_' and i + 1 < len(name) and _is_lower(name[i + 1]):
            i += 1
            continue

        if _is_digit(c):
            out.append(c)
            i += 1
            continue

        out.append(c.upper() if _is_lower(c) else c)
        i += 1

        # The rest of a lower-case run is kept as is.
        while i < len(name) and _is_lower(name[i]):
            out.append(name[i])
            i += 1

    return ''.join(out)


def camel_case_slice(parts: Iterable[str]) -> str:
    """CamelCases each element of a type path and joins them with '_'."""
    return '_'.join(camel_case(part) for part in parts)


def clean_identifier(name: str) -> str:
    """Maps a dotted or otherwise invalid name to a Python identifier."""
    cleaned = ''.join(c if c.isalnum() or c == '_' else '_' for c in name)
    if keyword.iskeyword(cleaned):
        cleaned = '_' + cleaned
    if cleaned and cleaned[0].isdigit():
        cleaned = '_' + cleaned
    return cleaned


def base_name(name: str) -> str:
    """Returns the last path element of a file name, without its extension."""
    name = name.rsplit('/', 1)[-1]
    if '.' in name:
        name = name[:name.rindex('.')]
    return name


def unescape(text: str) -> bytes:
    """Decodes C-style backslash escapes, as protoc writes bytes defaults.

    Both quote characters may appear escaped. Malformed escapes are passed
    through unchanged.
    """
    out = bytearray()
    i = 0
    while i < len(text):
        c = text[i]
        if c != '\\' or i + 1 >= len(text):
            out += c.encode('utf-8')
            i += 1
            continue

        escape = text[i + 1]
        if escape in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[escape])
            i += 2
        elif escape in 'xX':
            if i + 4 > len(text):
                out += text[i:i + 2].encode('utf-8')
                i += 2
                continue
            digits = text[i + 2:i + 4]
            if all(d in _HEX_DIGITS for d in digits):
                out.append(int(digits, 16))
            else:
                out += text[i:i + 4].encode('utf-8')
            i += 4
        elif escape in _OCTAL_DIGITS:
            n = 0
            while (n < 3 and i + 1 + n < len(text)
                   and text[i + 1 + n] in _OCTAL_DIGITS):
                n += 1
            value = int(text[i + 1:i + 1 + n], 8)
            if value > 0xff:
                out += text[i:i + 1 + n].encode('utf-8')
            else:
                out.append(value)
            i += 1 + n
        else:
            out += c.encode('utf-8')
            i += 1

    return bytes(out)


def unique_name(name: str, taken: Container[str]) -> str:
    """Appends underscores to name until it is not in taken."""
    while name in taken:
        name += '_'
    return name


class IdentifierAllocator:
    """Allocates collision-free member identifiers within one message.

    Names are allocated in batches. If any name in a batch collides with a
    reserved or previously allocated name, every name in the batch gets an
    underscore appended and the batch is retried. A field and its getter are
    allocated together so both are renamed consistently.
    """

    def __init__(self, reserved: Iterable[str] = RESERVED_NAMES):
        self._used: set[str] = set(reserved)

    def allocate(self, *candidates: str) -> list[str]:
        if len(set(candidates)) != len(candidates):
            raise ValueError(f'Duplicate names in batch: {candidates}')

        names = list(candidates)
        while any(name in self._used for name in names):
            names = [name + '_' for name in names]

        self._used.update(names)
        return names

    def is_used(self, name: str) -> bool:
        return name in self._used
