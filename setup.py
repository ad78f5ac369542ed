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
"""pybuf"""

import setuptools  # type: ignore

setuptools.setup(
    name='pybuf',
    version='0.0.1',
    author='Pigweed Authors',
    author_email='pigweed-developers@googlegroups.com',
    description='protoc plugin and runtime for pybuf Python protobuf modules',
    packages=setuptools.find_packages(include=['pybuf', 'pybuf_compiler']),
    package_data={
        'pybuf': ['py.typed'],
        'pybuf_compiler': ['py.typed'],
    },
    zip_safe=False,
    python_requires='>=3.10',
    entry_points={
        'console_scripts': [
            'protoc-gen-pybuf = pybuf_compiler.plugin:main',
        ]
    },
    install_requires=[
        'protobuf',
    ],
)
