# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import re
from os import path

from setuptools import find_namespace_packages, setup

this_directory = path.abspath(path.dirname(__file__))
with open(path.join(this_directory, "README.MD"), encoding="utf-8") as f:
    long_description = f.read()

# the package imports its dependencies, so the version is read as text
with open(path.join(this_directory, "milvus_sdk", "__init__.py"), encoding="utf-8") as f:
    __version__ = re.search(r'__version__: str = "([^"]+)"', f.read()).group(1)

install_requires = [
    req_line.strip()
    for req_line in open(path.join(this_directory, "requirements.txt")).readlines()
    if req_line.strip() != ""
    if req_line.strip()[0] != "#"
    if "-e ." not in req_line
]

setup(
    name="milvus-sdk-py",
    packages=find_namespace_packages(include=["milvus_sdk", "milvus_sdk.*"]),
    package_data={"milvus_sdk": ["py.typed"]},
    version=__version__,
    license="Apache license 2.0",
    description="A Pythonic client SDK for the Milvus vector database",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=["Milvus", "vector database", "vector search"],
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-httpserver>=1.0",
            "werkzeug",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
