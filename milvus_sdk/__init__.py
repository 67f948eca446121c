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

from __future__ import annotations

__version__: str = "2.6.0"


import milvus_sdk.constants  # noqa: E402
import milvus_sdk.cursors  # noqa: F401, E402
from milvus_sdk.arguments import (  # noqa: E402
    QueryArguments,
    QueryIteratorArguments,
    SearchArguments,
    SearchIteratorArguments,
)
from milvus_sdk.client import MilvusClient  # noqa: E402
from milvus_sdk.data_types import DataType, FieldData, create_field_data  # noqa: E402
from milvus_sdk.info import CollectionSchema, FieldSchema  # noqa: E402
from milvus_sdk.utils.api_options import (  # noqa: E402
    APIOptions,
    IteratorOptions,
    RetryOptions,
    TimeoutOptions,
)

__all__ = [
    "APIOptions",
    "CollectionSchema",
    "DataType",
    "FieldData",
    "FieldSchema",
    "IteratorOptions",
    "MilvusClient",
    "QueryArguments",
    "QueryIteratorArguments",
    "RetryOptions",
    "SearchArguments",
    "SearchIteratorArguments",
    "TimeoutOptions",
    "__version__",
    "create_field_data",
]


__pdoc__ = {
    "data": False,
    "settings": False,
    "utils": False,
}
