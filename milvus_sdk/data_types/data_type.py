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

from milvus_sdk.exceptions import MilvusInvalidArgumentException
from milvus_sdk.utils.str_enum import StrEnum


class DataType(StrEnum):
    """
    The data types of collection fields. Values are the names used on the wire.
    """

    BOOL = "Bool"
    INT8 = "Int8"
    INT16 = "Int16"
    INT32 = "Int32"
    INT64 = "Int64"
    FLOAT = "Float"
    DOUBLE = "Double"
    VARCHAR = "VarChar"
    ARRAY = "Array"
    JSON = "JSON"
    BINARY_VECTOR = "BinaryVector"
    FLOAT_VECTOR = "FloatVector"
    FLOAT16_VECTOR = "Float16Vector"
    BFLOAT16_VECTOR = "BFloat16Vector"
    SPARSE_FLOAT_VECTOR = "SparseFloatVector"

    @property
    def is_vector(self) -> bool:
        return self in _VECTOR_TYPES

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_RANGES

    @property
    def is_dense_vector(self) -> bool:
        return self in _DENSE_VECTOR_TYPES

    def integer_range(self) -> tuple[int, int]:
        """The (inclusive) bounds of an integer type."""
        return _INTEGER_RANGES[self]


_INTEGER_RANGES = {
    DataType.INT8: (-(2**7), 2**7 - 1),
    DataType.INT16: (-(2**15), 2**15 - 1),
    DataType.INT32: (-(2**31), 2**31 - 1),
    DataType.INT64: (-(2**63), 2**63 - 1),
}

_DENSE_VECTOR_TYPES = {
    DataType.FLOAT_VECTOR,
    DataType.FLOAT16_VECTOR,
    DataType.BFLOAT16_VECTOR,
}

_VECTOR_TYPES = _DENSE_VECTOR_TYPES | {
    DataType.BINARY_VECTOR,
    DataType.SPARSE_FLOAT_VECTOR,
}


def _coerce_data_type(data_type: DataType | str) -> DataType:
    try:
        return DataType.coerce(data_type)
    except ValueError as exc:
        raise MilvusInvalidArgumentException(str(exc)) from exc
