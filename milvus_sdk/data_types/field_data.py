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

import base64
import math
from typing import Any, Iterable, Iterator

from milvus_sdk.data_types.data_type import DataType, _coerce_data_type
from milvus_sdk.exceptions import MilvusInvalidArgumentException, StatusCode


def _check_scalar(data_type: DataType, value: Any) -> Any:
    if data_type == DataType.BOOL:
        if not isinstance(value, bool):
            raise MilvusInvalidArgumentException(
                f"Value {value!r} is not valid for a {data_type.value} field."
            )
        return value
    if data_type.is_integer:
        # bool is an int subclass, but never an acceptable integer here
        if isinstance(value, bool) or not isinstance(value, int):
            raise MilvusInvalidArgumentException(
                f"Value {value!r} is not valid for a {data_type.value} field."
            )
        lower, upper = data_type.integer_range()
        if not (lower <= value <= upper):
            raise MilvusInvalidArgumentException(
                f"Value {value} is out of range for a {data_type.value} field."
            )
        return value
    if data_type in {DataType.FLOAT, DataType.DOUBLE}:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MilvusInvalidArgumentException(
                f"Value {value!r} is not valid for a {data_type.value} field."
            )
        return float(value)
    if data_type == DataType.VARCHAR:
        if not isinstance(value, str):
            raise MilvusInvalidArgumentException(
                f"Value {value!r} is not valid for a {data_type.value} field."
            )
        return value
    if data_type == DataType.JSON:
        if not isinstance(value, (dict, list, str, int, float, bool)) and (
            value is not None
        ):
            raise MilvusInvalidArgumentException(
                f"Value {value!r} is not JSON-serializable."
            )
        return value
    raise MilvusInvalidArgumentException(f"Unsupported data type {data_type.value}.")


def _check_dense_vector(data_type: DataType, value: Any) -> list[float]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise MilvusInvalidArgumentException(
            f"Value {value!r} is not valid for a {data_type.value} field."
        )
    components = list(value)
    if not components:
        raise MilvusInvalidArgumentException(
            "Vector cannot be empty.", code=StatusCode.VECTOR_IS_EMPTY
        )
    for component in components:
        if isinstance(component, bool) or not isinstance(component, (int, float)):
            raise MilvusInvalidArgumentException(
                f"Vector component {component!r} is not a number."
            )
    return [float(component) for component in components]


def _check_binary_vector(value: Any) -> bytes:
    if isinstance(value, str):
        value = base64.b64decode(value)
    elif isinstance(value, (list, tuple)):
        value = bytes(value)
    if not isinstance(value, (bytes, bytearray)):
        raise MilvusInvalidArgumentException(
            f"Value {value!r} is not valid for a binary vector field."
        )
    if len(value) == 0:
        raise MilvusInvalidArgumentException(
            "Vector cannot be empty.", code=StatusCode.VECTOR_IS_EMPTY
        )
    return bytes(value)


def _check_sparse_vector(value: Any) -> dict[int, float]:
    if not isinstance(value, dict):
        raise MilvusInvalidArgumentException(
            f"Value {value!r} is not valid for a sparse vector field."
        )
    sparse: dict[int, float] = {}
    for index, weight in value.items():
        try:
            int_index = int(index)
        except (TypeError, ValueError):
            raise MilvusInvalidArgumentException(
                f"Sparse vector index {index!r} is not an integer."
            )
        if int_index < 0:
            raise MilvusInvalidArgumentException(
                f"Sparse vector index {int_index} is negative."
            )
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise MilvusInvalidArgumentException(
                f"Sparse vector value {weight!r} is not a number."
            )
        if math.isnan(weight):
            raise MilvusInvalidArgumentException("Sparse vector value is NaN.")
        sparse[int_index] = float(weight)
    return sparse


class FieldData:
    """
    A column of values for one field, tagged by its `DataType`.

    The same class serves every data type: the tag decides how each element
    is validated when it is added and how the column travels on the wire.
    Dense vectors are lists of floats, binary vectors are `bytes`, sparse
    vectors are `{index: value}` dictionaries and Array fields hold lists
    whose elements are validated against `element_type`.

    Attributes:
        name: the field name.
        data_type: the `DataType` tag of the column.
        element_type: for Array fields, the type of the array elements.
        is_dynamic: whether this is the dynamic (`$meta`) field.
        dim: for dense and binary vectors, the dimension established by the
            first element (for binary vectors, in bits).

    Example:
        >>> from milvus_sdk.data_types import DataType, create_field_data
        >>> ages = create_field_data("age", DataType.INT8, [18, 19])
        >>> ages.append(20)
        >>> ages.count
        3
        >>> ages.value(2)
        20
    """

    name: str
    data_type: DataType
    element_type: DataType | None
    is_dynamic: bool
    dim: int | None

    def __init__(
        self,
        name: str,
        data_type: DataType | str,
        values: Iterable[Any] | None = None,
        *,
        element_type: DataType | str | None = None,
        is_dynamic: bool = False,
    ) -> None:
        self.name = name
        self.data_type = _coerce_data_type(data_type)
        self.element_type = (
            _coerce_data_type(element_type) if element_type is not None else None
        )
        if self.data_type == DataType.ARRAY and self.element_type is None:
            raise MilvusInvalidArgumentException(
                f"Array field '{name}' requires an element type."
            )
        self.is_dynamic = is_dynamic
        self.dim = None
        self._values: list[Any] = []
        if values is not None:
            self.extend(values)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name}, "
            f"data_type={self.data_type.value}, count={self.count})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FieldData):
            return all(
                [
                    self.name == other.name,
                    self.data_type == other.data_type,
                    self.element_type == other.element_type,
                    self.is_dynamic == other.is_dynamic,
                    self._values == other._values,
                ]
            )
        else:
            return False

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    @property
    def count(self) -> int:
        """The number of values in the column."""
        return len(self._values)

    @property
    def values(self) -> list[Any]:
        """A shallow copy of the column values."""
        return list(self._values)

    def value(self, index: int) -> Any:
        """Return the value at a given position (negative indices allowed)."""
        try:
            return self._values[index]
        except IndexError:
            raise MilvusInvalidArgumentException(
                f"Index {index} out of range for field '{self.name}' "
                f"({self.count} values)."
            )

    def _check_element(self, value: Any) -> Any:
        if self.data_type.is_dense_vector:
            vector = _check_dense_vector(self.data_type, value)
            self._check_dim(len(vector))
            return vector
        if self.data_type == DataType.BINARY_VECTOR:
            bvector = _check_binary_vector(value)
            self._check_dim(len(bvector) * 8)
            return bvector
        if self.data_type == DataType.SPARSE_FLOAT_VECTOR:
            return _check_sparse_vector(value)
        if self.data_type == DataType.ARRAY:
            if not isinstance(value, (list, tuple)):
                raise MilvusInvalidArgumentException(
                    f"Value {value!r} is not valid for Array field '{self.name}'."
                )
            assert self.element_type is not None
            element_type = self.element_type
            return [_check_scalar(element_type, item) for item in value]
        return _check_scalar(self.data_type, value)

    def _check_dim(self, dim: int) -> None:
        if self.dim is None:
            self.dim = dim
        elif self.dim != dim:
            raise MilvusInvalidArgumentException(
                f"Vector dimension {dim} differs from the dimension {self.dim} "
                f"of field '{self.name}'.",
                code=StatusCode.DIMENSION_NOT_EQUAL,
            )

    def append(self, value: Any) -> None:
        """
        Validate a value against the data type and add it to the column.

        Raises:
            MilvusInvalidArgumentException: if the value does not fit the type.
                Vectors of a different dimension than the ones already in the
                column carry the `DIMENSION_NOT_EQUAL` code, empty vectors
                the `VECTOR_IS_EMPTY` code.
        """
        self._values.append(self._check_element(value))

    def extend(self, values: Iterable[Any]) -> None:
        """Validate and add several values. Nothing is added if any is invalid."""
        checked: list[Any] = []
        previous_dim = self.dim
        try:
            for value in values:
                checked.append(self._check_element(value))
        except MilvusInvalidArgumentException:
            self.dim = previous_dim
            raise
        self._values.extend(checked)

    def slice(self, start: int, stop: int | None = None) -> FieldData:
        """Return a new column with the values in [start, stop)."""
        sliced = FieldData(
            self.name,
            self.data_type,
            element_type=self.element_type,
            is_dynamic=self.is_dynamic,
        )
        sliced._values = self._values[start:stop]
        sliced.dim = self.dim if sliced._values else None
        return sliced

    def take(self, indices: Iterable[int]) -> FieldData:
        """Return a new column with the values at the given positions, in order."""
        taken = self.slice(0, 0)
        taken._values = [self._values[index] for index in indices]
        taken.dim = self.dim if taken._values else None
        return taken

    def to_wire(self) -> dict[str, Any]:
        """Express the column as a field column of the wire protocol."""
        data: list[Any]
        if self.data_type == DataType.BINARY_VECTOR:
            data = [base64.b64encode(value).decode() for value in self._values]
        elif self.data_type == DataType.SPARSE_FLOAT_VECTOR:
            data = [
                {str(index): weight for index, weight in value.items()}
                for value in self._values
            ]
        else:
            data = list(self._values)
        return {
            k: v
            for k, v in {
                "name": self.name,
                "type": self.data_type.value,
                "data": data,
                "elementType": (
                    self.element_type.value if self.element_type else None
                ),
                "isDynamic": True if self.is_dynamic else None,
            }.items()
            if v is not None
        }

    @staticmethod
    def from_wire(raw_column: dict[str, Any]) -> FieldData:
        """
        Build a column from its wire form, e.g.
        `{"name": "age", "type": "Int8", "data": [18, 19]}`.
        """
        if "name" not in raw_column or "type" not in raw_column:
            raise MilvusInvalidArgumentException(
                f"Field column lacks a name or a type: {raw_column}."
            )
        return FieldData(
            raw_column["name"],
            raw_column["type"],
            raw_column.get("data") or [],
            element_type=raw_column.get("elementType"),
            is_dynamic=bool(raw_column.get("isDynamic")),
        )


def create_field_data(
    name: str,
    data_type: DataType | str,
    values: Iterable[Any] | None = None,
    *,
    element_type: DataType | str | None = None,
    is_dynamic: bool = False,
) -> FieldData:
    """
    Create a column of the given data type, optionally filled with values.

    Args:
        name: the field name.
        data_type: a `DataType` or its wire name (e.g. "FloatVector").
        values: initial values, each validated against the data type.
        element_type: the element type, required for Array fields.
        is_dynamic: whether the column is the dynamic field.

    Returns:
        a `FieldData` instance.
    """
    return FieldData(
        name,
        data_type,
        values,
        element_type=element_type,
        is_dynamic=is_dynamic,
    )
