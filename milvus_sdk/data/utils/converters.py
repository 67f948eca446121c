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
from typing import Any, Iterable, Sequence

from milvus_sdk.constants import PrimaryKeyType, RowType
from milvus_sdk.data_types import DataType, FieldData
from milvus_sdk.exceptions import (
    MilvusInvalidArgumentException,
    UnexpectedServerResponseException,
)


def preprocess_payload_value(value: Any) -> Any:
    """
    Make a value JSON-ready for the wire: `bytes` (binary vectors) become
    base64 strings, integer keys (sparse vectors) become strings, tuples lists.
    """

    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode()
    elif isinstance(value, dict):
        return {str(k): preprocess_payload_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [preprocess_payload_value(item) for item in value]
    else:
        return value


def preprocess_rows(rows: Iterable[RowType]) -> list[RowType]:
    """Normalize the rows to write into their wire form."""

    normalized_rows: list[RowType] = []
    for row in rows:
        if not isinstance(row, dict):
            raise MilvusInvalidArgumentException(
                f"Rows must be dictionaries, got {type(row).__name__}."
            )
        normalized_rows.append(
            {key: preprocess_payload_value(value) for key, value in row.items()}
        )
    return normalized_rows


def columns_to_rows(columns: Sequence[FieldData]) -> list[RowType]:
    """
    Zip a set of columns into rows. All columns must have the same length.
    The keys of a dynamic column are merged into the rows they belong to.
    """

    if not columns:
        return []
    counts = {column.count for column in columns}
    if len(counts) > 1:
        raise MilvusInvalidArgumentException(
            "Columns have different numbers of values: "
            + ", ".join(f"{column.name}={column.count}" for column in columns)
        )
    names = [column.name for column in columns]
    if len(set(names)) != len(names):
        raise MilvusInvalidArgumentException("Duplicate column names.")
    row_count = counts.pop()
    rows: list[RowType] = [{} for _ in range(row_count)]
    for column in columns:
        for row, value in zip(rows, column):
            if column.is_dynamic and isinstance(value, dict):
                row.update(value)
            else:
                row[column.name] = value
    return rows


def encode_search_vector(vector: Any) -> Any:
    """Express a target vector (dense, binary or sparse) for a search payload."""

    if isinstance(vector, (bytes, bytearray)):
        return base64.b64encode(bytes(vector)).decode()
    elif isinstance(vector, dict):
        return {str(k): float(v) for k, v in vector.items()}
    else:
        return [float(x) for x in vector]


def parse_columns(
    raw_columns: Any, raw_response: dict[str, Any] | None = None
) -> list[FieldData]:
    """
    Turn the field columns of a query/search response into `FieldData`
    objects, checking they all have the same number of values.
    """

    if raw_columns is None:
        return []
    if not isinstance(raw_columns, list):
        raise UnexpectedServerResponseException(
            text="Faulty response: 'fields' is not a list.",
            raw_response=raw_response,
        )
    columns: list[FieldData] = []
    try:
        for raw_column in raw_columns:
            columns.append(FieldData.from_wire(raw_column))
    except MilvusInvalidArgumentException as exc:
        raise UnexpectedServerResponseException(
            text=f"Faulty response: unparseable field column ({exc}).",
            raw_response=raw_response,
        ) from exc
    if len({column.count for column in columns}) > 1:
        raise UnexpectedServerResponseException(
            text="Faulty response: field columns have different lengths.",
            raw_response=raw_response,
        )
    return columns


def coerce_primary_key(value: Any, pk_type: DataType | None) -> PrimaryKeyType:
    """
    Bring a primary key to the Python type of its declared field type:
    `int` for integer fields, `str` otherwise. With no declared type,
    the value is returned as is.

    Raises:
        ValueError: if an integer primary key cannot be read as such.
    """

    if pk_type is None:
        return value
    if pk_type.is_integer:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"not an integer primary key: {value!r}")
        return int(value)
    return str(value)


def format_filter_value(
    value: PrimaryKeyType, pk_type: DataType | None = None
) -> str:
    """
    Render a primary key as a literal of the filter expression language.
    When the declared type of the field is given, it decides the quoting.
    """

    if pk_type is not None:
        value = coerce_primary_key(value, pk_type)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    return str(value)


def pk_list_filter(
    pk_name: str,
    ids: Iterable[PrimaryKeyType],
    *,
    negate: bool = False,
    pk_type: DataType | None = None,
) -> str:
    """
    Build `pk in [...]` (or `pk not in [...]`) for the given ids,
    e.g. `id not in [3, 5]` or `name in ['a', 'b']`.
    """

    operator = "not in" if negate else "in"
    literals = ", ".join(format_filter_value(pk, pk_type) for pk in ids)
    return f"{pk_name} {operator} [{literals}]"


def combine_filters(*filters: str | None) -> str:
    """AND-combine the non-empty filter expressions."""

    non_empty = [flt for flt in filters if flt]
    if len(non_empty) <= 1:
        return non_empty[0] if non_empty else ""
    return " and ".join(f"({flt})" for flt in non_empty)

