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

from abc import ABC
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

import deprecation

from milvus_sdk import __version__
from milvus_sdk.constants import PrimaryKeyType, RowType
from milvus_sdk.data_types import FieldData
from milvus_sdk.exceptions import (
    MilvusFieldNotFoundException,
    MilvusInvalidArgumentException,
)
from milvus_sdk.settings.defaults import (
    COUNT_FIELD_NAME,
    GET_FIELD_BY_NAME_DEPRECATION_NOTICE,
    SCORE_FIELD_NAME,
)


def _project_rows(
    columns: Sequence[FieldData], row_count: int, leading: Sequence[tuple[str, list[Any]]]
) -> list[RowType]:
    """
    Zip columns into rows, keeping the positional correspondence.
    The keys of the dynamic field are merged into each row, without
    overwriting the declared fields.
    """
    rows: list[RowType] = []
    for row_index in range(row_count):
        row: RowType = {name: values[row_index] for name, values in leading}
        dynamic_values: dict[str, Any] = {}
        for column in columns:
            value = column.value(row_index)
            if column.is_dynamic and isinstance(value, dict):
                dynamic_values.update(value)
            else:
                row[column.name] = value
        for key, value in dynamic_values.items():
            row.setdefault(key, value)
        rows.append(row)
    return rows


def _concat_columns(
    columns: Sequence[FieldData], other_columns: Sequence[FieldData]
) -> list[FieldData]:
    if not columns:
        return [column.slice(0) for column in other_columns]
    if not other_columns:
        return [column.slice(0) for column in columns]
    if [col.name for col in columns] != [col.name for col in other_columns]:
        raise MilvusInvalidArgumentException(
            "Cannot concatenate results with different output fields."
        )
    joined: list[FieldData] = []
    for column, other_column in zip(columns, other_columns):
        joined_column = column.slice(0)
        joined_column.extend(other_column)
        joined.append(joined_column)
    return joined


class QueryResults:
    """
    One page of results from a query: a set of columns, one per output field,
    all with the same number of values.

    Columns are accessed by name with `output_field`, rows are materialized
    as dictionaries with `rows` or `row`.

    Attributes:
        fields: the list of `FieldData` columns.

    Example:
        >>> page = client.query(
        ...     QueryArguments("my_coll").set_filter("age > 30").add_output_field("age")
        ... )
        >>> page.output_field("age").values
        [31, 45]
        >>> page.rows()
        [{'id': 1, 'age': 31}, {'id': 7, 'age': 45}]
    """

    fields: list[FieldData]

    def __init__(self, fields: Sequence[FieldData] | None = None) -> None:
        self.fields = list(fields or [])

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(output_fields={self.output_fields}, "
            f"rows={len(self)})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, QueryResults):
            return self.fields == other.fields
        else:
            return False

    def __len__(self) -> int:
        return self.fields[0].count if self.fields else 0

    @property
    def output_fields(self) -> list[str]:
        """The names of the columns in this result."""
        return [column.name for column in self.fields]

    def output_field(self, name: str) -> FieldData:
        """
        Return the column for a given field name.

        Raises:
            MilvusFieldNotFoundException: if no such column is in the result.
        """
        for column in self.fields:
            if column.name == name:
                return column
        raise MilvusFieldNotFoundException(name)

    @deprecation.deprecated(  # type: ignore[misc]
        deprecated_in="2.5.0",
        removed_in="3.0.0",
        current_version=__version__,
        details=GET_FIELD_BY_NAME_DEPRECATION_NOTICE,
    )
    def get_field_by_name(self, name: str) -> FieldData:
        """Return the column for a given field name. Deprecated."""
        return self.output_field(name)

    @property
    def row_count(self) -> int:
        """
        The number of rows; for a `count(*)` query, the counted number of
        entities reported by the server.
        """
        for column in self.fields:
            if column.name == COUNT_FIELD_NAME and column.count > 0:
                return int(column.value(0))
        return len(self)

    def rows(self) -> list[RowType]:
        """Materialize the result as a list of dictionaries, one per row."""
        return _project_rows(self.fields, len(self), [])

    def row(self, index: int) -> RowType:
        """Materialize the row at a given position."""
        if not (-len(self) <= index < len(self)):
            raise MilvusInvalidArgumentException(
                f"Row index {index} out of range ({len(self)} rows)."
            )
        return self.slice(index, (index + 1) or None).rows()[0]

    def slice(self, start: int, stop: int | None = None) -> QueryResults:
        """Return a new result with the rows in [start, stop)."""
        return QueryResults([column.slice(start, stop) for column in self.fields])

    def concat(self, other: QueryResults) -> QueryResults:
        """Return a new result with the rows of this result followed by the other's."""
        return QueryResults(_concat_columns(self.fields, other.fields))


class SingleResult:
    """
    The results of a search for one target vector: the ids and scores of the
    matched entities, best first, plus the requested output fields.

    Attributes:
        primary_key_name: the name of the primary-key field, used as key for
            the ids in materialized rows.
        ids: the primary keys of the matches.
        scores: the similarity scores (or distances) of the matches.
        fields: the `FieldData` columns of the output fields.
    """

    primary_key_name: str
    ids: list[PrimaryKeyType]
    scores: list[float]
    fields: list[FieldData]

    def __init__(
        self,
        primary_key_name: str,
        ids: Sequence[PrimaryKeyType] | None = None,
        scores: Sequence[float] | None = None,
        fields: Sequence[FieldData] | None = None,
    ) -> None:
        self.primary_key_name = primary_key_name
        self.ids = list(ids or [])
        self.scores = [float(score) for score in scores or []]
        self.fields = list(fields or [])
        if len(self.ids) != len(self.scores):
            raise MilvusInvalidArgumentException(
                f"Search result has {len(self.ids)} ids but "
                f"{len(self.scores)} scores."
            )
        for column in self.fields:
            if column.count != len(self.ids):
                raise MilvusInvalidArgumentException(
                    f"Search result has {len(self.ids)} ids but field "
                    f"'{column.name}' has {column.count} values."
                )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(primary_key_name={self.primary_key_name}, "
            f"output_fields={self.output_fields}, rows={len(self)})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, SingleResult):
            return all(
                [
                    self.primary_key_name == other.primary_key_name,
                    self.ids == other.ids,
                    self.scores == other.scores,
                    self.fields == other.fields,
                ]
            )
        else:
            return False

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def row_count(self) -> int:
        return len(self.ids)

    @property
    def output_fields(self) -> list[str]:
        return [column.name for column in self.fields]

    def output_field(self, name: str) -> FieldData:
        """
        Return the column for a given output field.

        Raises:
            MilvusFieldNotFoundException: if no such column is in the result.
        """
        for column in self.fields:
            if column.name == name:
                return column
        raise MilvusFieldNotFoundException(name)

    def rows(self) -> list[RowType]:
        """
        Materialize the result as a list of dictionaries, one per match, with
        the id under the primary-key name and the score under "score".
        """
        return _project_rows(
            self.fields,
            len(self),
            [(self.primary_key_name, self.ids), (SCORE_FIELD_NAME, self.scores)],
        )

    def row(self, index: int) -> RowType:
        if not (-len(self) <= index < len(self)):
            raise MilvusInvalidArgumentException(
                f"Row index {index} out of range ({len(self)} rows)."
            )
        return self.slice(index, (index + 1) or None).rows()[0]

    def slice(self, start: int, stop: int | None = None) -> SingleResult:
        """Return a new result with the matches in [start, stop)."""
        return SingleResult(
            self.primary_key_name,
            self.ids[start:stop],
            self.scores[start:stop],
            [column.slice(start, stop) for column in self.fields],
        )

    def take(self, indices: Sequence[int]) -> SingleResult:
        """Return a new result with the matches at the given positions, in order."""
        return SingleResult(
            self.primary_key_name,
            [self.ids[index] for index in indices],
            [self.scores[index] for index in indices],
            [column.take(indices) for column in self.fields],
        )

    def concat(self, other: SingleResult) -> SingleResult:
        """Return a new result with the matches of this result followed by the other's."""
        return SingleResult(
            self.primary_key_name,
            self.ids + other.ids,
            self.scores + other.scores,
            _concat_columns(self.fields, other.fields),
        )


@dataclass
class SearchResults:
    """
    The results of a search, one `SingleResult` per target vector,
    in the order of the target vectors.

    Attributes:
        results: the list of `SingleResult` objects.
        session_ts: the consistency timestamp reported by the server, if any.
    """

    results: list[SingleResult]
    session_ts: int | None = None

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> SingleResult:
        return self.results[index]

    def __iter__(self) -> Iterator[SingleResult]:
        return iter(self.results)


@dataclass
class OperationResult(ABC):
    """
    Class that represents the generic result of a data-manipulation operation.

    Attributes:
        raw_results: the "data" of the response from the server.
    """

    raw_results: dict[str, Any]

    def _piecewise_repr(self, pieces: list[str | None]) -> str:
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"


def _ids_repr(ids: list[Any]) -> str:
    if len(ids) > 5:
        return f"[{', '.join(str(_iid) for _iid in ids[:5])} ... ({len(ids)} total)]"
    return str(ids)


@dataclass
class InsertResult(OperationResult):
    """
    Class that represents the result of an insert operation.

    Attributes:
        raw_results: the "data" of the response from the server.
        insert_count: the number of inserted rows.
        ids: the primary keys of the inserted rows (including generated ones).
    """

    insert_count: int
    ids: list[PrimaryKeyType]

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"insert_count={self.insert_count}",
                f"ids={_ids_repr(self.ids)}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class UpsertResult(OperationResult):
    """
    Class that represents the result of an upsert operation.

    Attributes:
        raw_results: the "data" of the response from the server.
        upsert_count: the number of upserted rows.
        ids: the primary keys of the upserted rows.
    """

    upsert_count: int
    ids: list[PrimaryKeyType]

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"upsert_count={self.upsert_count}",
                f"ids={_ids_repr(self.ids)}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class DeleteResult(OperationResult):
    """
    Class that represents the result of a delete operation.

    Attributes:
        raw_results: the "data" of the response from the server.
        delete_count: the number of deleted rows.
    """

    delete_count: int

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"delete_count={self.delete_count}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )
