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

"""
Argument objects for the query and search operations and their iterators.

All setters only record values and return the object itself, so calls can be
chained. Nothing is validated at set time: the whole object is validated once,
by the client call (or iterator constructor) that consumes it.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, TypeVar

from milvus_sdk.constants import ConsistencyLevel, MetricType, VectorType
from milvus_sdk.data_types import DataType, FieldData
from milvus_sdk.exceptions import MilvusInvalidArgumentException
from milvus_sdk.settings.defaults import (
    DEFAULT_SEARCH_LIMIT,
    EF,
    MAX_BATCH_SIZE,
    RADIUS,
    RANGE_FILTER,
)

DEFAULT_BATCH_SIZE = 1000

TArgs = TypeVar("TArgs", bound="_DQLArguments")


def _vector_data_type(vector: Any) -> DataType:
    if isinstance(vector, (bytes, bytearray)):
        return DataType.BINARY_VECTOR
    elif isinstance(vector, dict):
        return DataType.SPARSE_FLOAT_VECTOR
    else:
        return DataType.FLOAT_VECTOR


class _DQLArguments:
    """The arguments shared by queries and searches."""

    collection_name: str
    partition_names: list[str]
    output_fields: list[str]
    filter: str
    limit: int | None
    offset: int
    consistency_level: ConsistencyLevel | str | None

    def __init__(
        self,
        collection_name: str = "",
        *,
        partition_names: Iterable[str] | None = None,
        output_fields: Iterable[str] | None = None,
        filter: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        consistency_level: ConsistencyLevel | str | None = None,
    ) -> None:
        self.collection_name = collection_name
        self.partition_names = list(partition_names or [])
        self.output_fields = list(output_fields or [])
        self.filter = filter or ""
        self.limit = limit
        self.offset = offset
        self.consistency_level = consistency_level

    def __repr__(self) -> str:
        pieces = [
            pc
            for pc in (
                f"collection_name={self.collection_name}",
                f"filter={self.filter!r}" if self.filter else None,
                f"output_fields={self.output_fields}" if self.output_fields else None,
                f"limit={self.limit}" if self.limit is not None else None,
                f"offset={self.offset}" if self.offset else None,
            )
            if pc is not None
        ]
        return f"{self.__class__.__name__}({', '.join(pieces)})"

    def copy(self: TArgs) -> TArgs:
        """Return an independent copy of these arguments."""
        return copy.deepcopy(self)

    def set_collection_name(self: TArgs, collection_name: str) -> TArgs:
        self.collection_name = collection_name
        return self

    def add_partition_name(self: TArgs, partition_name: str) -> TArgs:
        self.partition_names.append(partition_name)
        return self

    def set_partition_names(self: TArgs, partition_names: Iterable[str]) -> TArgs:
        self.partition_names = list(partition_names)
        return self

    def add_output_field(self: TArgs, output_field: str) -> TArgs:
        self.output_fields.append(output_field)
        return self

    def set_output_fields(self: TArgs, output_fields: Iterable[str]) -> TArgs:
        self.output_fields = list(output_fields)
        return self

    def set_filter(self: TArgs, filter: str | None) -> TArgs:
        self.filter = filter or ""
        return self

    def set_limit(self: TArgs, limit: int | None) -> TArgs:
        self.limit = limit
        return self

    def set_offset(self: TArgs, offset: int) -> TArgs:
        self.offset = offset
        return self

    def set_consistency_level(
        self: TArgs, consistency_level: ConsistencyLevel | str | None
    ) -> TArgs:
        self.consistency_level = consistency_level
        return self

    def _validate_common(self) -> None:
        if not self.collection_name:
            raise MilvusInvalidArgumentException("Collection name cannot be empty.")
        for partition_name in self.partition_names:
            if not isinstance(partition_name, str) or not partition_name:
                raise MilvusInvalidArgumentException(
                    "Partition names must be non-empty strings."
                )
        for output_field in self.output_fields:
            if not isinstance(output_field, str) or not output_field:
                raise MilvusInvalidArgumentException(
                    "Output field names must be non-empty strings."
                )
        if not isinstance(self.offset, int) or self.offset < 0:
            raise MilvusInvalidArgumentException(
                f"Offset must be a non-negative integer, got {self.offset}."
            )
        if self.consistency_level is not None:
            try:
                ConsistencyLevel.coerce(self.consistency_level)
            except ValueError as exc:
                raise MilvusInvalidArgumentException(str(exc)) from exc


class QueryArguments(_DQLArguments):
    """
    The arguments of a query (`MilvusClient.query`): a filter expression
    selecting the entities and the fields to return.

    Attributes:
        collection_name: the collection to query.
        partition_names: the partitions to query; all partitions if empty.
        output_fields: the fields to return for each entity.
        filter: a boolean expression on the fields, e.g. `"age > 30"`.
        limit: the maximum number of entities to return, or None.
        offset: the number of matching entities to skip.
        consistency_level: overrides the collection consistency level.

    Example:
        >>> args = (
        ...     QueryArguments("my_coll")
        ...     .set_filter("age == 8")
        ...     .add_output_field("name")
        ...     .set_limit(100)
        ... )
    """

    def validate(self) -> None:
        """
        Raises:
            MilvusInvalidArgumentException: if the arguments are unusable.
        """
        self._validate_common()
        if self.limit is not None and (
            not isinstance(self.limit, int) or not (0 < self.limit <= MAX_BATCH_SIZE)
        ):
            raise MilvusInvalidArgumentException(
                f"Limit must be between 1 and {MAX_BATCH_SIZE}, got {self.limit}."
            )


class SearchArguments(_DQLArguments):
    """
    The arguments of a vector search (`MilvusClient.search`).

    Attributes:
        collection_name: the collection to search.
        partition_names: the partitions to search; all partitions if empty.
        output_fields: the fields to return for each match.
        filter: a boolean expression restricting the candidates.
        limit: the number of matches per target vector (top-k). Defaults to 10.
        offset: the number of best matches to skip.
        consistency_level: overrides the collection consistency level.
        anns_field: the vector field to search; may be omitted when the
            collection has a single vector field.
        target_vectors: the query vectors. Each is a list of floats (dense),
            `bytes` (binary) or a `{index: value}` dictionary (sparse).
        metric_type: the similarity metric, e.g. "L2" or "IP".
        radius: for range search, the outer bound of the scores to return.
        range_filter: for range search, the inner bound of the scores.
        extra_params: other search parameters (e.g. `{"ef": 64}` for HNSW).

    Example:
        >>> args = (
        ...     SearchArguments("my_coll")
        ...     .add_target_vector([0.1, 0.2, 0.3, 0.4])
        ...     .set_metric_type("L2")
        ...     .add_extra_param("ef", 64)
        ...     .set_limit(5)
        ... )
    """

    anns_field: str | None
    target_vectors: list[VectorType]
    metric_type: MetricType | str | None
    radius: float | None
    range_filter: float | None
    extra_params: dict[str, Any]

    def __init__(
        self,
        collection_name: str = "",
        *,
        partition_names: Iterable[str] | None = None,
        output_fields: Iterable[str] | None = None,
        filter: str | None = None,
        limit: int | None = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
        consistency_level: ConsistencyLevel | str | None = None,
        anns_field: str | None = None,
        target_vectors: Iterable[VectorType] | None = None,
        metric_type: MetricType | str | None = None,
        radius: float | None = None,
        range_filter: float | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> None:
        _DQLArguments.__init__(
            self,
            collection_name,
            partition_names=partition_names,
            output_fields=output_fields,
            filter=filter,
            limit=limit,
            offset=offset,
            consistency_level=consistency_level,
        )
        self.anns_field = anns_field
        self.target_vectors = list(target_vectors or [])
        self.metric_type = metric_type
        self.radius = radius
        self.range_filter = range_filter
        self.extra_params = dict(extra_params or {})

    def set_anns_field(self, anns_field: str | None) -> SearchArguments:
        self.anns_field = anns_field
        return self

    def add_target_vector(self, vector: VectorType) -> SearchArguments:
        self.target_vectors.append(vector)
        return self

    def set_target_vectors(self, vectors: Iterable[VectorType]) -> SearchArguments:
        self.target_vectors = list(vectors)
        return self

    def set_metric_type(self, metric_type: MetricType | str | None) -> SearchArguments:
        self.metric_type = metric_type
        return self

    def set_radius(self, radius: float | None) -> SearchArguments:
        self.radius = radius
        return self

    def set_range_filter(self, range_filter: float | None) -> SearchArguments:
        self.range_filter = range_filter
        return self

    def add_extra_param(self, key: str, value: Any) -> SearchArguments:
        self.extra_params[key] = value
        return self

    @property
    def ef(self) -> int | None:
        """The HNSW `ef` parameter, if set among the extra params."""
        ef = self.extra_params.get(EF)
        return None if ef is None else int(ef)

    def search_params(self) -> dict[str, Any]:
        """The `searchParams` object of the request payload."""
        params = {
            **self.extra_params,
            **({RADIUS: self.radius} if self.radius is not None else {}),
            **({RANGE_FILTER: self.range_filter} if self.range_filter is not None else {}),
        }
        return {
            k: v
            for k, v in {
                "metricType": (
                    None
                    if self.metric_type is None
                    else MetricType.coerce(self.metric_type).value
                ),
                "params": params or None,
            }.items()
            if v is not None
        }

    def _validate_vectors(self) -> None:
        if not self.target_vectors:
            raise MilvusInvalidArgumentException(
                "At least one target vector is required."
            )
        data_types = {_vector_data_type(vector) for vector in self.target_vectors}
        if len(data_types) > 1:
            raise MilvusInvalidArgumentException(
                "Target vectors must all be of the same kind."
            )
        # the column checks emptiness and dimension consistency
        FieldData(
            self.anns_field or "target_vectors",
            data_types.pop(),
            self.target_vectors,
        )

    def _validate_search_params(self) -> None:
        if self.metric_type is not None:
            try:
                MetricType.coerce(self.metric_type)
            except ValueError as exc:
                raise MilvusInvalidArgumentException(str(exc)) from exc
        for name, value in ((RADIUS, self.radius), (RANGE_FILTER, self.range_filter)):
            if value is not None and (
                isinstance(value, bool) or not isinstance(value, (int, float))
            ):
                raise MilvusInvalidArgumentException(
                    f"Search parameter '{name}' must be a number, got {value!r}."
                )
        if EF in self.extra_params:
            ef = self.extra_params[EF]
            if isinstance(ef, bool) or not isinstance(ef, int) or ef <= 0:
                raise MilvusInvalidArgumentException(
                    f"Search parameter 'ef' must be a positive integer, got {ef!r}."
                )

    def validate(self) -> None:
        """
        Raises:
            MilvusInvalidArgumentException: if the arguments are unusable.
        """
        self._validate_common()
        self._validate_vectors()
        self._validate_search_params()
        if (
            self.limit is None
            or not isinstance(self.limit, int)
            or not (0 < self.limit <= MAX_BATCH_SIZE)
        ):
            raise MilvusInvalidArgumentException(
                f"Limit must be between 1 and {MAX_BATCH_SIZE}, got {self.limit}."
            )


def _validate_batch_size(batch_size: Any) -> None:
    if (
        isinstance(batch_size, bool)
        or not isinstance(batch_size, int)
        or not (0 < batch_size <= MAX_BATCH_SIZE)
    ):
        raise MilvusInvalidArgumentException(
            f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}."
        )


def _validate_iterator_limit(limit: Any) -> None:
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int)):
        raise MilvusInvalidArgumentException(
            f"Limit must be an integer or None, got {limit!r}."
        )


class QueryIteratorArguments(QueryArguments):
    """
    The arguments of a query iterator (`MilvusClient.query_iterator`).

    In addition to those of `QueryArguments`:

    Attributes:
        batch_size: the number of entities per page. Defaults to 1000.
        limit: the overall number of entities to return across all pages;
            None or a negative value means no limit.
        offset: the number of matching entities to skip before the first page.
        reduce_stop_for_best: ask the server to stop reducing results early,
            in which case a page may come back larger than requested (the
            surplus is dropped and fetched again with the next page).
    """

    batch_size: int
    reduce_stop_for_best: bool

    def __init__(
        self,
        collection_name: str = "",
        *,
        partition_names: Iterable[str] | None = None,
        output_fields: Iterable[str] | None = None,
        filter: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        consistency_level: ConsistencyLevel | str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        reduce_stop_for_best: bool = False,
    ) -> None:
        QueryArguments.__init__(
            self,
            collection_name,
            partition_names=partition_names,
            output_fields=output_fields,
            filter=filter,
            limit=limit,
            offset=offset,
            consistency_level=consistency_level,
        )
        self.batch_size = batch_size
        self.reduce_stop_for_best = reduce_stop_for_best

    def set_batch_size(self, batch_size: int) -> QueryIteratorArguments:
        self.batch_size = batch_size
        return self

    def set_reduce_stop_for_best(
        self, reduce_stop_for_best: bool
    ) -> QueryIteratorArguments:
        self.reduce_stop_for_best = reduce_stop_for_best
        return self

    @property
    def bounded_limit(self) -> int | None:
        """The overall limit, or None if unbounded."""
        if self.limit is None or self.limit < 0:
            return None
        return self.limit

    def validate(self) -> None:
        """
        Raises:
            MilvusInvalidArgumentException: if the arguments are unusable.
        """
        self._validate_common()
        _validate_batch_size(self.batch_size)
        _validate_iterator_limit(self.limit)


class SearchIteratorArguments(SearchArguments):
    """
    The arguments of a search iterator (`MilvusClient.search_iterator`).

    Exactly one target vector must be given. In addition to the attributes
    of `SearchArguments`:

    Attributes:
        batch_size: the number of matches per page. Defaults to 1000.
        limit: the overall number of matches to return across all pages;
            None or a negative value means no limit.

    An offset is not accepted: pages are delimited by score boundaries.
    If `radius` is given, iteration stops at that score bound; if
    `range_filter` is given, matches better than it are never returned.
    """

    batch_size: int

    def __init__(
        self,
        collection_name: str = "",
        *,
        partition_names: Iterable[str] | None = None,
        output_fields: Iterable[str] | None = None,
        filter: str | None = None,
        limit: int | None = None,
        consistency_level: ConsistencyLevel | str | None = None,
        anns_field: str | None = None,
        target_vectors: Iterable[VectorType] | None = None,
        metric_type: MetricType | str | None = None,
        radius: float | None = None,
        range_filter: float | None = None,
        extra_params: dict[str, Any] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        SearchArguments.__init__(
            self,
            collection_name,
            partition_names=partition_names,
            output_fields=output_fields,
            filter=filter,
            limit=limit,
            consistency_level=consistency_level,
            anns_field=anns_field,
            target_vectors=target_vectors,
            metric_type=metric_type,
            radius=radius,
            range_filter=range_filter,
            extra_params=extra_params,
        )
        self.batch_size = batch_size

    def set_batch_size(self, batch_size: int) -> SearchIteratorArguments:
        self.batch_size = batch_size
        return self

    @property
    def bounded_limit(self) -> int | None:
        """The overall limit, or None if unbounded."""
        if self.limit is None or self.limit < 0:
            return None
        return self.limit

    def validate(self) -> None:
        """
        Raises:
            MilvusInvalidArgumentException: if the arguments are unusable.
        """
        self._validate_common()
        if self.offset:
            raise MilvusInvalidArgumentException(
                "The search iterator does not support an offset."
            )
        if len(self.target_vectors) != 1:
            raise MilvusInvalidArgumentException(
                "The search iterator requires exactly one target vector, "
                f"got {len(self.target_vectors)}."
            )
        self._validate_vectors()
        self._validate_search_params()
        _validate_batch_size(self.batch_size)
        _validate_iterator_limit(self.limit)
