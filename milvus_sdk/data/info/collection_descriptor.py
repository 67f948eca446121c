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

from dataclasses import dataclass, field
from typing import Any

from milvus_sdk.data.info.collection_schema import CollectionSchema, FieldSchema
from milvus_sdk.utils.parsing import _warn_residual_keys


def _properties_to_dict(raw_properties: Any) -> dict[str, str]:
    if not raw_properties:
        return {}
    if isinstance(raw_properties, dict):
        return dict(raw_properties)
    return {prop["key"]: prop["value"] for prop in raw_properties}


@dataclass
class CollectionDescriptor:
    """
    The description of an existing collection, as returned by
    `MilvusClient.describe_collection`.

    Attributes:
        name: the collection name.
        collection_id: the server-assigned collection ID.
        schema: a `CollectionSchema` with the field definitions.
        num_shards: the number of shards.
        num_partitions: the number of partitions.
        consistency_level: the default consistency level of the collection.
        load_state: the load state, e.g. "LoadStateLoaded".
        aliases: the aliases of the collection.
        properties: the collection properties.
        indexes: a list of `{"fieldName", "indexName", "metricType"}` items.
    """

    name: str
    collection_id: int | None
    schema: CollectionSchema
    num_shards: int | None = None
    num_partitions: int | None = None
    consistency_level: str | None = None
    load_state: str | None = None
    aliases: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    indexes: list[dict[str, Any]] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name}, "
            f"fields={[fsc.name for fsc in self.schema.fields]})"
        )

    def primary_field(self) -> FieldSchema | None:
        """Return the primary-key field of the collection, if any."""
        return self.schema.primary_field()

    def metric_type(self, field_name: str | None = None) -> str | None:
        """
        Return the metric type of the index on a vector field, if known.
        With no field name, the first indexed field is considered.
        """
        for index in self.indexes:
            if field_name is None or index.get("fieldName") == field_name:
                return index.get("metricType")
        return None

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> CollectionDescriptor:
        """
        Create an instance of CollectionDescriptor from the "data" of a
        `collections/describe` response.
        """

        _warn_residual_keys(
            cls,
            raw_dict,
            {
                "collectionName",
                "collectionID",
                "description",
                "autoId",
                "enableDynamicField",
                "fields",
                "functions",
                "indexes",
                "load",
                "shardsNum",
                "partitionsNum",
                "consistencyLevel",
                "aliases",
                "properties",
            },
        )
        return CollectionDescriptor(
            name=raw_dict["collectionName"],
            collection_id=raw_dict.get("collectionID"),
            schema=CollectionSchema._from_dict(raw_dict),
            num_shards=raw_dict.get("shardsNum"),
            num_partitions=raw_dict.get("partitionsNum"),
            consistency_level=raw_dict.get("consistencyLevel"),
            load_state=raw_dict.get("load"),
            aliases=list(raw_dict.get("aliases") or []),
            properties=_properties_to_dict(raw_dict.get("properties")),
            indexes=list(raw_dict.get("indexes") or []),
        )


@dataclass
class IndexDescriptor:
    """
    The description of an index, as returned by `MilvusClient.describe_index`.

    Attributes:
        index_name: the index name.
        field_name: the name of the indexed field.
        index_type: the index type, e.g. "HNSW".
        metric_type: the metric type, for vector indexes.
        params: the index build parameters.
        index_state: the build state, e.g. "Finished".
        indexed_rows: the number of rows indexed so far.
        total_rows: the number of rows to index.
        pending_rows: the number of rows waiting to be indexed.
        fail_reason: the reason of a failed build, if any.
    """

    index_name: str
    field_name: str
    index_type: str | None = None
    metric_type: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    index_state: str | None = None
    indexed_rows: int | None = None
    total_rows: int | None = None
    pending_rows: int | None = None
    fail_reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Recast this object into the "indexParams" item of an index creation."""

        return {
            k: v
            for k, v in {
                "fieldName": self.field_name,
                "indexName": self.index_name,
                "indexType": self.index_type,
                "metricType": self.metric_type,
                "params": self.params or None,
            }.items()
            if v is not None
        }

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> IndexDescriptor:
        """
        Create an instance of IndexDescriptor from an item of the "data"
        of an `indexes/describe` response.
        """

        _warn_residual_keys(
            cls,
            raw_dict,
            {
                "indexName",
                "fieldName",
                "indexType",
                "metricType",
                "params",
                "indexState",
                "indexedRows",
                "totalRows",
                "pendingRows",
                "failReason",
            },
        )
        return IndexDescriptor(
            index_name=raw_dict["indexName"],
            field_name=raw_dict["fieldName"],
            index_type=raw_dict.get("indexType"),
            metric_type=raw_dict.get("metricType"),
            params=dict(raw_dict.get("params") or {}),
            index_state=raw_dict.get("indexState"),
            indexed_rows=raw_dict.get("indexedRows"),
            total_rows=raw_dict.get("totalRows"),
            pending_rows=raw_dict.get("pendingRows"),
            fail_reason=raw_dict.get("failReason") or None,
        )


@dataclass
class PartitionInfo:
    """
    Statistics about a partition, as returned by
    `MilvusClient.get_partition_stats`.

    Attributes:
        name: the partition name.
        row_count: the number of rows in the partition.
    """

    name: str
    row_count: int
