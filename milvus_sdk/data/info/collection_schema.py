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

from milvus_sdk.data_types.data_type import DataType, _coerce_data_type
from milvus_sdk.exceptions import MilvusInvalidArgumentException
from milvus_sdk.utils.parsing import _warn_residual_keys

PRIMARY_KEY_TYPES = {DataType.INT64, DataType.VARCHAR}


def _params_to_dict(raw_params: Any) -> dict[str, Any]:
    """
    Type params come back from `describe` as a list of `{"key", "value"}`
    pairs, with numeric values as strings.
    """
    if raw_params is None:
        return {}
    if isinstance(raw_params, dict):
        return dict(raw_params)
    return {param["key"]: param["value"] for param in raw_params}


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


@dataclass
class FieldSchema:
    """
    The definition of one field of a collection.

    Attributes:
        name: the field name.
        data_type: a `DataType`.
        is_primary_key: whether this is the primary-key field. Exactly one field
            in a collection is the primary key, of type Int64 or VarChar.
        auto_id: for the primary key, whether the server generates the values.
        is_partition_key: whether the field is used as partition key.
        description: a free-form description.
        dim: the dimension, required for dense and binary vector fields.
        max_length: the maximum length, required for VarChar fields (and for
            Array fields of VarChar elements).
        element_type: the type of elements, required for Array fields.
        max_capacity: the maximum number of elements, required for Array fields.
    """

    name: str
    data_type: DataType
    is_primary_key: bool = False
    auto_id: bool = False
    is_partition_key: bool = False
    description: str = ""
    dim: int | None = None
    max_length: int | None = None
    element_type: DataType | None = None
    max_capacity: int | None = None

    def __init__(
        self,
        name: str,
        data_type: DataType | str,
        *,
        is_primary_key: bool = False,
        auto_id: bool = False,
        is_partition_key: bool = False,
        description: str = "",
        dim: int | None = None,
        max_length: int | None = None,
        element_type: DataType | str | None = None,
        max_capacity: int | None = None,
    ) -> None:
        self.name = name
        self.data_type = _coerce_data_type(data_type)
        self.is_primary_key = is_primary_key
        self.auto_id = auto_id
        self.is_partition_key = is_partition_key
        self.description = description
        self.dim = dim
        self.max_length = max_length
        self.element_type = (
            None if element_type is None else _coerce_data_type(element_type)
        )
        self.max_capacity = max_capacity

    def validate(self) -> None:
        """
        Check the field definition is complete and consistent.

        Raises:
            MilvusInvalidArgumentException: with a description of the problem.
        """
        if not self.name:
            raise MilvusInvalidArgumentException("Field name cannot be empty.")
        if self.is_primary_key and self.data_type not in PRIMARY_KEY_TYPES:
            raise MilvusInvalidArgumentException(
                f"Primary key field '{self.name}' must be Int64 or VarChar, "
                f"not {self.data_type.value}."
            )
        if self.auto_id and not self.is_primary_key:
            raise MilvusInvalidArgumentException(
                f"Field '{self.name}' sets auto_id but is not the primary key."
            )
        if self.data_type.is_vector and self.data_type != DataType.SPARSE_FLOAT_VECTOR:
            if self.dim is None or self.dim <= 0:
                raise MilvusInvalidArgumentException(
                    f"Vector field '{self.name}' requires a positive dimension."
                )
            if self.data_type == DataType.BINARY_VECTOR and self.dim % 8 != 0:
                raise MilvusInvalidArgumentException(
                    f"Binary vector field '{self.name}' requires a dimension "
                    "multiple of 8."
                )
        needs_max_length = self.data_type == DataType.VARCHAR or (
            self.data_type == DataType.ARRAY and self.element_type == DataType.VARCHAR
        )
        if needs_max_length and (self.max_length is None or self.max_length <= 0):
            raise MilvusInvalidArgumentException(
                f"Field '{self.name}' requires a positive max_length."
            )
        if self.data_type == DataType.ARRAY:
            if self.element_type is None or self.element_type in {
                DataType.ARRAY,
                DataType.JSON,
            } or self.element_type.is_vector:
                raise MilvusInvalidArgumentException(
                    f"Array field '{self.name}' requires a scalar element type."
                )
            if self.max_capacity is None or self.max_capacity <= 0:
                raise MilvusInvalidArgumentException(
                    f"Array field '{self.name}' requires a positive max_capacity."
                )

    def as_dict(self) -> dict[str, Any]:
        """Recast this object into the dictionary used to create a collection."""

        type_params = {
            k: v
            for k, v in {
                "dim": self.dim,
                "max_length": self.max_length,
                "max_capacity": self.max_capacity,
            }.items()
            if v is not None
        }
        return {
            k: v
            for k, v in {
                "fieldName": self.name,
                "dataType": self.data_type.value,
                "isPrimary": self.is_primary_key or None,
                "autoID": self.auto_id or None,
                "isPartitionKey": self.is_partition_key or None,
                "description": self.description or None,
                "elementDataType": (
                    None if self.element_type is None else self.element_type.value
                ),
                "elementTypeParams": type_params or None,
            }.items()
            if v is not None
        }

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> FieldSchema:
        """
        Create an instance of FieldSchema from a field description
        such as one returned by `collections/describe`.
        """

        _warn_residual_keys(
            cls,
            raw_dict,
            {
                "name",
                "id",
                "type",
                "primaryKey",
                "autoId",
                "partitionKey",
                "clusteringKey",
                "nullable",
                "description",
                "params",
                "elementType",
            },
        )
        params = _params_to_dict(raw_dict.get("params"))
        return FieldSchema(
            name=raw_dict["name"],
            data_type=raw_dict["type"],
            is_primary_key=bool(raw_dict.get("primaryKey")),
            auto_id=bool(raw_dict.get("autoId")),
            is_partition_key=bool(raw_dict.get("partitionKey")),
            description=raw_dict.get("description") or "",
            dim=_optional_int(params.get("dim")),
            max_length=_optional_int(params.get("max_length")),
            element_type=raw_dict.get("elementType"),
            max_capacity=_optional_int(params.get("max_capacity")),
        )


@dataclass
class CollectionSchema:
    """
    The schema of a collection, i.e. its ordered list of fields plus the
    collection-wide settings.

    Fields are added with `add_field`, which modifies the schema in place
    and returns it, so calls can be chained.

    Attributes:
        fields: the list of `FieldSchema` objects.
        description: a free-form description.
        enable_dynamic_field: whether rows can carry keys not declared in the
            schema, stored in the dynamic `$meta` field.

    Example:
        >>> from milvus_sdk.data_types import DataType
        >>> from milvus_sdk.info import CollectionSchema, FieldSchema
        >>> schema = (
        ...     CollectionSchema(enable_dynamic_field=True)
        ...     .add_field(FieldSchema("id", DataType.INT64, is_primary_key=True))
        ...     .add_field(FieldSchema("age", DataType.INT8))
        ...     .add_field(FieldSchema("vector", DataType.FLOAT_VECTOR, dim=4))
        ... )
        >>> schema.primary_field().name
        'id'
    """

    fields: list[FieldSchema] = field(default_factory=list)
    description: str = ""
    enable_dynamic_field: bool = False

    def add_field(self, field_schema: FieldSchema) -> CollectionSchema:
        """Append a field to this schema and return the schema itself."""
        self.fields.append(field_schema)
        return self

    def get_field(self, name: str) -> FieldSchema | None:
        """Return the field with the given name, if any."""
        for field_schema in self.fields:
            if field_schema.name == name:
                return field_schema
        return None

    def primary_field(self) -> FieldSchema | None:
        """Return the primary-key field, if one is defined."""
        for field_schema in self.fields:
            if field_schema.is_primary_key:
                return field_schema
        return None

    @property
    def vector_fields(self) -> list[FieldSchema]:
        return [fsc for fsc in self.fields if fsc.data_type.is_vector]

    @property
    def auto_id(self) -> bool:
        pk_field = self.primary_field()
        return pk_field.auto_id if pk_field is not None else False

    def validate(self) -> None:
        """
        Check that the schema can be used to create a collection: every field
        is valid, names are unique, exactly one primary key and at least one
        vector field are present.

        Raises:
            MilvusInvalidArgumentException: with a description of the problem.
        """
        if not self.fields:
            raise MilvusInvalidArgumentException("Schema has no fields.")
        seen_names: set[str] = set()
        for field_schema in self.fields:
            field_schema.validate()
            if field_schema.name in seen_names:
                raise MilvusInvalidArgumentException(
                    f"Duplicate field name '{field_schema.name}' in schema."
                )
            seen_names.add(field_schema.name)
        primary_fields = [fsc for fsc in self.fields if fsc.is_primary_key]
        if len(primary_fields) != 1:
            raise MilvusInvalidArgumentException(
                "Schema must have exactly one primary key field, "
                f"found {len(primary_fields)}."
            )
        if not self.vector_fields:
            raise MilvusInvalidArgumentException(
                "Schema must have at least one vector field."
            )

    def as_dict(self) -> dict[str, Any]:
        """Recast this object into the dictionary used to create a collection."""

        return {
            k: v
            for k, v in {
                "autoId": self.auto_id,
                "enableDynamicField": self.enable_dynamic_field,
                "description": self.description or None,
                "fields": [fsc.as_dict() for fsc in self.fields],
            }.items()
            if v is not None
        }

    @staticmethod
    def _from_dict(raw_dict: dict[str, Any]) -> CollectionSchema:
        """
        Create an instance of CollectionSchema from the response of
        `collections/describe`. Collection-level keys are left to the
        `CollectionDescriptor` that wraps the schema.
        """

        return CollectionSchema(
            fields=[FieldSchema._from_dict(fdict) for fdict in raw_dict.get("fields") or []],
            description=raw_dict.get("description") or "",
            enable_dynamic_field=bool(raw_dict.get("enableDynamicField")),
        )
