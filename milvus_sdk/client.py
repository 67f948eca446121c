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

import logging
from types import TracebackType
from typing import Any, Iterable, Sequence

from milvus_sdk.arguments import (
    QueryArguments,
    QueryIteratorArguments,
    SearchArguments,
    SearchIteratorArguments,
)
from milvus_sdk.authentication import TokenProvider
from milvus_sdk.constants import (
    CallerType,
    ConsistencyLevel,
    LoadState,
    PrimaryKeyType,
    RowType,
)
from milvus_sdk.data.cursors.query_engine import _QueryPageEngine, _SearchPageEngine
from milvus_sdk.data.cursors.query_iterator import QueryIterator
from milvus_sdk.data.cursors.search_iterator import SearchIterator
from milvus_sdk.data.utils.converters import (
    columns_to_rows,
    combine_filters,
    pk_list_filter,
    preprocess_rows,
)
from milvus_sdk.data_types import FieldData
from milvus_sdk.exceptions import (
    MilvusInvalidArgumentException,
    MilvusNotConnectedException,
    UnexpectedServerResponseException,
    _select_singlereq_timeout_ca,
    _select_singlereq_timeout_gm,
    _TimeoutContext,
)
from milvus_sdk.info import (
    CollectionDescriptor,
    CollectionSchema,
    FieldSchema,
    IndexDescriptor,
    PartitionInfo,
)
from milvus_sdk.results import (
    DeleteResult,
    InsertResult,
    QueryResults,
    SearchResults,
    UpsertResult,
)
from milvus_sdk.settings.defaults import (
    DEFAULT_DATABASE_NAME,
    DEFAULT_PRIMARY_KEY_NAME,
    DEFAULT_URI,
)
from milvus_sdk.utils.api_commander import APICommander
from milvus_sdk.utils.api_options import APIOptions, FullAPIOptions, defaultAPIOptions
from milvus_sdk.utils.meta import check_deprecated_alias
from milvus_sdk.utils.unset import _UNSET, UnsetType

logger = logging.getLogger(__name__)


def _rows_from_data(data: Iterable[RowType] | Sequence[FieldData]) -> list[RowType]:
    items = list(data)
    if not items:
        raise MilvusInvalidArgumentException("No data to write.")
    if all(isinstance(item, FieldData) for item in items):
        return preprocess_rows(columns_to_rows(items))  # type: ignore[arg-type]
    if any(isinstance(item, FieldData) for item in items):
        raise MilvusInvalidArgumentException(
            "Rows and FieldData columns cannot be mixed."
        )
    return preprocess_rows(items)  # type: ignore[arg-type]


def _data_as_dict(data: Any, command: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise UnexpectedServerResponseException(
            text=f"Faulty response from {command} (no 'data' object).",
            raw_response={"data": data},
        )
    return data


def _data_as_list(data: Any, command: str) -> list[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise UnexpectedServerResponseException(
            text=f"Faulty response from {command} ('data' is not a list).",
            raw_response={"data": data},
        )
    return data


class MilvusClient:
    """
    A client to a vector-database server, over its HTTP/JSON interface.

    The client is created disconnected: `connect()` (or entering it as a
    context manager) opens the channel to the server, `close()` releases it.
    Every operation requires a connected client.

    Args:
        uri: the address of the server, e.g. "http://localhost:19530".
        token: an authentication token, either a string ("user:password"
            works with servers accepting it) or a `TokenProvider`.
        db_name: the database the operations refer to.
        callers: a list of `(name, version)` caller identities, reported
            in the User-Agent header.
        api_options: a specification, complete or partial, of the API Options
            overriding the defaults. This allows for customizing timeouts,
            retries on rate limiting and the search-iterator tuning.

    Example:
        >>> from milvus_sdk import MilvusClient
        >>> with MilvusClient("http://localhost:19530", token="root:Milvus") as client:
        ...     client.list_collections()
        ...
        ['my_coll', 'other_coll']

    Note:
        A client is not safe for use by multiple threads at once.
    """

    api_options: FullAPIOptions
    uri: str
    db_name: str

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        *,
        token: str | TokenProvider | UnsetType = _UNSET,
        db_name: str = DEFAULT_DATABASE_NAME,
        callers: Sequence[CallerType] | UnsetType = _UNSET,
        api_options: APIOptions | None | UnsetType = _UNSET,
    ) -> None:
        arg_api_options = APIOptions(
            callers=callers,
            token=token,
        )
        self.api_options = (
            defaultAPIOptions().with_override(api_options).with_override(arg_api_options)
        )
        self.uri = uri.rstrip("/")
        self.db_name = db_name
        self._api_commander: APICommander | None = None

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(uri="{self.uri}", db_name="{self.db_name}", '
            f"connected={self.is_connected}, {self.api_options})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, MilvusClient):
            return all(
                [
                    self.uri == other.uri,
                    self.db_name == other.db_name,
                    self.api_options == other.api_options,
                ]
            )
        else:
            return False

    def __enter__(self) -> MilvusClient:
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        self.close()

    def _get_api_commander(self) -> APICommander:
        if self._api_commander is None or self._api_commander.is_closed:
            raise MilvusNotConnectedException()
        return self._api_commander

    def _copy(
        self,
        *,
        db_name: str | None = None,
        token: str | TokenProvider | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> MilvusClient:
        arg_api_options = APIOptions(token=token)
        final_api_options = self.api_options.with_override(api_options).with_override(
            arg_api_options
        )
        return MilvusClient(
            self.uri,
            db_name=db_name if db_name is not None else self.db_name,
            api_options=final_api_options,
        )

    def with_options(
        self,
        *,
        token: str | TokenProvider | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> MilvusClient:
        """
        Create a clone of this client with some changed attributes.
        The clone is connected if this client is.

        Args:
            token: an authentication token, either a string or a `TokenProvider`.
            api_options: any additional options to set for the clone, in the form
                of an APIOptions instance (where one can set just the needed
                attributes). In case the same setting is also provided as named
                parameter, the latter takes precedence.

        Returns:
            a new MilvusClient instance.

        Example:
            >>> fast_client = client.with_options(
            ...     api_options=APIOptions(
            ...         timeout_options=TimeoutOptions(request_timeout_ms=2000),
            ...     ),
            ... )
        """

        new_client = self._copy(token=token, api_options=api_options)
        if self.is_connected:
            new_client.connect()
        return new_client

    @property
    def is_connected(self) -> bool:
        return self._api_commander is not None and not self._api_commander.is_closed

    def connect(self) -> None:
        """
        Open the channel to the server. No request is issued: use
        `check_health` to verify the server is reachable.
        Connecting an already-connected client has no effect.
        """
        if self.is_connected:
            return
        logger.info(f"connecting to {self.uri}, database '{self.db_name}'")
        self._api_commander = APICommander(
            api_endpoint=self.uri,
            db_name=self.db_name,
            headers={
                **self.api_options.additional_headers,
                **self.api_options.token.get_headers(),
            },
            callers=self.api_options.callers,
            redacted_header_names=self.api_options.redacted_header_names,
            retry_options=self.api_options.retry_options,
        )

    def close(self) -> None:
        """Release the channel to the server. Closing twice is harmless."""
        if self._api_commander is not None:
            logger.info(f"closing the connection to {self.uri}")
            self._api_commander.close()
            self._api_commander = None

    def _gm_timeout(
        self, request_timeout_ms: int | None, timeout_ms: int | None
    ) -> _TimeoutContext:
        _timeout_ms, _timeout_label = _select_singlereq_timeout_gm(
            timeout_options=self.api_options.timeout_options,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        return _TimeoutContext(request_ms=_timeout_ms, label=_timeout_label)

    def _ca_timeout(
        self, request_timeout_ms: int | None, timeout_ms: int | None
    ) -> _TimeoutContext:
        _timeout_ms, _timeout_label = _select_singlereq_timeout_ca(
            timeout_options=self.api_options.timeout_options,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        return _TimeoutContext(request_ms=_timeout_ms, label=_timeout_label)

    def _call(
        self,
        resource: str,
        action: str,
        payload: dict[str, Any],
        timeout_context: _TimeoutContext,
    ) -> Any:
        """Issue one request and return the "data" of the response."""
        api_commander = self._get_api_commander()
        logger.info(f"{resource}/{action}")
        response = api_commander.request(
            resource=resource,
            action=action,
            payload=payload,
            timeout_context=timeout_context,
        )
        logger.info(f"finished {resource}/{action}")
        return response.get("data")

    # server and databases

    def check_health(
        self,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> bool:
        """
        Ask the server whether it is healthy.

        Returns:
            True if the server reports itself healthy. Reasons for an
            unhealthy state are logged.
        """
        data = _data_as_dict(
            self._call(
                "server",
                "check_health",
                {},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "check_health",
        )
        is_healthy = bool(data.get("isHealthy"))
        if not is_healthy:
            logger.warning(f"server not healthy: {data.get('reasons')}")
        return is_healthy

    def get_server_version(
        self,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> str:
        """Return the version string of the server."""
        data = _data_as_dict(
            self._call(
                "server",
                "get_version",
                {},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "get_version",
        )
        return str(data.get("version"))

    def use_database(self, db_name: str) -> None:
        """
        Switch the database all subsequent operations refer to.
        The database is not checked for existence.
        """
        if not db_name:
            raise MilvusInvalidArgumentException("Database name cannot be empty.")
        logger.info(f"switching to database '{db_name}'")
        self.db_name = db_name
        if self._api_commander is not None:
            old_commander = self._api_commander
            self._api_commander = old_commander._copy(db_name=db_name)
            old_commander.close()

    def create_database(
        self,
        db_name: str,
        *,
        properties: dict[str, Any] | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "databases",
            "create",
            {
                "dbName": db_name,
                **({"properties": properties} if properties else {}),
            },
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def drop_database(
        self,
        db_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "databases",
            "drop",
            {"dbName": db_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def list_databases(
        self,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[str]:
        return _data_as_list(
            self._call(
                "databases", "list", {}, self._gm_timeout(request_timeout_ms, timeout_ms)
            ),
            "list_databases",
        )

    # collections

    def create_collection(
        self,
        collection_name: str,
        schema: CollectionSchema,
        *,
        index_params: Sequence[IndexDescriptor] | None = None,
        num_shards: int | None = None,
        consistency_level: ConsistencyLevel | str | None = None,
        properties: dict[str, Any] | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Create a collection with the given schema.

        Args:
            collection_name: the name of the collection.
            schema: a `CollectionSchema`. It is validated before any request.
            index_params: indexes to build right away on the collection.
            num_shards: the number of shards.
            consistency_level: the default consistency level.
            properties: free-form collection properties.
            request_timeout_ms: a timeout, in milliseconds, for the request.
                If not provided, the client's collection-admin timeout applies.
            timeout_ms: an alias for `request_timeout_ms`.

        Raises:
            MilvusInvalidArgumentException: if the schema is not valid.

        Example:
            >>> schema = (
            ...     CollectionSchema()
            ...     .add_field(FieldSchema("id", DataType.INT64, is_primary_key=True))
            ...     .add_field(FieldSchema("vec", DataType.FLOAT_VECTOR, dim=4))
            ... )
            >>> client.create_collection("my_coll", schema)
        """

        if not collection_name:
            raise MilvusInvalidArgumentException("Collection name cannot be empty.")
        schema.validate()
        params = {
            k: v
            for k, v in {
                "shardsNum": num_shards,
                "consistencyLevel": (
                    None
                    if consistency_level is None
                    else ConsistencyLevel.coerce(consistency_level).value
                ),
                **(properties or {}),
            }.items()
            if v is not None
        }
        cc_payload = {
            "collectionName": collection_name,
            "schema": schema.as_dict(),
            **({"params": params} if params else {}),
            **(
                {"indexParams": [ip.as_dict() for ip in index_params]}
                if index_params
                else {}
            ),
        }
        self._call(
            "collections",
            "create",
            cc_payload,
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def drop_collection(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "collections",
            "drop",
            {"collectionName": collection_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def has_collection(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> bool:
        data = _data_as_dict(
            self._call(
                "collections",
                "has",
                {"collectionName": collection_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "has_collection",
        )
        return bool(data.get("has"))

    def describe_collection(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDescriptor:
        """
        Describe a collection: schema, indexes, load state and properties.

        Returns:
            a `CollectionDescriptor`.
        """
        data = _data_as_dict(
            self._call(
                "collections",
                "describe",
                {"collectionName": collection_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "describe_collection",
        )
        try:
            return CollectionDescriptor._from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise UnexpectedServerResponseException(
                text=f"Faulty response from describe_collection ({exc}).",
                raw_response={"data": data},
            ) from exc

    def list_collections(
        self,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[str]:
        """List the names of the collections of the current database."""
        return _data_as_list(
            self._call(
                "collections",
                "list",
                {},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "list_collections",
        )

    def rename_collection(
        self,
        old_name: str,
        new_name: str,
        *,
        new_db_name: str | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "collections",
            "rename",
            {
                "collectionName": old_name,
                "newCollectionName": new_name,
                **({"newDbName": new_db_name} if new_db_name else {}),
            },
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def load_collection(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Load a collection into memory, making it searchable. The server
        proceeds asynchronously: see `get_load_state`.
        """
        self._call(
            "collections",
            "load",
            {"collectionName": collection_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def release_collection(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "collections",
            "release",
            {"collectionName": collection_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def get_load_state(
        self,
        collection_name: str,
        *,
        partition_names: Iterable[str] | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> LoadState:
        _partition_names = list(partition_names or [])
        data = _data_as_dict(
            self._call(
                "collections",
                "get_load_state",
                {
                    "collectionName": collection_name,
                    **(
                        {"partitionNames": _partition_names}
                        if _partition_names
                        else {}
                    ),
                },
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "get_load_state",
        )
        try:
            return LoadState.coerce(data.get("loadState") or "")
        except ValueError as exc:
            raise UnexpectedServerResponseException(
                text=f"Faulty response from get_load_state ({exc}).",
                raw_response={"data": data},
            ) from exc

    def get_collection_stats(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """
        Return the statistics of a collection.

        Returns:
            a dictionary such as `{"rowCount": 1200}`.
        """
        return _data_as_dict(
            self._call(
                "collections",
                "get_stats",
                {"collectionName": collection_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "get_collection_stats",
        )

    # partitions

    def create_partition(
        self,
        collection_name: str,
        partition_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "partitions",
            "create",
            {"collectionName": collection_name, "partitionName": partition_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def drop_partition(
        self,
        collection_name: str,
        partition_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "partitions",
            "drop",
            {"collectionName": collection_name, "partitionName": partition_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def has_partition(
        self,
        collection_name: str,
        partition_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> bool:
        data = _data_as_dict(
            self._call(
                "partitions",
                "has",
                {"collectionName": collection_name, "partitionName": partition_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "has_partition",
        )
        return bool(data.get("has"))

    def list_partitions(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[str]:
        return _data_as_list(
            self._call(
                "partitions",
                "list",
                {"collectionName": collection_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "list_partitions",
        )

    def load_partitions(
        self,
        collection_name: str,
        partition_names: Iterable[str],
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "partitions",
            "load",
            {
                "collectionName": collection_name,
                "partitionNames": list(partition_names),
            },
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def release_partitions(
        self,
        collection_name: str,
        partition_names: Iterable[str],
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "partitions",
            "release",
            {
                "collectionName": collection_name,
                "partitionNames": list(partition_names),
            },
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def get_partition_stats(
        self,
        collection_name: str,
        partition_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> PartitionInfo:
        data = _data_as_dict(
            self._call(
                "partitions",
                "get_stats",
                {"collectionName": collection_name, "partitionName": partition_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "get_partition_stats",
        )
        return PartitionInfo(name=partition_name, row_count=int(data.get("rowCount", 0)))

    # indexes

    def create_index(
        self,
        collection_name: str,
        index_params: IndexDescriptor | Sequence[IndexDescriptor],
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Build one or more indexes on the fields of a collection.

        Example:
            >>> client.create_index(
            ...     "my_coll",
            ...     IndexDescriptor(
            ...         index_name="vec_idx",
            ...         field_name="vec",
            ...         index_type="HNSW",
            ...         metric_type="L2",
            ...         params={"M": 16, "efConstruction": 200},
            ...     ),
            ... )
        """
        _index_params = (
            [index_params]
            if isinstance(index_params, IndexDescriptor)
            else list(index_params)
        )
        if not _index_params:
            raise MilvusInvalidArgumentException("No index parameters given.")
        self._call(
            "indexes",
            "create",
            {
                "collectionName": collection_name,
                "indexParams": [ip.as_dict() for ip in _index_params],
            },
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def describe_index(
        self,
        collection_name: str,
        index_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> IndexDescriptor:
        data = _data_as_list(
            self._call(
                "indexes",
                "describe",
                {"collectionName": collection_name, "indexName": index_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "describe_index",
        )
        if not data:
            raise UnexpectedServerResponseException(
                text="Faulty response from describe_index (no index description).",
                raw_response={"data": data},
            )
        return IndexDescriptor._from_dict(data[0])

    def drop_index(
        self,
        collection_name: str,
        index_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._call(
            "indexes",
            "drop",
            {"collectionName": collection_name, "indexName": index_name},
            self._ca_timeout(request_timeout_ms, timeout_ms),
        )

    def list_indexes(
        self,
        collection_name: str,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[str]:
        return _data_as_list(
            self._call(
                "indexes",
                "list",
                {"collectionName": collection_name},
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "list_indexes",
        )

    # data manipulation

    def insert(
        self,
        collection_name: str,
        data: Iterable[RowType] | Sequence[FieldData],
        *,
        partition_name: str | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> InsertResult:
        """
        Insert entities into a collection.

        Args:
            collection_name: the target collection.
            data: either rows, as dictionaries from field name to value,
                or a list of `FieldData` columns of equal length.
            partition_name: the target partition, if not the default one.
            request_timeout_ms: a timeout, in milliseconds, for the request.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            an InsertResult, with the primary keys of the inserted entities.

        Example:
            >>> client.insert("my_coll", [{"id": 1, "vec": [0.1, 0.2, 0.3, 0.4]}])
            InsertResult(insert_count=1, ids=[1], raw_results=...)
        """
        rows = _rows_from_data(data)
        ins_data = _data_as_dict(
            self._call(
                "entities",
                "insert",
                {
                    "collectionName": collection_name,
                    "data": rows,
                    **({"partitionName": partition_name} if partition_name else {}),
                },
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "insert",
        )
        return InsertResult(
            raw_results=ins_data,
            insert_count=int(ins_data.get("insertCount", 0)),
            ids=list(ins_data.get("insertIds") or []),
        )

    def upsert(
        self,
        collection_name: str,
        data: Iterable[RowType] | Sequence[FieldData],
        *,
        partition_name: str | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> UpsertResult:
        """
        Insert entities into a collection, replacing those with the same
        primary keys. `data` is given as for `insert`.
        """
        rows = _rows_from_data(data)
        ups_data = _data_as_dict(
            self._call(
                "entities",
                "upsert",
                {
                    "collectionName": collection_name,
                    "data": rows,
                    **({"partitionName": partition_name} if partition_name else {}),
                },
                self._gm_timeout(request_timeout_ms, timeout_ms),
            ),
            "upsert",
        )
        return UpsertResult(
            raw_results=ups_data,
            upsert_count=int(ups_data.get("upsertCount", 0)),
            ids=list(ups_data.get("upsertIds") or []),
        )

    def delete(
        self,
        collection_name: str,
        *,
        filter: str | None = None,
        ids: Iterable[PrimaryKeyType] | None = None,
        partition_name: str | None = None,
        expr: str | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> DeleteResult:
        """
        Delete the entities matching a filter, or having given primary keys.
        When both are given, only entities satisfying both are deleted.

        Args:
            collection_name: the target collection.
            filter: a boolean expression selecting the entities.
            ids: the primary keys of the entities to delete. The name of the
                primary-key field is obtained by describing the collection.
            partition_name: restrict the deletion to a partition.
            expr: a deprecated alias for `filter`.
            request_timeout_ms: a timeout, in milliseconds, for each request.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            a DeleteResult.
        """
        _filter = check_deprecated_alias(
            new_value=filter,
            deprecated_value=expr,
            new_name="filter",
            deprecated_name="expr",
        )
        _ids = None if ids is None else list(ids)
        if not _filter and not _ids:
            raise MilvusInvalidArgumentException(
                "Either a filter or a non-empty list of ids is required."
            )
        ids_filter: str | None = None
        if _ids:
            descriptor = self.describe_collection(
                collection_name,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            )
            pk_field = descriptor.primary_field()
            if pk_field is None:
                raise UnexpectedServerResponseException(
                    text=f"Collection '{collection_name}' has no primary key field.",
                    raw_response=None,
                )
            ids_filter = pk_list_filter(
                pk_field.name, _ids, pk_type=pk_field.data_type
            )
        del_data = self._call(
            "entities",
            "delete",
            {
                "collectionName": collection_name,
                "filter": combine_filters(_filter, ids_filter),
                **({"partitionName": partition_name} if partition_name else {}),
            },
            self._gm_timeout(request_timeout_ms, timeout_ms),
        )
        _del_data = del_data if isinstance(del_data, dict) else {}
        return DeleteResult(
            raw_results=_del_data,
            delete_count=int(_del_data.get("deleteCount", 0)),
        )

    # data query

    def query(
        self,
        arguments: QueryArguments,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> QueryResults:
        """
        Run a query and return the matching entities.

        Args:
            arguments: a `QueryArguments` object, validated by this call.
            request_timeout_ms: a timeout, in milliseconds, for the request.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            a `QueryResults`. For a `count(*)` query, see its `row_count`.

        Example:
            >>> client.query(
            ...     QueryArguments("my_coll", filter="age == 8", output_fields=["name"])
            ... ).rows()
            [{'id': 3, 'name': 'Ann'}, {'id': 12, 'name': 'Bob'}]
        """
        arguments.validate()
        engine = _QueryPageEngine(
            api_commander=self._get_api_commander(),
            arguments=arguments,
        )
        page, _ = engine._fetch_page(
            limit=arguments.limit,
            offset=arguments.offset,
            filter=arguments.filter,
            guarantee_timestamp=None,
            timeout_context=self._gm_timeout(request_timeout_ms, timeout_ms),
        )
        return page

    def search(
        self,
        arguments: SearchArguments,
        *,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> SearchResults:
        """
        Run a vector search, one top-k per target vector.

        Args:
            arguments: a `SearchArguments` object, validated by this call.
            request_timeout_ms: a timeout, in milliseconds, for the request.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            a `SearchResults`, with one `SingleResult` per target vector.
        """
        arguments.validate()
        engine = _SearchPageEngine(
            api_commander=self._get_api_commander(),
            arguments=arguments,
            primary_key_name=DEFAULT_PRIMARY_KEY_NAME,
        )
        results, _ = engine._fetch_page(
            limit=arguments.limit,
            offset=arguments.offset,
            filter=arguments.filter,
            search_params=arguments.search_params(),
            guarantee_timestamp=None,
            timeout_context=self._gm_timeout(request_timeout_ms, timeout_ms),
        )
        return results

    def get(
        self,
        collection_name: str,
        ids: Iterable[PrimaryKeyType],
        *,
        output_fields: Iterable[str] | None = None,
        partition_names: Iterable[str] | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> QueryResults:
        """
        Retrieve entities by primary key. The primary-key field is found
        by describing the collection first.
        """
        _ids = list(ids)
        if not _ids:
            return QueryResults()
        descriptor = self.describe_collection(
            collection_name,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        pk_field = descriptor.primary_field()
        if pk_field is None:
            raise UnexpectedServerResponseException(
                text=f"Collection '{collection_name}' has no primary key field.",
                raw_response=None,
            )
        arguments = QueryArguments(
            collection_name,
            partition_names=partition_names,
            output_fields=output_fields,
            filter=pk_list_filter(pk_field.name, _ids, pk_type=pk_field.data_type),
        )
        return self.query(
            arguments,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )

    # iterators

    def _describe_for_iterator(
        self, collection_name: str
    ) -> tuple[CollectionDescriptor, FieldSchema]:
        descriptor = self.describe_collection(collection_name)
        pk_field = descriptor.primary_field()
        if pk_field is None:
            raise UnexpectedServerResponseException(
                text=f"Collection '{collection_name}' has no primary key field.",
                raw_response=None,
            )
        return (descriptor, pk_field)

    def query_iterator(self, arguments: QueryIteratorArguments) -> QueryIterator:
        """
        Create an iterator paging through the entities matching a query.
        The collection is described once, to check it and ensure the primary
        key is among the output fields when these are given.

        Args:
            arguments: a `QueryIteratorArguments` object, validated by this call.

        Returns:
            a `QueryIterator`, in the IDLE state: nothing is fetched yet.

        Example:
            >>> it = client.query_iterator(
            ...     QueryIteratorArguments("my_coll", batch_size=1000, limit=2500)
            ... )
            >>> [len(page) for page in it]
            [1000, 1000, 500]
        """
        arguments.validate()
        descriptor, pk_field = self._describe_for_iterator(arguments.collection_name)
        _arguments = arguments.copy()
        if _arguments.output_fields and pk_field.name not in _arguments.output_fields:
            _arguments.add_output_field(pk_field.name)
        return QueryIterator(
            api_commander=self._get_api_commander(),
            arguments=_arguments,
            primary_key_name=pk_field.name,
            primary_key_type=pk_field.data_type,
            api_options=self.api_options,
        )

    def search_iterator(self, arguments: SearchIteratorArguments) -> SearchIterator:
        """
        Create an iterator paging through the matches of a vector search,
        best first. The collection is described once for the primary-key
        field and, when not given, the vector field and its metric type.

        Args:
            arguments: a `SearchIteratorArguments` object, validated by this call.

        Returns:
            a `SearchIterator`, in the IDLE state: nothing is fetched yet.

        Raises:
            MilvusInvalidArgumentException: if the arguments are not valid,
                including when no metric type is given or found.
        """
        arguments.validate()
        descriptor, pk_field = self._describe_for_iterator(arguments.collection_name)
        _arguments = arguments.copy()
        if _arguments.anns_field is None:
            vector_fields = descriptor.schema.vector_fields
            if len(vector_fields) == 1:
                _arguments.set_anns_field(vector_fields[0].name)
        if _arguments.metric_type is None:
            _arguments.set_metric_type(descriptor.metric_type(_arguments.anns_field))
        return SearchIterator(
            api_commander=self._get_api_commander(),
            arguments=_arguments,
            primary_key_name=pk_field.name,
            primary_key_type=pk_field.data_type,
            api_options=self.api_options,
        )
