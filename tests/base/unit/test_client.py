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
Unit tests for the client methods, against a local HTTP server
or an in-memory fake channel.
"""

from __future__ import annotations

import pytest
from fake_milvus import FakeMilvusCommander
from pytest_httpserver import HTTPServer
from unit_utils import client_over, sync_fail_if_not_removed

from milvus_sdk import (
    APIOptions,
    CollectionSchema,
    DataType,
    FieldData,
    FieldSchema,
    MilvusClient,
    QueryArguments,
    QueryIteratorArguments,
    SearchArguments,
    SearchIteratorArguments,
    TimeoutOptions,
)
from milvus_sdk.constants import LoadState
from milvus_sdk.exceptions import (
    MilvusInvalidArgumentException,
    MilvusNotConnectedException,
    MilvusServerFailedException,
)
from milvus_sdk.info import IndexDescriptor
from milvus_sdk.utils.request_tools import HttpMethod

API_PATH = "/v2/vectordb"
DESCRIBE_RESPONSE = {
    "code": 0,
    "data": {
        "collectionName": "coll",
        "collectionID": 1,
        "fields": [
            {"name": "pk", "type": "VarChar", "primaryKey": True},
            {
                "name": "vector",
                "type": "FloatVector",
                "params": [{"key": "dim", "value": "2"}],
            },
        ],
        "indexes": [
            {"fieldName": "vector", "indexName": "vector_idx", "metricType": "IP"}
        ],
        "load": "LoadStateLoaded",
    },
}


class TestClient:
    @pytest.mark.describe("test of client connection lifecycle")
    def test_client_lifecycle(self, httpserver: HTTPServer) -> None:
        root_endpoint = httpserver.url_for("/")
        client = MilvusClient(root_endpoint, token="root:Milvus")
        assert not client.is_connected
        with pytest.raises(MilvusNotConnectedException):
            client.list_collections()
        assert len(httpserver.log) == 0

        client.connect()
        assert client.is_connected
        httpserver.expect_oneshot_request(
            f"{API_PATH}/collections/list",
            method=HttpMethod.POST,
            json={"dbName": "default"},
            headers={"Authorization": "Bearer root:Milvus"},
        ).respond_with_json({"code": 0, "data": ["a", "b"]})
        assert client.list_collections() == ["a", "b"]
        client.close()
        client.close()
        assert not client.is_connected
        with pytest.raises(MilvusNotConnectedException):
            client.list_collections()

        with MilvusClient(root_endpoint) as cm_client:
            assert cm_client.is_connected
        assert not cm_client.is_connected
        assert "root:Milvus" not in repr(client)

    @pytest.mark.describe("test of client cloning with options")
    def test_client_with_options(self, httpserver: HTTPServer) -> None:
        client = MilvusClient(httpserver.url_for("/"), db_name="db1")
        fast_client = client.with_options(
            api_options=APIOptions(
                timeout_options=TimeoutOptions(request_timeout_ms=2000),
            ),
        )
        assert not fast_client.is_connected
        assert fast_client.db_name == "db1"
        assert fast_client.api_options.timeout_options.request_timeout_ms == 2000
        assert client.api_options.timeout_options.request_timeout_ms == 10000
        assert fast_client != client
        assert client.with_options() == client

        client.connect()
        connected_clone = client.with_options(token="u:p")
        assert connected_clone.is_connected
        assert connected_clone.api_options.token.get_token() == "u:p"
        connected_clone.close()
        assert client.is_connected
        client.close()

    @pytest.mark.describe("test of switching database")
    def test_client_use_database(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            client.use_database("db2")
            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/list",
                json={"dbName": "db2"},
            ).respond_with_json({"code": 0, "data": []})
            assert client.list_collections() == []
            with pytest.raises(MilvusInvalidArgumentException):
                client.use_database("")

    @pytest.mark.describe("test of server health and load state")
    def test_client_health_load_state(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/server/check_health"
            ).respond_with_json({"code": 0, "data": {"isHealthy": True}})
            assert client.check_health()
            httpserver.expect_oneshot_request(
                f"{API_PATH}/server/check_health"
            ).respond_with_json(
                {"code": 0, "data": {"isHealthy": False, "reasons": ["no quorum"]}}
            )
            assert not client.check_health()

            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/get_load_state",
                json={
                    "dbName": "default",
                    "collectionName": "coll",
                    "partitionNames": ["p1"],
                },
            ).respond_with_json({"code": 0, "data": {"loadState": "LoadStateLoading"}})
            assert (
                client.get_load_state("coll", partition_names=["p1"])
                == LoadState.LOADING
            )

    @pytest.mark.describe("test of collection creation payload")
    def test_client_create_collection(self, httpserver: HTTPServer) -> None:
        schema = (
            CollectionSchema()
            .add_field(FieldSchema("id", DataType.INT64, is_primary_key=True))
            .add_field(FieldSchema("vector", DataType.FLOAT_VECTOR, dim=2))
        )
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/create",
                json={
                    "dbName": "default",
                    "collectionName": "coll",
                    "schema": schema.as_dict(),
                    "params": {"shardsNum": 2, "consistencyLevel": "Strong"},
                },
            ).respond_with_json({"code": 0, "data": {}})
            client.create_collection(
                "coll", schema, num_shards=2, consistency_level="strong"
            )
            with pytest.raises(MilvusInvalidArgumentException):
                client.create_collection("coll", CollectionSchema())
            assert len(httpserver.log) == 1

    @pytest.mark.describe("test of insert with rows and columns")
    def test_client_insert(self, httpserver: HTTPServer) -> None:
        expected_rows = [
            {"id": 1, "vector": [0.5, 0.25]},
            {"id": 2, "vector": [0.0, 1.0]},
        ]
        with MilvusClient(httpserver.url_for("/")) as client:
            for _ in range(2):
                httpserver.expect_oneshot_request(
                    f"{API_PATH}/entities/insert",
                    json={
                        "dbName": "default",
                        "collectionName": "coll",
                        "data": expected_rows,
                    },
                ).respond_with_json(
                    {"code": 0, "data": {"insertCount": 2, "insertIds": [1, 2]}}
                )
            result = client.insert("coll", expected_rows)
            assert result.insert_count == 2
            assert result.ids == [1, 2]

            columns = [
                FieldData("id", DataType.INT64, [1, 2]),
                FieldData("vector", DataType.FLOAT_VECTOR, [[0.5, 0.25], [0.0, 1.0]]),
            ]
            assert client.insert("coll", columns).ids == [1, 2]

            with pytest.raises(MilvusInvalidArgumentException):
                client.insert("coll", [])
            with pytest.raises(MilvusInvalidArgumentException):
                client.insert("coll", [expected_rows[0], columns[0]])  # type: ignore[list-item]
            assert len(httpserver.log) == 2

    @pytest.mark.describe("test of delete by ids and filter")
    def test_client_delete(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/describe"
            ).respond_with_json(DESCRIBE_RESPONSE)
            httpserver.expect_oneshot_request(
                f"{API_PATH}/entities/delete",
                json={
                    "dbName": "default",
                    "collectionName": "coll",
                    "filter": "(tag == 1) and (pk in ['a', 'b'])",
                },
            ).respond_with_json({"code": 0, "data": {"deleteCount": 2}})
            result = client.delete("coll", filter="tag == 1", ids=["a", "b"])
            assert result.delete_count == 2

            with pytest.raises(MilvusInvalidArgumentException):
                client.delete("coll")
            with pytest.raises(MilvusInvalidArgumentException):
                client.delete("coll", ids=[])

    @pytest.mark.describe("test of delete with the deprecated expr parameter")
    @sync_fail_if_not_removed
    def test_client_delete_expr(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/entities/delete",
                json={"dbName": "default", "collectionName": "coll", "filter": "x > 1"},
            ).respond_with_json({"code": 0, "data": {}})
            with pytest.warns(DeprecationWarning):
                result = client.delete("coll", expr="x > 1")
            assert result.delete_count == 0

            with pytest.warns(DeprecationWarning):
                with pytest.raises(MilvusInvalidArgumentException):
                    client.delete("coll", filter="x > 1", expr="x > 1")

    @pytest.mark.describe("test of a server failure through the client")
    def test_client_server_failure(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/has"
            ).respond_with_json({"code": 1100, "message": "invalid parameter"})
            with pytest.raises(MilvusServerFailedException) as exc:
                client.has_collection("coll")
            assert exc.value.server_code == 1100
            assert "invalid parameter" in str(exc.value)

    @pytest.mark.describe("test of query, get and search")
    def test_client_query_get_search(self, fake_5k: FakeMilvusCommander) -> None:
        client = client_over(fake_5k)

        page = client.query(
            QueryArguments("fake_coll", filter="age == 8", output_fields=["age"])
            .set_limit(10)
        )
        assert len(page) == 10
        assert page.output_field("id").values == [8 + 50 * i for i in range(10)]
        assert all(row["age"] == 8 for row in page.rows())
        with pytest.raises(MilvusInvalidArgumentException):
            client.query(QueryArguments(""))

        got = client.get("fake_coll", [3, 1, 4000], output_fields=["age"])
        assert got.output_field("id").values == [1, 3, 4000]
        assert fake_5k.requests_for("query")[-1]["filter"] == "id in [3, 1, 4000]"
        n_requests = len(fake_5k.requests)
        assert len(client.get("fake_coll", [])) == 0
        assert len(fake_5k.requests) == n_requests

        results = client.search(
            SearchArguments(
                "fake_coll",
                target_vectors=[[0.5] * 4, [0.1] * 4],
                limit=5,
                output_fields=["age"],
            )
        )
        assert len(results) == 2
        for single_result in results:
            assert len(single_result) == 5
            assert single_result.scores == sorted(single_result.scores)
            assert [row["age"] for row in single_result.rows()] == [
                pk % 50 for pk in single_result.ids
            ]

    @pytest.mark.describe("test of iterator creation through the client")
    def test_client_iterators(self, fake_5k: FakeMilvusCommander) -> None:
        client = client_over(fake_5k)
        q_args = QueryIteratorArguments("fake_coll", output_fields=["age"], limit=120)
        q_iterator = client.query_iterator(q_args)
        assert q_args.output_fields == ["age"]
        pages = list(q_iterator)
        assert [len(page) for page in pages] == [120]
        assert pages[0].output_fields == ["id", "age"]
        assert fake_5k.requests_for("query")[0]["outputFields"] == ["age", "id"]

        s_args = SearchIteratorArguments(
            "fake_coll", target_vectors=[[0.5] * 4], batch_size=50, limit=120
        )
        s_iterator = client.search_iterator(s_args)
        assert s_args.anns_field is None
        s_pages = list(s_iterator)
        assert [len(page) for page in s_pages] == [50, 50, 20]
        s_payload = fake_5k.requests_for("search")[0]
        assert s_payload["annsField"] == "vector"
        assert s_payload["searchParams"]["metricType"] == "L2"

        with pytest.raises(MilvusInvalidArgumentException):
            client.search_iterator(
                SearchIteratorArguments("fake_coll", target_vectors=[[0.5] * 4, [0.1] * 4])
            )
        with pytest.raises(MilvusServerFailedException):
            client.query_iterator(QueryIteratorArguments("no_such_coll"))

    @pytest.mark.describe("test of database, partition and index administration")
    def test_client_administration(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/"), db_name="db1") as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/databases/create",
                json={"dbName": "db2"},
            ).respond_with_json({"code": 0, "data": {}})
            client.create_database("db2")
            httpserver.expect_oneshot_request(
                f"{API_PATH}/databases/list",
            ).respond_with_json({"code": 0, "data": ["default", "db1", "db2"]})
            assert client.list_databases() == ["default", "db1", "db2"]

            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/rename",
                json={
                    "dbName": "db1",
                    "collectionName": "coll",
                    "newCollectionName": "coll2",
                },
            ).respond_with_json({"code": 0, "data": {}})
            client.rename_collection("coll", "coll2")

            httpserver.expect_oneshot_request(
                f"{API_PATH}/partitions/has",
                json={"dbName": "db1", "collectionName": "coll", "partitionName": "p1"},
            ).respond_with_json({"code": 0, "data": {"has": True}})
            assert client.has_partition("coll", "p1")
            httpserver.expect_oneshot_request(
                f"{API_PATH}/partitions/list",
            ).respond_with_json({"code": 0, "data": ["_default", "p1"]})
            assert client.list_partitions("coll") == ["_default", "p1"]
            httpserver.expect_oneshot_request(
                f"{API_PATH}/partitions/get_stats",
            ).respond_with_json({"code": 0, "data": {"rowCount": 42}})
            p_info = client.get_partition_stats("coll", "p1")
            assert p_info.name == "p1"
            assert p_info.row_count == 42

            index = IndexDescriptor(
                index_name="vector_idx",
                field_name="vector",
                index_type="HNSW",
                metric_type="IP",
                params={"M": 16},
            )
            httpserver.expect_oneshot_request(
                f"{API_PATH}/indexes/create",
                json={
                    "dbName": "db1",
                    "collectionName": "coll",
                    "indexParams": [index.as_dict()],
                },
            ).respond_with_json({"code": 0, "data": {}})
            client.create_index("coll", index)
            with pytest.raises(MilvusInvalidArgumentException):
                client.create_index("coll", [])
            httpserver.expect_oneshot_request(
                f"{API_PATH}/indexes/describe",
            ).respond_with_json(
                {
                    "code": 0,
                    "data": [{**index.as_dict(), "indexState": "Finished"}],
                }
            )
            described = client.describe_index("coll", "vector_idx")
            assert described.index_type == "HNSW"
            assert described.index_state == "Finished"
            httpserver.expect_oneshot_request(
                f"{API_PATH}/indexes/list",
            ).respond_with_json({"code": 0, "data": ["vector_idx"]})
            assert client.list_indexes("coll") == ["vector_idx"]

    @pytest.mark.describe("test of upsert")
    def test_client_upsert(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/entities/upsert",
                json={
                    "dbName": "default",
                    "collectionName": "coll",
                    "data": [{"pk": "a", "vector": [0.1, 0.2]}],
                    "partitionName": "p1",
                },
            ).respond_with_json(
                {"code": 0, "data": {"upsertCount": 1, "upsertIds": ["a"]}}
            )
            result = client.upsert(
                "coll",
                [{"pk": "a", "vector": [0.1, 0.2]}],
                partition_name="p1",
            )
            assert result.upsert_count == 1
            assert result.ids == ["a"]
