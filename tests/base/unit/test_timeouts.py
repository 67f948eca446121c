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

import json
import time

import pytest
import werkzeug
from pytest_httpserver import HTTPServer

from milvus_sdk import (
    APIOptions,
    MilvusClient,
    QueryIteratorArguments,
    SearchIteratorArguments,
    TimeoutOptions,
)
from milvus_sdk.cursors import IteratorState, QueryCursor
from milvus_sdk.exceptions import MilvusTimeoutException
from milvus_sdk.utils.request_tools import HttpMethod

SLEEPER_TIME_MS = 500
TIMEOUT_PARAM_MS = 100
API_PATH = "/v2/vectordb"
DESCRIBE_RESPONSE = {
    "code": 0,
    "data": {
        "collectionName": "coll",
        "fields": [
            {"name": "id", "type": "Int64", "primaryKey": True},
            {
                "name": "vector",
                "type": "FloatVector",
                "params": [{"key": "dim", "value": "2"}],
            },
        ],
        "indexes": [
            {"fieldName": "vector", "indexName": "vector_idx", "metricType": "L2"}
        ],
    },
}


def response_sleeper(request: werkzeug.Request) -> werkzeug.Response:
    time.sleep(SLEEPER_TIME_MS / 1000)
    return werkzeug.Response(json.dumps({"code": 0, "data": {}}))


class TestTimeouts:
    @pytest.mark.describe("test of single-request timeout on client methods")
    def test_client_method_timeout(self, httpserver: HTTPServer) -> None:
        with MilvusClient(httpserver.url_for("/")) as client:
            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/describe",
                method=HttpMethod.POST,
            ).respond_with_handler(response_sleeper)
            with pytest.raises(MilvusTimeoutException) as exc:
                client.describe_collection("coll", request_timeout_ms=TIMEOUT_PARAM_MS)
            assert "request_timeout_ms" in str(exc.value)

            httpserver.expect_oneshot_request(
                f"{API_PATH}/collections/describe",
                method=HttpMethod.POST,
            ).respond_with_handler(response_sleeper)
            with pytest.raises(MilvusTimeoutException) as exc_alias:
                client.describe_collection("coll", timeout_ms=TIMEOUT_PARAM_MS)
            assert "timeout_ms" in str(exc_alias.value)

    @pytest.mark.describe("test of request timeout from the client options")
    def test_client_options_timeout(self, httpserver: HTTPServer) -> None:
        client = MilvusClient(
            httpserver.url_for("/"),
            api_options=APIOptions(
                timeout_options=TimeoutOptions(request_timeout_ms=TIMEOUT_PARAM_MS),
            ),
        )
        client.connect()
        httpserver.expect_oneshot_request(
            f"{API_PATH}/collections/list",
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(MilvusTimeoutException):
            client.list_collections()
        client.close()

    @pytest.mark.describe("test of timeout in a query iterator page")
    def test_query_iterator_timeout(self, httpserver: HTTPServer) -> None:
        client = MilvusClient(
            httpserver.url_for("/"),
            api_options=APIOptions(
                timeout_options=TimeoutOptions(request_timeout_ms=TIMEOUT_PARAM_MS),
            ),
        )
        client.connect()
        httpserver.expect_oneshot_request(
            f"{API_PATH}/collections/describe"
        ).respond_with_json(DESCRIBE_RESPONSE)
        q_iterator = client.query_iterator(QueryIteratorArguments("coll"))

        httpserver.expect_oneshot_request(
            f"{API_PATH}/entities/query",
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(MilvusTimeoutException):
            q_iterator.next()
        assert q_iterator.state == IteratorState.IDLE
        assert q_iterator.cursor == QueryCursor(offset=0, limit=None)
        assert isinstance(q_iterator.last_error, MilvusTimeoutException)
        client.close()

    @pytest.mark.describe("test of overall timeout in a search iterator page")
    def test_search_iterator_timeout(self, httpserver: HTTPServer) -> None:
        client = MilvusClient(
            httpserver.url_for("/"),
            api_options=APIOptions(
                timeout_options=TimeoutOptions(
                    general_method_timeout_ms=TIMEOUT_PARAM_MS,
                ),
            ),
        )
        client.connect()
        httpserver.expect_oneshot_request(
            f"{API_PATH}/collections/describe"
        ).respond_with_json(DESCRIBE_RESPONSE)
        s_iterator = client.search_iterator(
            SearchIteratorArguments("coll", target_vectors=[[0.1, 0.2]])
        )

        httpserver.expect_oneshot_request(
            f"{API_PATH}/entities/search",
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(MilvusTimeoutException) as exc:
            s_iterator.next()
        assert "general_method_timeout_ms" in str(exc.value)
        assert s_iterator.state == IteratorState.IDLE
        client.close()
