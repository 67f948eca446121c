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
Unit tests for the request channel against a local HTTP server.
"""

from __future__ import annotations

import json
import logging
import time

import pytest
import werkzeug
from pytest_httpserver import HTTPServer

from milvus_sdk.exceptions import (
    MilvusNotConnectedException,
    MilvusRpcFailedException,
    MilvusServerFailedException,
    MilvusTimeoutException,
    UnexpectedServerResponseException,
    _TimeoutContext,
)
from milvus_sdk.utils.api_commander import APICommander
from milvus_sdk.utils.api_options import RetryOptions, defaultRetryOptions
from milvus_sdk.utils.request_tools import HttpMethod

SLEEPER_TIME_MS = 500
TIMEOUT_PARAM_MS = 100
DESCRIBE_PATH = "/v2/vectordb/collections/describe"
RATE_LIMITED = {"code": 8, "message": "rate limit exceeded"}


def response_sleeper(request: werkzeug.Request) -> werkzeug.Response:
    time.sleep(SLEEPER_TIME_MS / 1000)
    return werkzeug.Response(json.dumps({"code": 0, "data": {}}))


def _commander(
    httpserver: HTTPServer, **kwargs: RetryOptions | dict[str, str | None]
) -> APICommander:
    return APICommander(
        api_endpoint=httpserver.url_for("/"),
        db_name="db1",
        **kwargs,  # type: ignore[arg-type]
    )


class TestAPICommander:
    @pytest.mark.describe("test of APICommander successful request")
    def test_apicommander_success(self, httpserver: HTTPServer) -> None:
        cmd = _commander(httpserver, headers={"Authorization": "Bearer tkn", "X": None})
        httpserver.expect_oneshot_request(
            DESCRIBE_PATH,
            method=HttpMethod.POST,
            json={"dbName": "db1", "collectionName": "c"},
            headers={"Authorization": "Bearer tkn"},
        ).respond_with_json({"code": 0, "data": {"collectionName": "c"}})
        response = cmd.request(
            resource="collections",
            action="describe",
            payload={"collectionName": "c"},
        )
        assert response["data"] == {"collectionName": "c"}
        assert "X" not in cmd.full_headers
        assert "tkn" not in str(cmd._loggable_headers)
        cmd.close()

    @pytest.mark.describe("test of APICommander database override in payload")
    def test_apicommander_dbname_override(self, httpserver: HTTPServer) -> None:
        cmd = _commander(httpserver)
        httpserver.expect_oneshot_request(
            "/v2/vectordb/collections/rename",
            method=HttpMethod.POST,
            json={"dbName": "other_db", "collectionName": "c"},
        ).respond_with_json({"code": 0, "data": {}})
        cmd.request(
            resource="collections",
            action="rename",
            payload={"dbName": "other_db", "collectionName": "c"},
        )
        cmd.close()

    @pytest.mark.describe("test of APICommander retrying on rate limit")
    def test_apicommander_rate_limit_retry(
        self, httpserver: HTTPServer, caplog: pytest.LogCaptureFixture
    ) -> None:
        cmd = _commander(
            httpserver,
            retry_options=defaultRetryOptions.with_override(
                RetryOptions(initial_backoff_ms=1, max_retry_times=5)
            ),
        )
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(RATE_LIMITED)
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(RATE_LIMITED)
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(
            {"code": 0, "data": {"ok": True}}
        )
        with caplog.at_level(logging.WARNING):
            response = cmd.request(resource="collections", action="describe")
        assert response["data"] == {"ok": True}
        assert len(httpserver.log) == 3
        assert "rate-limited" in caplog.text
        cmd.close()

    @pytest.mark.describe("test of APICommander giving up on rate limit")
    def test_apicommander_rate_limit_give_up(self, httpserver: HTTPServer) -> None:
        cmd = _commander(
            httpserver,
            retry_options=defaultRetryOptions.with_override(
                RetryOptions(initial_backoff_ms=1, max_retry_times=2)
            ),
        )
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(RATE_LIMITED)
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(RATE_LIMITED)
        with pytest.raises(MilvusServerFailedException) as exc:
            cmd.request(resource="collections", action="describe")
        assert exc.value.server_code == 8
        assert len(httpserver.log) == 2

        no_retry_cmd = _commander(
            httpserver,
            retry_options=defaultRetryOptions.with_override(
                RetryOptions(retry_on_rate_limit=False)
            ),
        )
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(RATE_LIMITED)
        with pytest.raises(MilvusServerFailedException):
            no_retry_cmd.request(resource="collections", action="describe")
        assert len(httpserver.log) == 3
        cmd.close()

    @pytest.mark.describe("test of APICommander rate-limit retries within the timeout")
    def test_apicommander_rate_limit_timeout(self, httpserver: HTTPServer) -> None:
        cmd = _commander(
            httpserver,
            retry_options=defaultRetryOptions.with_override(
                RetryOptions(initial_backoff_ms=200, max_retry_times=10)
            ),
        )
        httpserver.expect_request(DESCRIBE_PATH).respond_with_json(RATE_LIMITED)
        started = time.time()
        with pytest.raises(MilvusTimeoutException) as exc:
            cmd.request(
                resource="collections",
                action="describe",
                timeout_context=_TimeoutContext(
                    request_ms=300, label="general_method_timeout_ms"
                ),
            )
        assert time.time() - started < 0.6
        assert "general_method_timeout_ms = 300 ms" in str(exc.value)
        # a wait of 200 ms fits, the next one of 600 ms does not
        assert len(httpserver.log) == 2
        cmd.close()

    @pytest.mark.describe("test of APICommander not retrying other failures")
    def test_apicommander_no_retry(self, httpserver: HTTPServer) -> None:
        cmd = _commander(httpserver)
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json(
            {"code": 65535, "message": "something broke"}
        )
        with pytest.raises(MilvusServerFailedException) as exc:
            cmd.request(resource="collections", action="describe")
        assert exc.value.server_code == 65535
        assert len(httpserver.log) == 1
        cmd.close()

    @pytest.mark.describe("test of APICommander with malformed responses")
    def test_apicommander_malformed(self, httpserver: HTTPServer) -> None:
        cmd = _commander(httpserver)
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_data("not json")
        with pytest.raises(UnexpectedServerResponseException):
            cmd.request(resource="collections", action="describe")
        httpserver.expect_oneshot_request(DESCRIBE_PATH).respond_with_json({"data": {}})
        with pytest.raises(UnexpectedServerResponseException):
            cmd.request(resource="collections", action="describe")
        cmd.close()

    @pytest.mark.describe("test of APICommander timeout")
    def test_apicommander_timeout(self, httpserver: HTTPServer) -> None:
        cmd = _commander(httpserver)
        httpserver.expect_oneshot_request(
            DESCRIBE_PATH,
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(MilvusTimeoutException) as exc:
            cmd.request(
                resource="collections",
                action="describe",
                timeout_context=_TimeoutContext(
                    request_ms=TIMEOUT_PARAM_MS, label="request_timeout_ms"
                ),
            )
        assert exc.value.timeout_type == "read"
        assert "request_timeout_ms" in str(exc.value)
        assert exc.value.endpoint is not None
        cmd.close()

    @pytest.mark.describe("test of APICommander transport failure")
    def test_apicommander_transport_failure(self) -> None:
        cmd = APICommander(api_endpoint="http://127.0.0.1:1", db_name="default")
        with pytest.raises(MilvusRpcFailedException) as exc:
            cmd.request(resource="collections", action="describe")
        assert exc.value.retryable
        cmd.close()

    @pytest.mark.describe("test of APICommander once closed")
    def test_apicommander_closed(self, httpserver: HTTPServer) -> None:
        cmd = _commander(httpserver)
        cmd.close()
        cmd.close()
        assert cmd.is_closed
        with pytest.raises(MilvusNotConnectedException):
            cmd.request(resource="collections", action="describe")
        assert len(httpserver.log) == 0
