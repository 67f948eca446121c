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

import pytest
from fake_milvus import FAKE_SESSION_TS, FakeMilvusCommander
from unit_utils import client_over

from milvus_sdk import MilvusClient, QueryArguments, QueryIteratorArguments
from milvus_sdk.cursors import IteratorState, QueryCursor, QueryIterator
from milvus_sdk.exceptions import (
    MilvusInvalidArgumentException,
    MilvusNotConnectedException,
    MilvusRpcFailedException,
    MilvusServerFailedException,
    MilvusTimeoutException,
)
from milvus_sdk.utils.api_options import defaultAPIOptions


class TestQueryIterator:
    @pytest.mark.describe("test of query iterator pages under a limit")
    def test_query_iterator_limited_pages(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments("fake_coll", batch_size=1000, limit=2500)
        )
        assert q_iterator.state == IteratorState.IDLE
        assert fake_25k.requests_for("query") == []

        page_sizes = []
        for _ in range(3):
            page = q_iterator.next()
            page_sizes.append(len(page))
        assert page_sizes == [1000, 1000, 500]
        assert q_iterator.state == IteratorState.DONE
        assert q_iterator.returned_count == 2500

        assert len(q_iterator.next()) == 0
        assert len(q_iterator.next()) == 0
        assert q_iterator.state == IteratorState.DONE

        q_payloads = fake_25k.requests_for("query")
        assert [pl["limit"] for pl in q_payloads] == [1000, 1000, 500]
        assert [pl["offset"] for pl in q_payloads] == [0, 0, 0]
        assert [pl["filter"] for pl in q_payloads] == ["", "id > 999", "id > 1999"]
        assert "guaranteeTimestamp" not in q_payloads[0]
        assert all(pl["guaranteeTimestamp"] == FAKE_SESSION_TS for pl in q_payloads[1:])

    @pytest.mark.describe("test of query iterator over a filter")
    def test_query_iterator_filter(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments(
                "fake_coll",
                filter="age == 8",
                output_fields=["age"],
                batch_size=100,
            )
        )
        pages = list(q_iterator)
        assert [len(page) for page in pages] == [100] * 5
        assert q_iterator.state == IteratorState.DONE

        rows = [row for page in pages for row in page.rows()]
        assert len(rows) == 500
        assert all(row["age"] == 8 for row in rows)
        assert len({row["id"] for row in rows}) == 500
        assert fake_25k.requests_for("query")[0]["outputFields"] == ["age", "id"]

    @pytest.mark.describe("test of query iterator offsets")
    def test_query_iterator_offsets(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments("fake_coll", batch_size=3000, offset=20000)
        )
        offsets = []
        for page in q_iterator:
            offsets.append(q_iterator.cursor.offset)
            assert page.output_field("id").values[0] == offsets[-1] - len(page)
        assert offsets == [23000, 25000]
        assert q_iterator.returned_count == 5000

        q_payloads = fake_25k.requests_for("query")
        assert [pl["limit"] for pl in q_payloads] == [16384, 3616, 3000, 3000, 3000]
        assert [pl.get("outputFields") for pl in q_payloads[:2]] == [["id"], ["id"]]
        assert [pl["filter"] for pl in q_payloads] == [
            "",
            "id > 16383",
            "id > 19999",
            "id > 22999",
            "id > 24999",
        ]
        assert all(pl["offset"] == 0 for pl in q_payloads)

    @pytest.mark.describe("test of query iterator with a zero limit")
    def test_query_iterator_zero_limit(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments("fake_coll", batch_size=10, limit=0)
        )
        assert len(q_iterator.next()) == 0
        assert q_iterator.state == IteratorState.DONE
        assert fake_25k.requests_for("query") == []

    @pytest.mark.describe("test of query iterator with a negative (no) limit")
    def test_query_iterator_negative_limit(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments(
                "fake_coll", filter="age < 2", batch_size=300, limit=-1
            )
        )
        assert q_iterator.cursor.limit is None
        assert len(q_iterator.to_list()) == 1000

    @pytest.mark.describe("test of query iterator dropping the surplus rows")
    def test_query_iterator_surplus(self, fake_25k: FakeMilvusCommander) -> None:
        fake_25k.query_surplus = 7
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments(
                "fake_coll",
                batch_size=100,
                limit=250,
                reduce_stop_for_best=True,
            )
        )
        ids = [row["id"] for row in q_iterator.to_list()]
        assert ids == list(range(250))
        q_payloads = fake_25k.requests_for("query")
        assert all(pl["reduceStopForBest"] is True for pl in q_payloads)
        assert [pl["filter"] for pl in q_payloads] == ["", "id > 99", "id > 199"]
        assert all(pl["offset"] == 0 for pl in q_payloads)

    @pytest.mark.describe("test of query iterator failures leaving it unchanged")
    def test_query_iterator_failures(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments("fake_coll", batch_size=1000, limit=3000)
        )
        q_iterator.next()
        cursor_before = q_iterator.cursor

        failures = [
            MilvusRpcFailedException("connection reset"),
            MilvusTimeoutException(
                text="timed out",
                timeout_type="read",
                endpoint=None,
                raw_payload=None,
            ),
            MilvusServerFailedException.from_response(
                command=None,
                raw_response={"code": 65535, "message": "query failed"},
            ),
        ]
        for failure in failures:
            fake_25k.failures.append(failure)
            with pytest.raises(type(failure)):
                q_iterator.next()
            assert q_iterator.cursor == cursor_before
            assert q_iterator.state == IteratorState.YIELDING
            assert q_iterator.last_error is failure

        page = q_iterator.next()
        assert page.output_field("id").values[0] == 1000
        assert q_iterator.last_error is None
        assert [pl["filter"] for pl in fake_25k.requests_for("query")] == [""] + [
            "id > 999"
        ] * 4

    @pytest.mark.describe("test of query iterator on a closed connection")
    def test_query_iterator_closed(self, fake_25k: FakeMilvusCommander) -> None:
        q_iterator = QueryIterator(
            api_commander=fake_25k,
            arguments=QueryIteratorArguments("fake_coll", batch_size=10),
            primary_key_name="id",
            api_options=defaultAPIOptions(),
        )
        fake_25k.close()
        with pytest.raises(MilvusNotConnectedException):
            q_iterator.next()
        assert q_iterator.cursor == QueryCursor(offset=0, limit=None)
        assert q_iterator.state == IteratorState.IDLE

    @pytest.mark.describe("test of query iterator argument validation")
    def test_query_iterator_validation(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        with pytest.raises(MilvusInvalidArgumentException):
            client.query_iterator(QueryIteratorArguments("fake_coll", batch_size=0))
        with pytest.raises(MilvusInvalidArgumentException):
            client.query_iterator(
                QueryIteratorArguments("fake_coll", batch_size=16385)
            )
        with pytest.raises(MilvusInvalidArgumentException):
            client.query_iterator(QueryIteratorArguments("fake_coll", offset=-1))
        with pytest.raises(MilvusInvalidArgumentException):
            client.query_iterator(QueryIteratorArguments(""))
        with pytest.raises(ValueError):
            client.query_iterator(
                QueryIteratorArguments("fake_coll", consistency_level="Whenever")
            )
        assert fake_25k.requests == []

    @pytest.mark.describe("test of query iterator on a disconnected client")
    def test_query_iterator_not_connected(self) -> None:
        client = MilvusClient("http://fake-milvus:19530")
        with pytest.raises(MilvusNotConnectedException):
            client.query_iterator(QueryIteratorArguments("fake_coll"))

    @pytest.mark.describe("test of query iterator not sharing the arguments")
    def test_query_iterator_arguments_copied(
        self, fake_25k: FakeMilvusCommander
    ) -> None:
        client = client_over(fake_25k)
        arguments = QueryIteratorArguments("fake_coll", batch_size=10, limit=20)
        q_iterator = client.query_iterator(arguments)
        arguments.set_batch_size(1).set_filter("age == 1")
        assert [len(page) for page in q_iterator] == [10, 10]
        assert [pl["filter"] for pl in fake_25k.requests_for("query")] == [
            "",
            "id > 9",
        ]

    @pytest.mark.describe("test of query iterator past the query result window")
    def test_query_iterator_result_window(self, fake_25k: FakeMilvusCommander) -> None:
        client = client_over(fake_25k)
        q_iterator = client.query_iterator(
            QueryIteratorArguments("fake_coll", batch_size=1000)
        )
        ids = [row["id"] for row in q_iterator.to_list()]
        assert ids == list(range(25000))
        assert q_iterator.cursor.offset == 25000
        assert q_iterator.state == IteratorState.DONE

        q_payloads = fake_25k.requests_for("query")
        assert len(q_payloads) == 26
        assert all(pl["offset"] + pl["limit"] <= 16384 for pl in q_payloads)

        with pytest.raises(MilvusServerFailedException) as exc:
            client.query(QueryArguments("fake_coll", offset=16000, limit=1000))
        assert "max query result window" in str(exc.value)

    @pytest.mark.describe("test of query iterator over a string primary key")
    def test_query_iterator_varchar_pk(self) -> None:
        fake = FakeMilvusCommander(
            [
                {"pk": f"k{row_id:05d}", "age": row_id % 3, "vector": [0.0] * 4}
                for row_id in range(10)
            ],
            field_types={"pk": "VarChar", "age": "Int8", "vector": "FloatVector"},
            primary_key_name="pk",
        )
        client = client_over(fake)
        q_iterator = client.query_iterator(
            QueryIteratorArguments("fake_coll", batch_size=4, offset=1)
        )
        pages = list(q_iterator)
        assert [len(page) for page in pages] == [4, 4, 1]
        assert pages[0].output_field("pk").values[0] == "k00001"
        assert [pl["filter"] for pl in fake.requests_for("query")] == [
            "",
            "pk > 'k00000'",
            "pk > 'k00004'",
            "pk > 'k00008'",
            "pk > 'k00009'",
        ]
        fake.close()
