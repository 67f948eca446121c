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

from abc import ABC, abstractmethod
from typing import Any, Generic

from typing_extensions import override

from milvus_sdk.arguments import QueryArguments, SearchArguments
from milvus_sdk.constants import ConsistencyLevel
from milvus_sdk.data.cursors.iterator import TPAGE, logger
from milvus_sdk.data.utils.converters import (
    coerce_primary_key,
    encode_search_vector,
    parse_columns,
)
from milvus_sdk.data_types import DataType
from milvus_sdk.exceptions import (
    UnexpectedServerResponseException,
    _TimeoutContext,
)
from milvus_sdk.results import QueryResults, SearchResults, SingleResult
from milvus_sdk.utils.api_commander import APICommander


def _response_data(response: dict[str, Any], command: str) -> dict[str, Any]:
    data = response.get("data")
    if not isinstance(data, dict):
        raise UnexpectedServerResponseException(
            text=f"Faulty response from {command} (no 'data' object).",
            raw_response=response,
        )
    return data


class _QueryEngine(ABC, Generic[TPAGE]):
    @abstractmethod
    def _fetch_page(
        self,
        *,
        limit: int | None,
        offset: int,
        filter: str,
        search_params: dict[str, Any] | None,
        guarantee_timestamp: int | None,
        timeout_context: _TimeoutContext,
    ) -> tuple[TPAGE, int | None]:
        """Run a request for one page and return (page, session timestamp)."""
        ...


class _QueryPageEngine(_QueryEngine[QueryResults]):
    """Issues `entities/query` requests for fixed query arguments."""

    api_commander: APICommander
    arguments: QueryArguments
    reduce_stop_for_best: bool
    q_subpayload: dict[str, Any]

    def __init__(
        self,
        *,
        api_commander: APICommander,
        arguments: QueryArguments,
        reduce_stop_for_best: bool = False,
    ) -> None:
        self.api_commander = api_commander
        self.arguments = arguments
        self.reduce_stop_for_best = reduce_stop_for_best
        self.q_subpayload = {
            k: v
            for k, v in {
                "collectionName": arguments.collection_name,
                "partitionNames": arguments.partition_names or None,
                "outputFields": arguments.output_fields or None,
                "consistencyLevel": (
                    None
                    if arguments.consistency_level is None
                    else ConsistencyLevel.coerce(arguments.consistency_level).value
                ),
                "reduceStopForBest": True if reduce_stop_for_best else None,
            }.items()
            if v is not None
        }

    @override
    def _fetch_page(
        self,
        *,
        limit: int | None,
        offset: int,
        filter: str,
        search_params: dict[str, Any] | None = None,
        guarantee_timestamp: int | None = None,
        timeout_context: _TimeoutContext,
        output_fields: list[str] | None = None,
    ) -> tuple[QueryResults, int | None]:
        q_payload = {
            **self.q_subpayload,
            **({"outputFields": output_fields} if output_fields else {}),
            "filter": filter,
            **({"limit": limit} if limit is not None else {}),
            "offset": offset,
            **(
                {"guaranteeTimestamp": guarantee_timestamp}
                if guarantee_timestamp is not None
                else {}
            ),
        }

        _coll_name = self.arguments.collection_name
        logger.info(f"fetching a query page: offset {offset} from {_coll_name}")
        q_response = self.api_commander.request(
            resource="entities",
            action="query",
            payload=q_payload,
            timeout_context=timeout_context,
        )
        logger.info(f"finished fetching a query page: offset {offset} from {_coll_name}")

        q_data = _response_data(q_response, "query")
        columns = parse_columns(q_data.get("fields"), raw_response=q_response)
        return (QueryResults(columns), q_data.get("sessionTs"))


class _SearchPageEngine(_QueryEngine[SearchResults]):
    """Issues `entities/search` requests for fixed search arguments."""

    api_commander: APICommander
    arguments: SearchArguments
    primary_key_name: str
    primary_key_type: DataType | None
    s_subpayload: dict[str, Any]

    def __init__(
        self,
        *,
        api_commander: APICommander,
        arguments: SearchArguments,
        primary_key_name: str,
        primary_key_type: DataType | None = None,
    ) -> None:
        self.api_commander = api_commander
        self.arguments = arguments
        self.primary_key_name = primary_key_name
        self.primary_key_type = primary_key_type
        self.s_subpayload = {
            k: v
            for k, v in {
                "collectionName": arguments.collection_name,
                "partitionNames": arguments.partition_names or None,
                "annsField": arguments.anns_field,
                "data": [
                    encode_search_vector(vector) for vector in arguments.target_vectors
                ],
                "outputFields": arguments.output_fields or None,
                "consistencyLevel": (
                    None
                    if arguments.consistency_level is None
                    else ConsistencyLevel.coerce(arguments.consistency_level).value
                ),
            }.items()
            if v is not None
        }

    def _parse_result(
        self, raw_result: Any, s_response: dict[str, Any]
    ) -> SingleResult:
        if not isinstance(raw_result, dict):
            raise UnexpectedServerResponseException(
                text="Faulty response from search (malformed result).",
                raw_response=s_response,
            )
        try:
            return SingleResult(
                raw_result.get("primaryKey") or self.primary_key_name,
                [
                    coerce_primary_key(pk, self.primary_key_type)
                    for pk in raw_result.get("ids") or []
                ],
                raw_result.get("scores") or [],
                parse_columns(raw_result.get("fields"), raw_response=s_response),
            )
        except (TypeError, ValueError) as exc:
            raise UnexpectedServerResponseException(
                text=f"Faulty response from search ({exc}).",
                raw_response=s_response,
            ) from exc

    @override
    def _fetch_page(
        self,
        *,
        limit: int | None,
        offset: int,
        filter: str,
        search_params: dict[str, Any] | None,
        guarantee_timestamp: int | None = None,
        timeout_context: _TimeoutContext,
    ) -> tuple[SearchResults, int | None]:
        s_payload = {
            **self.s_subpayload,
            "filter": filter,
            **({"limit": limit} if limit is not None else {}),
            "offset": offset,
            "searchParams": search_params or {},
            **(
                {"guaranteeTimestamp": guarantee_timestamp}
                if guarantee_timestamp is not None
                else {}
            ),
        }

        _coll_name = self.arguments.collection_name
        _params = (search_params or {}).get("params") or {}
        logger.info(f"fetching a search page: params {_params} from {_coll_name}")
        s_response = self.api_commander.request(
            resource="entities",
            action="search",
            payload=s_payload,
            timeout_context=timeout_context,
        )
        logger.info(
            f"finished fetching a search page: params {_params} from {_coll_name}"
        )

        s_data = _response_data(s_response, "search")
        raw_results = s_data.get("results")
        if not isinstance(raw_results, list):
            raise UnexpectedServerResponseException(
                text="Faulty response from search (no 'results').",
                raw_response=s_response,
            )
        session_ts = s_data.get("sessionTs")
        results = [self._parse_result(raw_res, s_response) for raw_res in raw_results]
        return (SearchResults(results, session_ts=session_ts), session_ts)
