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

from dataclasses import dataclass, replace

from typing_extensions import override

from milvus_sdk.arguments import QueryIteratorArguments
from milvus_sdk.constants import PrimaryKeyType, RowType
from milvus_sdk.data.cursors.iterator import AbstractIterator, IteratorState, logger
from milvus_sdk.data.cursors.query_engine import _QueryPageEngine
from milvus_sdk.data.utils.converters import combine_filters, format_filter_value
from milvus_sdk.data_types import DataType
from milvus_sdk.exceptions import (
    MilvusFieldNotFoundException,
    UnexpectedServerResponseException,
    _select_singlereq_timeout_gm,
    _TimeoutContext,
)
from milvus_sdk.results import QueryResults
from milvus_sdk.settings.defaults import MAX_QUERY_RESULT_WINDOW
from milvus_sdk.utils.api_commander import APICommander
from milvus_sdk.utils.api_options import FullAPIOptions


@dataclass(frozen=True)
class QueryCursor:
    """
    The pagination state of a `QueryIterator`.

    Attributes:
        offset: the position, among the matching entities in primary-key
            order, of the first entity of the next page.
        limit: the overall number of entities to return, None if unbounded.
        returned_count: the number of entities returned so far.
        session_ts: the consistency timestamp pinned by the first request,
            then sent along with the following ones.
        last_pk: the primary key of the last entity returned (or skipped),
            None before the first page. The next page starts after it.
    """

    offset: int
    limit: int | None
    returned_count: int = 0
    session_ts: int | None = None
    last_pk: PrimaryKeyType | None = None

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(self.limit - self.returned_count, 0)


class QueryIterator(AbstractIterator[QueryResults, QueryCursor]):
    """
    An iterator over the entities matching a query, page by page, obtained
    from `MilvusClient.query_iterator`. Entities come in primary-key order:
    each page is requested as the entities past the last primary key seen,
    with the batch size of the arguments as page size (the last page being
    capped by the limit, if any). An initial offset is skipped over by the
    first `next()` call.

    All failures leave the iterator as it was: calling `next()` again
    re-issues the very same requests.

    Example:
        >>> it = client.query_iterator(
        ...     QueryIteratorArguments("my_coll", filter="age > 30", batch_size=100)
        ... )
        >>> for page in it:
        ...     print(len(page))
        100
        100
        37
    """

    arguments: QueryIteratorArguments
    api_options: FullAPIOptions
    primary_key_name: str
    primary_key_type: DataType | None

    def __init__(
        self,
        *,
        api_commander: APICommander,
        arguments: QueryIteratorArguments,
        primary_key_name: str,
        api_options: FullAPIOptions,
        primary_key_type: DataType | None = None,
    ) -> None:
        arguments.validate()
        self.arguments = arguments.copy()
        self.api_options = api_options
        self.primary_key_name = primary_key_name
        self.primary_key_type = primary_key_type
        self._engine = _QueryPageEngine(
            api_commander=api_commander,
            arguments=self.arguments,
            reduce_stop_for_best=self.arguments.reduce_stop_for_best,
        )
        AbstractIterator.__init__(
            self,
            QueryCursor(
                offset=self.arguments.offset,
                limit=self.arguments.bounded_limit,
            ),
        )

    @property
    @override
    def returned_count(self) -> int:
        return self._cursor.returned_count

    @override
    def _empty_page(self) -> QueryResults:
        return QueryResults()

    @override
    def _page_size(self, page: QueryResults) -> int:
        return len(page)

    @override
    def _page_rows(self, page: QueryResults) -> list[RowType]:
        return page.rows()

    def _page_filter(self, last_pk: PrimaryKeyType | None) -> str:
        if last_pk is None:
            return self.arguments.filter or ""
        pk_literal = format_filter_value(last_pk, self.primary_key_type)
        return combine_filters(
            self.arguments.filter, f"{self.primary_key_name} > {pk_literal}"
        )

    def _last_pk(self, page: QueryResults) -> PrimaryKeyType:
        try:
            return page.output_field(self.primary_key_name).values[-1]
        except MilvusFieldNotFoundException as exc:
            raise UnexpectedServerResponseException(
                text=(
                    "Faulty response from query (no primary key "
                    f"'{self.primary_key_name}' in the results)."
                ),
                raw_response=None,
            ) from exc

    def _fetch(
        self,
        *,
        limit: int,
        last_pk: PrimaryKeyType | None,
        session_ts: int | None,
        output_fields: list[str] | None = None,
    ) -> tuple[QueryResults, int | None]:
        timeout_ms, timeout_label = _select_singlereq_timeout_gm(
            timeout_options=self.api_options.timeout_options,
        )
        return self._engine._fetch_page(
            limit=limit,
            offset=0,
            filter=self._page_filter(last_pk),
            search_params=None,
            guarantee_timestamp=session_ts,
            timeout_context=_TimeoutContext(
                request_ms=timeout_ms, label=timeout_label
            ),
            output_fields=output_fields,
        )

    def _skip_offset(self, cursor: QueryCursor) -> tuple[QueryCursor, bool]:
        """
        Walk past the first `cursor.offset` entities, fetching only their
        primary keys, in windows the server accepts. Also return whether
        fewer entities than that were found.
        """
        to_skip = cursor.offset
        last_pk = cursor.last_pk
        session_ts = cursor.session_ts
        while to_skip > 0:
            window = min(to_skip, MAX_QUERY_RESULT_WINDOW)
            logger.debug(f"query iterator skipping {window} rows after {last_pk}")
            skipped, reported_ts = self._fetch(
                limit=window,
                last_pk=last_pk,
                session_ts=session_ts,
                output_fields=[self.primary_key_name],
            )
            session_ts = self._pin_session_ts(session_ts, reported_ts)
            if len(skipped) > window:
                skipped = skipped.slice(0, window)
            if len(skipped) > 0:
                last_pk = self._last_pk(skipped)
            to_skip -= len(skipped)
            if len(skipped) < window:
                break
        return (replace(cursor, last_pk=last_pk, session_ts=session_ts), to_skip > 0)

    @override
    def _advance(self) -> tuple[QueryResults, QueryCursor, bool]:
        cursor = self._cursor
        remaining = cursor.remaining
        if remaining == 0:
            return (self._empty_page(), cursor, True)
        request_size = (
            self.arguments.batch_size
            if remaining is None
            else min(self.arguments.batch_size, remaining)
        )

        self._state = IteratorState.FETCHING
        if cursor.returned_count == 0 and cursor.last_pk is None and cursor.offset > 0:
            cursor, short = self._skip_offset(cursor)
            if short:
                logger.debug(f"query iterator: fewer than {cursor.offset} rows")
                return (self._empty_page(), cursor, True)

        page, reported_ts = self._fetch(
            limit=request_size,
            last_pk=cursor.last_pk,
            session_ts=cursor.session_ts,
        )
        if len(page) > request_size:
            # the surplus comes again with the next page
            logger.debug(
                f"query iterator dropping {len(page) - request_size} surplus rows"
            )
            page = page.slice(0, request_size)

        new_cursor = replace(
            cursor,
            offset=cursor.offset + len(page),
            returned_count=cursor.returned_count + len(page),
            session_ts=self._pin_session_ts(cursor.session_ts, reported_ts),
            last_pk=self._last_pk(page) if len(page) > 0 else cursor.last_pk,
        )
        done = len(page) == 0 or new_cursor.remaining == 0
        if done:
            logger.debug(
                "query iterator done after returning "
                f"{new_cursor.returned_count} rows"
            )
        return (page, new_cursor, done)
