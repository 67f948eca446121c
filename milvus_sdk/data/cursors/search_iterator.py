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

import math
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

from typing_extensions import override

from milvus_sdk.arguments import SearchIteratorArguments
from milvus_sdk.constants import PrimaryKeyType, RowType, metric_is_distance
from milvus_sdk.data.cursors.iterator import AbstractIterator, IteratorState, logger
from milvus_sdk.data.cursors.query_engine import _SearchPageEngine
from milvus_sdk.data.utils.converters import combine_filters, pk_list_filter
from milvus_sdk.data_types import DataType
from milvus_sdk.exceptions import (
    CursorException,
    MilvusException,
    MilvusInvalidArgumentException,
    MilvusServerFailedException,
    MultiCallTimeoutManager,
    UnexpectedServerResponseException,
)
from milvus_sdk.results import SingleResult
from milvus_sdk.settings.defaults import (
    MAX_BATCH_SIZE,
    RADIUS,
    RANGE_FILTER,
    SEARCH_EXTEND_RATE,
)
from milvus_sdk.utils.api_commander import APICommander
from milvus_sdk.utils.api_options import FullAPIOptions


def _same_score(score_a: float, score_b: float) -> bool:
    return math.isclose(score_a, score_b, rel_tol=1e-6, abs_tol=1e-6)


@dataclass(frozen=True)
class SearchCursor:
    """
    The pagination state of a `SearchIterator`.

    Attributes:
        tail_distance: the score of the last fetched match; the next range
            search starts from there. None before the first search.
        width: the current extent of the range searches. Never decreases.
        initial_width: the width established by the first search.
        filtered_ids: the primary keys of the fetched matches scoring
            exactly `tail_distance`, excluded from the next range search.
        returned_count: the number of matches returned so far.
        session_ts: the consistency timestamp pinned by the first request.
        cache: the fetched matches not returned yet, oldest first.
        exhausted: whether the range of scores has been entirely scanned.
        initialized: whether the first search has been done.
    """

    tail_distance: float | None = None
    width: float = 0.0
    initial_width: float = 0.0
    filtered_ids: frozenset[PrimaryKeyType] = frozenset()
    returned_count: int = 0
    session_ts: int | None = None
    cache: tuple[SingleResult, ...] = field(default=(), repr=False)
    exhausted: bool = False
    initialized: bool = False

    @property
    def cached_count(self) -> int:
        return sum(len(cached) for cached in self.cache)


def _pop_cached(
    cache: Sequence[SingleResult], count: int, primary_key_name: str
) -> tuple[SingleResult, tuple[SingleResult, ...]]:
    """Take up to `count` matches from the head of the cache."""
    taken: list[SingleResult] = []
    remaining = list(cache)
    needed = count
    while remaining and needed > 0:
        head = remaining.pop(0)
        if len(head) <= needed:
            taken.append(head)
            needed -= len(head)
        else:
            taken.append(head.slice(0, needed))
            remaining.insert(0, head.slice(needed))
            needed = 0
    page = SingleResult(primary_key_name)
    for piece in taken:
        page = page.concat(piece)
    return (page, tuple(remaining))


class SearchIterator(AbstractIterator[SingleResult, SearchCursor]):
    """
    An iterator over the matches of a vector search, best first, page by
    page, obtained from `MilvusClient.search_iterator`.

    After a first ordinary search, each further search is a range search
    covering the scores just beyond the last one returned so far, with
    the matches sitting exactly on that boundary excluded by primary key.
    The extent ("width") of the range searches grows whenever they return
    too few matches, up to a maximum. Matches fetched beyond the requested
    page size are kept locally and returned first by later calls.

    Transient failures (network errors, timeouts, lost connection) leave the
    iterator as it was. A failure reported by the server, or a boundary with
    too many equal scores, ends the iteration: the error is raised once and
    the iterator moves to the ERROR state.

    Example:
        >>> it = client.search_iterator(
        ...     SearchIteratorArguments(
        ...         "my_coll",
        ...         target_vectors=[[0.1, 0.2, 0.3, 0.4]],
        ...         batch_size=500,
        ...         limit=2000,
        ...     )
        ... )
        >>> for page in it:
        ...     print(page.ids[:3])
    """

    arguments: SearchIteratorArguments
    api_options: FullAPIOptions
    primary_key_name: str
    primary_key_type: DataType | None

    def __init__(
        self,
        *,
        api_commander: APICommander,
        arguments: SearchIteratorArguments,
        primary_key_name: str,
        api_options: FullAPIOptions,
        primary_key_type: DataType | None = None,
    ) -> None:
        arguments.validate()
        self.arguments = arguments.copy()
        self.api_options = api_options
        self.primary_key_name = primary_key_name
        self.primary_key_type = primary_key_type
        self._check_search_params()
        self._is_distance = metric_is_distance(self.arguments.metric_type)  # type: ignore[arg-type]
        self._base_params = self.arguments.search_params()
        self._engine = _SearchPageEngine(
            api_commander=api_commander,
            arguments=self.arguments,
            primary_key_name=primary_key_name,
            primary_key_type=primary_key_type,
        )
        AbstractIterator.__init__(self, SearchCursor())

    def _check_search_params(self) -> None:
        args = self.arguments
        if args.metric_type is None:
            raise MilvusInvalidArgumentException(
                "The search iterator requires a metric type."
            )
        if args.ef is not None and args.ef < args.batch_size:
            raise MilvusInvalidArgumentException(
                f"Search parameter 'ef' ({args.ef}) cannot be smaller than "
                f"the batch size ({args.batch_size})."
            )
        if args.radius is not None and args.range_filter is not None:
            if metric_is_distance(args.metric_type):
                if not args.radius > args.range_filter:
                    raise MilvusInvalidArgumentException(
                        f"With metric {args.metric_type}, the radius ({args.radius}) "
                        f"must be greater than range_filter ({args.range_filter})."
                    )
            elif not args.radius < args.range_filter:
                raise MilvusInvalidArgumentException(
                    f"With metric {args.metric_type}, the radius ({args.radius}) "
                    f"must be smaller than range_filter ({args.range_filter})."
                )

    @property
    @override
    def returned_count(self) -> int:
        return self._cursor.returned_count

    @property
    def width(self) -> float:
        """The current extent of the range searches."""
        return self._cursor.width

    @override
    def _empty_page(self) -> SingleResult:
        return SingleResult(self.primary_key_name)

    @override
    def _page_size(self, page: SingleResult) -> int:
        return len(page)

    @override
    def _page_rows(self, page: SingleResult) -> list[RowType]:
        return page.rows()

    @override
    def _is_fatal(self, error: MilvusException) -> bool:
        return isinstance(error, (MilvusServerFailedException, CursorException))

    @override
    def close(self) -> None:
        self._cursor = replace(self._cursor, cache=())
        AbstractIterator.close(self)

    def _request_limit(self) -> int:
        limit = min(self.arguments.batch_size * SEARCH_EXTEND_RATE, MAX_BATCH_SIZE)
        if self.arguments.ef is not None:
            limit = min(limit, self.arguments.ef)
        return limit

    def _max_width(self, cursor: SearchCursor) -> float:
        return (
            cursor.initial_width
            * self.api_options.iterator_options.search_max_width_factor
        )

    def _grown_width(self, cursor: SearchCursor) -> float:
        return min(
            cursor.width
            * self.api_options.iterator_options.search_width_growth_factor,
            self._max_width(cursor),
        )

    def _search(
        self,
        cursor: SearchCursor,
        *,
        limit: int,
        filter: str,
        search_params: dict[str, Any],
        timeout_manager: MultiCallTimeoutManager,
    ) -> tuple[SingleResult, int]:
        timeout_context = timeout_manager.remaining_timeout(
            cap_time_ms=self.api_options.timeout_options.request_timeout_ms,
            cap_timeout_label="request_timeout_ms",
        )
        results, reported_ts = self._engine._fetch_page(
            limit=limit,
            offset=0,
            filter=filter,
            search_params=search_params,
            guarantee_timestamp=cursor.session_ts,
            timeout_context=timeout_context,
        )
        if len(results) > 1:
            raise UnexpectedServerResponseException(
                text=f"Faulty response from search ({len(results)} result sets "
                "for one target vector).",
                raw_response=None,
            )
        result = results[0] if len(results) else self._empty_page()
        return (result, self._pin_session_ts(cursor.session_ts, reported_ts))

    def _tie_ids(self, result: SingleResult, tail: float) -> set[PrimaryKeyType]:
        return {
            pk
            for pk, score in zip(result.ids, result.scores)
            if _same_score(score, tail)
        }

    def _check_filtered_ids(self, cursor: SearchCursor) -> None:
        max_filtered_ids = self.api_options.iterator_options.max_filtered_ids
        if len(cursor.filtered_ids) > max_filtered_ids:
            raise CursorException(
                text=(
                    f"More than {max_filtered_ids} matches share the score "
                    f"{cursor.tail_distance}: cannot iterate past them."
                ),
                cursor_state=repr(cursor),
            )

    def _first_search(
        self, cursor: SearchCursor, timeout_manager: MultiCallTimeoutManager
    ) -> SearchCursor:
        """A plain top-k search, establishing the boundary and the width."""
        self._state = IteratorState.EXPANDING
        result, session_ts = self._search(
            cursor,
            limit=self._request_limit_first(),
            filter=self.arguments.filter,
            search_params=self._base_params,
            timeout_manager=timeout_manager,
        )
        self._state = IteratorState.FILTERING
        if len(result) == 0:
            logger.debug("search iterator: the first search found nothing")
            return replace(
                cursor, initialized=True, exhausted=True, session_ts=session_ts
            )
        tail = result.scores[-1]
        width = max(
            abs(result.scores[0] - tail),
            self.api_options.iterator_options.search_initial_width,
        )
        new_cursor = replace(
            cursor,
            initialized=True,
            tail_distance=tail,
            width=width,
            initial_width=width,
            filtered_ids=frozenset(self._tie_ids(result, tail)),
            cache=(result,),
            session_ts=session_ts,
        )
        self._check_filtered_ids(new_cursor)
        return new_cursor

    def _request_limit_first(self) -> int:
        if self.arguments.ef is not None:
            return min(self.arguments.batch_size, self.arguments.ef)
        return self.arguments.batch_size

    def _range_params(self, tail: float, width: float) -> tuple[dict[str, Any], bool]:
        """
        The search params of the next range search, plus whether its radius
        is the one given by the caller (i.e. the scan reaches its bound).
        """
        user_radius = self.arguments.radius
        radius = tail + width if self._is_distance else tail - width
        if user_radius is not None and (
            radius >= user_radius if self._is_distance else radius <= user_radius
        ):
            radius = user_radius
            clamped = True
        else:
            clamped = False
        params = {
            **self._base_params.get("params", {}),
            RADIUS: radius,
            RANGE_FILTER: tail,
        }
        return ({**self._base_params, "params": params}, clamped)

    def _range_search(
        self,
        cursor: SearchCursor,
        tail: float,
        page_size: int,
        timeout_manager: MultiCallTimeoutManager,
    ) -> SearchCursor:
        """One range search beyond the tail, then the boundary bookkeeping."""
        self._state = IteratorState.EXPANDING
        search_params, clamped = self._range_params(tail, cursor.width)
        exclusion = (
            pk_list_filter(
                self.primary_key_name,
                sorted(cursor.filtered_ids, key=str),
                negate=True,
                pk_type=self.primary_key_type,
            )
            if cursor.filtered_ids
            else None
        )
        result, session_ts = self._search(
            cursor,
            limit=self._request_limit(),
            filter=combine_filters(self.arguments.filter, exclusion),
            search_params=search_params,
            timeout_manager=timeout_manager,
        )

        self._state = IteratorState.FILTERING
        keep = [
            index
            for index, pk in enumerate(result.ids)
            if pk not in cursor.filtered_ids
        ]
        if len(keep) < len(result):
            result = result.take(keep)
        cursor = replace(cursor, session_ts=session_ts)

        if len(result) == 0:
            if clamped or cursor.width >= self._max_width(cursor):
                logger.debug(
                    "search iterator: range exhausted at score "
                    f"{cursor.tail_distance} (width {cursor.width})"
                )
                return replace(cursor, exhausted=True)
            new_width = self._grown_width(cursor)
            logger.debug(f"search iterator: widening range to {new_width}")
            return replace(cursor, width=new_width)

        new_tail = result.scores[-1]
        new_ties = self._tie_ids(result, new_tail)
        if _same_score(new_tail, tail):
            filtered_ids = cursor.filtered_ids | new_ties
        else:
            filtered_ids = frozenset(new_ties)
        new_width = cursor.width
        if len(result) < page_size:
            new_width = self._grown_width(cursor)
            if new_width != cursor.width:
                logger.debug(f"search iterator: widening range to {new_width}")
        new_cursor = replace(
            cursor,
            tail_distance=new_tail,
            filtered_ids=filtered_ids,
            width=new_width,
            cache=cursor.cache + (result,),
        )
        self._check_filtered_ids(new_cursor)
        return new_cursor

    @override
    def _advance(self) -> tuple[SingleResult, SearchCursor, bool]:
        cursor = self._cursor
        bounded_limit = self.arguments.bounded_limit
        if bounded_limit is not None and cursor.returned_count >= bounded_limit:
            return (self._empty_page(), cursor, True)
        page_size = (
            self.arguments.batch_size
            if bounded_limit is None
            else min(self.arguments.batch_size, bounded_limit - cursor.returned_count)
        )

        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=self.api_options.timeout_options.general_method_timeout_ms,
            timeout_label="general_method_timeout_ms",
        )
        if not cursor.initialized:
            cursor = self._first_search(cursor, timeout_manager)
        max_rounds = self.api_options.iterator_options.search_max_rounds
        rounds = 0
        while (
            cursor.cached_count < page_size
            and not cursor.exhausted
            and cursor.tail_distance is not None
        ):
            if rounds >= max_rounds:
                logger.warning(
                    f"search iterator: {max_rounds} range searches could not "
                    f"fill a page of {page_size} (width {cursor.width})"
                )
                break
            rounds += 1
            cursor = self._range_search(
                cursor, cursor.tail_distance, page_size, timeout_manager
            )

        page, cache = _pop_cached(cursor.cache, page_size, self.primary_key_name)
        new_cursor = replace(
            cursor,
            cache=cache,
            returned_count=cursor.returned_count + len(page),
        )
        # a page emptied by the round budget alone is not the end
        done = (len(page) == 0 and new_cursor.exhausted) or (
            bounded_limit is not None and new_cursor.returned_count >= bounded_limit
        )
        return (page, new_cursor, done)
