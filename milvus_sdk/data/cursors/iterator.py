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
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Generic, Iterator, TypeVar

from milvus_sdk.constants import RowType
from milvus_sdk.exceptions import MilvusException

# The type of the pages returned by an iterator
TPAGE = TypeVar("TPAGE")
# The type of the cursor-state snapshots of an iterator
TCURSOR = TypeVar("TCURSOR")


logger = logging.getLogger(__name__)


def _fallback_session_ts() -> int:
    """
    A client-side hybrid timestamp (physical milliseconds shifted by the
    18 logical bits), used when the server reports no session timestamp.
    """
    return int(time.time() * 1000) << 18


class IteratorState(Enum):
    """
    This enum expresses the possible states for an iterator.

    Values:
        IDLE: no page requested yet.
        FETCHING: a query iterator is issuing its request.
        EXPANDING: a search iterator is issuing a range search.
        FILTERING: a search iterator is deduplicating a range-search result.
        YIELDING: the last `next()` returned a page; more may follow.
        DONE: iteration is over. Every `next()` returns an empty page.
        ERROR: a fatal error occurred (and was raised). Every `next()`
            returns an empty page.
    """

    IDLE = "idle"
    FETCHING = "fetching"
    EXPANDING = "expanding"
    FILTERING = "filtering"
    YIELDING = "yielding"
    DONE = "done"
    ERROR = "error"


class AbstractIterator(ABC, Generic[TPAGE, TCURSOR]):
    """
    An iterator over the results of a query or a search, obtained from a
    `MilvusClient`. Each call to `next()` returns one page of results. Once
    the iteration is over (`alive` is False), `next()` keeps returning empty
    pages.

    This class is not meant to be directly instantiated by the user, rather it
    is a superclass capturing the mechanisms common to the query and search
    iterators.

    Failures of a `next()` call are raised unchanged. Unless stated otherwise
    by the subclass, a failed call leaves the iterator exactly as it was, so
    the same call can be repeated. There is no automatic retry.

    Iterators are not safe for use by multiple threads at once: concurrent
    pagination requires separate iterator instances.
    """

    _state: IteratorState
    _cursor: TCURSOR
    _last_error: MilvusException | None

    def __init__(self, cursor: TCURSOR) -> None:
        self._state = IteratorState.IDLE
        self._cursor = cursor
        self._last_error = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(state={self._state.value}, cursor={self._cursor})"

    def __iter__(self) -> Iterator[TPAGE]:
        """Iterate over the non-empty pages, until the iteration is over."""
        while self.alive:
            page = self.next()
            if self._page_size(page) > 0:
                yield page

    @property
    def state(self) -> IteratorState:
        """
        The current state of this iterator.

        Returns:
            a value in `milvus_sdk.cursors.IteratorState`.
        """

        return self._state

    @property
    def cursor(self) -> TCURSOR:
        """
        An immutable snapshot of the pagination state of this iterator.
        Two snapshots taken around a failed `next()` call compare equal.
        """

        return self._cursor

    @property
    def last_error(self) -> MilvusException | None:
        """The exception raised by the last `next()` call, None if it succeeded."""

        return self._last_error

    @property
    def alive(self) -> bool:
        """Whether `next()` may still return non-empty pages."""

        return self._state not in {IteratorState.DONE, IteratorState.ERROR}

    @property
    @abstractmethod
    def returned_count(self) -> int:
        """The number of rows returned by this iterator so far."""
        ...

    @abstractmethod
    def _empty_page(self) -> TPAGE: ...

    @abstractmethod
    def _page_size(self, page: TPAGE) -> int: ...

    @abstractmethod
    def _page_rows(self, page: TPAGE) -> list[RowType]: ...

    @abstractmethod
    def _advance(self) -> tuple[TPAGE, TCURSOR, bool]:
        """
        Compute the next page without touching the iterator: return the page,
        the cursor state after it and whether the iteration is then over.
        """
        ...

    def _is_fatal(self, error: MilvusException) -> bool:
        """Whether an error ends the iteration (state ERROR)."""
        return False

    def next(self) -> TPAGE:
        """
        Return the next page of results, fetching from the server as needed.

        Returns:
            a page of results. An empty page means the iteration is over,
            unless `alive` is still True (see the subclass for when a page
            can come back empty with more results to follow).

        Raises:
            MilvusException: whatever went wrong in the underlying requests.
        """

        if not self.alive:
            return self._empty_page()
        previous_state = self._state
        try:
            page, new_cursor, done = self._advance()
        except MilvusException as exc:
            self._last_error = exc
            if self._is_fatal(exc):
                logger.warning(f"{self.__class__.__name__} stopping on error: {exc}")
                self._state = IteratorState.ERROR
            else:
                self._state = previous_state
            raise
        self._cursor = new_cursor
        self._last_error = None
        if done:
            self._state = IteratorState.DONE
        else:
            self._state = IteratorState.YIELDING
        return page

    def close(self) -> None:
        """
        Stop the iteration, discarding any locally cached results.
        No server-side resource is involved.
        """

        self._state = IteratorState.DONE

    def to_list(self) -> list[RowType]:
        """
        Consume the iterator entirely, returning all remaining rows
        as a list of dictionaries.
        """

        rows: list[RowType] = []
        for page in self:
            rows.extend(self._page_rows(page))
        return rows

    @staticmethod
    def _pin_session_ts(pinned: int | None, reported: Any) -> int:
        if pinned is not None:
            return pinned
        if isinstance(reported, int) and reported > 0:
            return reported
        return _fallback_session_ts()
