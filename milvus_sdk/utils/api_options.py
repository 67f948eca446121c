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

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from milvus_sdk.authentication import (
    StaticTokenProvider,
    TokenProvider,
    coerce_possible_token_provider,
)
from milvus_sdk.constants import CallerType
from milvus_sdk.settings.defaults import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_COLLECTION_ADMIN_TIMEOUT_MS,
    DEFAULT_GENERAL_METHOD_TIMEOUT_MS,
    DEFAULT_INITIAL_BACKOFF_MS,
    DEFAULT_MAX_BACKOFF_MS,
    DEFAULT_MAX_FILTERED_IDS,
    DEFAULT_MAX_RETRY_TIMES,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRY_ON_RATE_LIMIT,
    DEFAULT_SEARCH_INITIAL_WIDTH,
    DEFAULT_SEARCH_MAX_ROUNDS,
    DEFAULT_SEARCH_MAX_WIDTH_FACTOR,
    DEFAULT_SEARCH_WIDTH_GROWTH_FACTOR,
    FIXED_SECRET_PLACEHOLDER,
)
from milvus_sdk.utils.unset import _UNSET, UnsetType


def _pick(override: Any, inherited: Any) -> Any:
    return inherited if isinstance(override, UnsetType) else override


@dataclass
class TimeoutOptions:
    """
    The group of settings for the API Options concerning the configured timeouts
    for various kinds of operations.

    All timeout values are integers expressed in milliseconds. A timeout of zero
    signifies that no timeout is imposed at all on that kind of operation.

    Values that are left unspecified keep the values inherited from the
    object being customized. See `APIOptions` for usage.

    Attributes:
        request_timeout_ms: the timeout imposed on a single HTTP request.
            Defaults to 10 s.
        general_method_timeout_ms: a timeout to use on the overall duration of a
            method invocation. For single-request methods the least of this and
            `request_timeout_ms` applies. For multi-request operations, such as one
            `next()` step of a search iterator, this bounds the whole sequence of
            requests while each request still obeys `request_timeout_ms`.
            Defaults to 30 s.
        collection_admin_timeout_ms: a timeout for collection, partition and index
            administration (create, load, release, drop...). Defaults to 60 s.
    """

    request_timeout_ms: int | UnsetType = _UNSET
    general_method_timeout_ms: int | UnsetType = _UNSET
    collection_admin_timeout_ms: int | UnsetType = _UNSET


@dataclass
class FullTimeoutOptions(TimeoutOptions):
    """
    The "full" version of `TimeoutOptions`, with the guarantee that all of its
    members have defined values. See `TimeoutOptions` for the attributes.
    """

    request_timeout_ms: int
    general_method_timeout_ms: int
    collection_admin_timeout_ms: int

    def __init__(
        self,
        *,
        request_timeout_ms: int,
        general_method_timeout_ms: int,
        collection_admin_timeout_ms: int,
    ) -> None:
        TimeoutOptions.__init__(
            self,
            request_timeout_ms=request_timeout_ms,
            general_method_timeout_ms=general_method_timeout_ms,
            collection_admin_timeout_ms=collection_admin_timeout_ms,
        )

    def with_override(self, other: TimeoutOptions) -> FullTimeoutOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        Args:
            other: a not-necessarily-fully-specified options object. All its defined
                settings take precedence.
        """

        return FullTimeoutOptions(
            request_timeout_ms=(
                other.request_timeout_ms
                if not isinstance(other.request_timeout_ms, UnsetType)
                else self.request_timeout_ms
            ),
            general_method_timeout_ms=(
                other.general_method_timeout_ms
                if not isinstance(other.general_method_timeout_ms, UnsetType)
                else self.general_method_timeout_ms
            ),
            collection_admin_timeout_ms=(
                other.collection_admin_timeout_ms
                if not isinstance(other.collection_admin_timeout_ms, UnsetType)
                else self.collection_admin_timeout_ms
            ),
        )


@dataclass
class RetryOptions:
    """
    The group of settings controlling how the client repeats requests that
    the server rejected as rate-limited. No other failure is ever retried.

    Attributes:
        max_retry_times: the maximum number of attempts for a single request.
            Defaults to 75.
        initial_backoff_ms: the wait before the first retry. Defaults to 10 ms.
        max_backoff_ms: the upper bound to the wait between retries.
            Defaults to 3 s.
        backoff_multiplier: the factor applied to the wait after each retry.
            Defaults to 3.
        retry_on_rate_limit: whether to retry rate-limited requests at all.
            Defaults to True.
    """

    max_retry_times: int | UnsetType = _UNSET
    initial_backoff_ms: int | UnsetType = _UNSET
    max_backoff_ms: int | UnsetType = _UNSET
    backoff_multiplier: float | UnsetType = _UNSET
    retry_on_rate_limit: bool | UnsetType = _UNSET


@dataclass
class FullRetryOptions(RetryOptions):
    """
    The "full" version of `RetryOptions`, with the guarantee that all of its
    members have defined values. See `RetryOptions` for the attributes.
    """

    max_retry_times: int
    initial_backoff_ms: int
    max_backoff_ms: int
    backoff_multiplier: float
    retry_on_rate_limit: bool

    def __init__(
        self,
        *,
        max_retry_times: int,
        initial_backoff_ms: int,
        max_backoff_ms: int,
        backoff_multiplier: float,
        retry_on_rate_limit: bool,
    ) -> None:
        RetryOptions.__init__(
            self,
            max_retry_times=max_retry_times,
            initial_backoff_ms=initial_backoff_ms,
            max_backoff_ms=max_backoff_ms,
            backoff_multiplier=backoff_multiplier,
            retry_on_rate_limit=retry_on_rate_limit,
        )

    def with_override(self, other: RetryOptions) -> FullRetryOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.
        """

        return FullRetryOptions(
            max_retry_times=_pick(other.max_retry_times, self.max_retry_times),
            initial_backoff_ms=_pick(other.initial_backoff_ms, self.initial_backoff_ms),
            max_backoff_ms=_pick(other.max_backoff_ms, self.max_backoff_ms),
            backoff_multiplier=_pick(other.backoff_multiplier, self.backoff_multiplier),
            retry_on_rate_limit=_pick(
                other.retry_on_rate_limit, self.retry_on_rate_limit
            ),
        )

    def backoff_ms(self, attempt: int) -> int:
        """The wait before retry number `attempt` (starting from 1)."""
        wait_ms = self.initial_backoff_ms * (self.backoff_multiplier ** (attempt - 1))
        return int(min(wait_ms, self.max_backoff_ms))


@dataclass
class IteratorOptions:
    """
    The group of settings tuning the search iterator, which pages through
    search results by issuing range searches of adaptive width.

    Attributes:
        search_initial_width: the width used when the first page of results
            gives no usable spread of scores (e.g. all ties). Defaults to 0.05.
        search_width_growth_factor: the factor applied to the width whenever a
            range search returns fewer rows than the batch size. Defaults to 2.
        search_max_width_factor: the width never exceeds the initial width
            times this factor. Defaults to 1024.
        search_max_rounds: the maximum number of range searches issued by a
            single `next()` call. Defaults to 20. When they find nothing new,
            `next()` returns an empty page and the iterator stays alive.
        max_filtered_ids: the maximum number of rows sharing the same boundary
            score the iterator is willing to track. Beyond this, iteration
            fails. Defaults to 100000.
    """

    search_initial_width: float | UnsetType = _UNSET
    search_width_growth_factor: float | UnsetType = _UNSET
    search_max_width_factor: float | UnsetType = _UNSET
    search_max_rounds: int | UnsetType = _UNSET
    max_filtered_ids: int | UnsetType = _UNSET


@dataclass
class FullIteratorOptions(IteratorOptions):
    """
    The "full" version of `IteratorOptions`, with the guarantee that all of its
    members have defined values. See `IteratorOptions` for the attributes.
    """

    search_initial_width: float
    search_width_growth_factor: float
    search_max_width_factor: float
    search_max_rounds: int
    max_filtered_ids: int

    def __init__(
        self,
        *,
        search_initial_width: float,
        search_width_growth_factor: float,
        search_max_width_factor: float,
        search_max_rounds: int,
        max_filtered_ids: int,
    ) -> None:
        IteratorOptions.__init__(
            self,
            search_initial_width=search_initial_width,
            search_width_growth_factor=search_width_growth_factor,
            search_max_width_factor=search_max_width_factor,
            search_max_rounds=search_max_rounds,
            max_filtered_ids=max_filtered_ids,
        )

    def with_override(self, other: IteratorOptions) -> FullIteratorOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.
        """

        return FullIteratorOptions(
            search_initial_width=_pick(
                other.search_initial_width, self.search_initial_width
            ),
            search_width_growth_factor=_pick(
                other.search_width_growth_factor, self.search_width_growth_factor
            ),
            search_max_width_factor=_pick(
                other.search_max_width_factor, self.search_max_width_factor
            ),
            search_max_rounds=_pick(other.search_max_rounds, self.search_max_rounds),
            max_filtered_ids=_pick(other.max_filtered_ids, self.max_filtered_ids),
        )


@dataclass
class APIOptions:
    """
    This class represents all settings that can be configured for how the
    client interacts with the server.

    In order to customize the behavior from its preset defaults, one should create
    an `APIOptions` object and pass it as the `api_options` argument to the
    MilvusClient constructor or to its `with_options` method.
    The APIOptions object can define zero, some or all of its members, overriding
    the corresponding settings and keeping, for all unspecified settings, the
    inherited values.

    With the exception of the "additional headers" and the "redacted header
    names", which are merged with the inherited ones, the override logic is the
    following: if an override is provided (even if it is None), it completely
    replaces the inherited value.

    Attributes:
        callers: an iterable of "caller identities" to be used in identifying the
            caller, through the User-Agent header, when issuing requests.
            Each caller identity is a `(name, version)` 2-item tuple whose
            elements can be strings or None.
        additional_headers: free-form dictionary of additional headers to
            employ when issuing requests. Passing a key with a value of None means
            that a certain header is suppressed when issuing the request.
        redacted_header_names: A set of (case-insensitive) strings denoting the
            headers that contain secrets, thus are to be masked when logging
            request details.
        token: an instance of TokenProvider to provide authentication to requests.
            Passing a string, or None, to this constructor parameter will get it
            automatically converted into a StaticTokenProvider.
        timeout_options: an instance of `TimeoutOptions` (see).
        retry_options: an instance of `RetryOptions` (see).
        iterator_options: an instance of `IteratorOptions` (see).
    """

    callers: Sequence[CallerType] | UnsetType = _UNSET
    additional_headers: dict[str, str | None] | UnsetType = _UNSET
    redacted_header_names: set[str] | UnsetType = _UNSET
    token: TokenProvider | UnsetType = _UNSET

    timeout_options: TimeoutOptions | UnsetType = _UNSET
    retry_options: RetryOptions | UnsetType = _UNSET
    iterator_options: IteratorOptions | UnsetType = _UNSET

    def __init__(
        self,
        *,
        callers: Sequence[CallerType] | UnsetType = _UNSET,
        additional_headers: dict[str, str | None] | UnsetType = _UNSET,
        redacted_header_names: Iterable[str] | UnsetType = _UNSET,
        token: str | TokenProvider | None | UnsetType = _UNSET,
        timeout_options: TimeoutOptions | UnsetType = _UNSET,
        retry_options: RetryOptions | UnsetType = _UNSET,
        iterator_options: IteratorOptions | UnsetType = _UNSET,
    ) -> None:
        self.callers = callers
        self.additional_headers = additional_headers
        self.redacted_header_names = (
            _UNSET
            if isinstance(redacted_header_names, UnsetType)
            else set(redacted_header_names)
        )
        self.token = coerce_possible_token_provider(token)
        self.timeout_options = timeout_options
        self.retry_options = retry_options
        self.iterator_options = iterator_options

    def __repr__(self) -> str:
        _redacted_header_names = (
            set()
            if isinstance(self.redacted_header_names, UnsetType)
            else self.redacted_header_names
        )
        _additional_headers: dict[str, str | None] | UnsetType
        if not isinstance(self.additional_headers, UnsetType):
            _additional_headers = {
                k: v if k not in _redacted_header_names else FIXED_SECRET_PLACEHOLDER
                for k, v in self.additional_headers.items()
            }
        else:
            _additional_headers = _UNSET
        _token_desc: str | None
        if not isinstance(self.token, UnsetType) and self.token:
            _token_desc = f"token={self.token}"
        else:
            _token_desc = None

        non_unset_pieces = [
            pc
            for pc in (
                None
                if isinstance(self.callers, UnsetType)
                else f"callers={self.callers}",
                None
                if isinstance(_additional_headers, UnsetType)
                else f"additional_headers={_additional_headers}",
                None
                if isinstance(self.redacted_header_names, UnsetType)
                else f"redacted_header_names={self.redacted_header_names}",
                _token_desc,
                None
                if isinstance(self.timeout_options, UnsetType)
                else f"timeout_options={self.timeout_options}",
                None
                if isinstance(self.retry_options, UnsetType)
                else f"retry_options={self.retry_options}",
                None
                if isinstance(self.iterator_options, UnsetType)
                else f"iterator_options={self.iterator_options}",
            )
            if pc is not None
        ]
        inner_desc = ", ".join(non_unset_pieces)
        return f"{self.__class__.__name__}({inner_desc})"


@dataclass
class FullAPIOptions(APIOptions):
    """
    The "full" version of `APIOptions`, with the guarantee that all of its members
    have defined values. This is what the client holds as its `.api_options`
    attribute. See `APIOptions` for the attributes.
    """

    callers: Sequence[CallerType]
    additional_headers: dict[str, str | None]
    redacted_header_names: set[str]
    token: TokenProvider

    timeout_options: FullTimeoutOptions
    retry_options: FullRetryOptions
    iterator_options: FullIteratorOptions

    def __init__(
        self,
        *,
        callers: Sequence[CallerType],
        additional_headers: dict[str, str | None],
        redacted_header_names: set[str],
        token: str | TokenProvider | None,
        timeout_options: FullTimeoutOptions,
        retry_options: FullRetryOptions,
        iterator_options: FullIteratorOptions,
    ) -> None:
        APIOptions.__init__(
            self,
            callers=callers,
            additional_headers=additional_headers,
            redacted_header_names=redacted_header_names,
            token=token,
            timeout_options=timeout_options,
            retry_options=retry_options,
            iterator_options=iterator_options,
        )

    def __repr__(self) -> str:
        _token_desc = f"token={self.token}" if self.token else None
        non_unset_pieces = [pc for pc in (_token_desc, "...") if pc is not None]
        inner_desc = ", ".join(non_unset_pieces)
        return f"{self.__class__.__name__}({inner_desc})"

    def with_override(self, other: APIOptions | None | UnsetType) -> FullAPIOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        The override logic acts hierarchically, so as to deal with attributes that
        are, in turn, options object of one type of another.

        Args:
            other: a not-necessarily-fully-specified options object. All its defined
                settings take precedence.
        """

        if isinstance(other, UnsetType) or other is None:
            return self

        additional_headers: dict[str, str | None]
        redacted_header_names: set[str]
        timeout_options: FullTimeoutOptions
        retry_options: FullRetryOptions
        iterator_options: FullIteratorOptions

        if isinstance(other.additional_headers, UnsetType):
            additional_headers = self.additional_headers
        else:
            additional_headers = {
                **self.additional_headers,
                **other.additional_headers,
            }
        if isinstance(other.redacted_header_names, UnsetType):
            redacted_header_names = self.redacted_header_names
        else:
            redacted_header_names = (
                self.redacted_header_names | other.redacted_header_names
            )

        if isinstance(other.timeout_options, TimeoutOptions):
            timeout_options = self.timeout_options.with_override(other.timeout_options)
        else:
            timeout_options = self.timeout_options
        if isinstance(other.retry_options, RetryOptions):
            retry_options = self.retry_options.with_override(other.retry_options)
        else:
            retry_options = self.retry_options
        if isinstance(other.iterator_options, IteratorOptions):
            iterator_options = self.iterator_options.with_override(
                other.iterator_options
            )
        else:
            iterator_options = self.iterator_options

        return FullAPIOptions(
            callers=(
                other.callers
                if not isinstance(other.callers, UnsetType)
                else self.callers
            ),
            additional_headers=additional_headers,
            redacted_header_names=redacted_header_names,
            token=other.token if not isinstance(other.token, UnsetType) else self.token,
            timeout_options=timeout_options,
            retry_options=retry_options,
            iterator_options=iterator_options,
        )


defaultTimeoutOptions = FullTimeoutOptions(
    request_timeout_ms=DEFAULT_REQUEST_TIMEOUT_MS,
    general_method_timeout_ms=DEFAULT_GENERAL_METHOD_TIMEOUT_MS,
    collection_admin_timeout_ms=DEFAULT_COLLECTION_ADMIN_TIMEOUT_MS,
)
defaultRetryOptions = FullRetryOptions(
    max_retry_times=DEFAULT_MAX_RETRY_TIMES,
    initial_backoff_ms=DEFAULT_INITIAL_BACKOFF_MS,
    max_backoff_ms=DEFAULT_MAX_BACKOFF_MS,
    backoff_multiplier=DEFAULT_BACKOFF_MULTIPLIER,
    retry_on_rate_limit=DEFAULT_RETRY_ON_RATE_LIMIT,
)
defaultIteratorOptions = FullIteratorOptions(
    search_initial_width=DEFAULT_SEARCH_INITIAL_WIDTH,
    search_width_growth_factor=DEFAULT_SEARCH_WIDTH_GROWTH_FACTOR,
    search_max_width_factor=DEFAULT_SEARCH_MAX_WIDTH_FACTOR,
    search_max_rounds=DEFAULT_SEARCH_MAX_ROUNDS,
    max_filtered_ids=DEFAULT_MAX_FILTERED_IDS,
)


def defaultAPIOptions() -> FullAPIOptions:
    """
    Return the default APIOptions object, based on the 'grand defaults'
    hardcoded in this package.
    """

    return FullAPIOptions(
        callers=[],
        additional_headers={},
        redacted_header_names=set(),
        token=StaticTokenProvider(None),
        timeout_options=defaultTimeoutOptions,
        retry_options=defaultRetryOptions,
        iterator_options=defaultIteratorOptions,
    )
