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

from milvus_sdk.authentication import StaticTokenProvider
from milvus_sdk.utils.api_options import (
    APIOptions,
    IteratorOptions,
    RetryOptions,
    TimeoutOptions,
    defaultAPIOptions,
)


class TestAPIOptions:
    @pytest.mark.describe("test of header inheritance in APIOptions")
    def test_apioptions_headers(self) -> None:
        opts_d = defaultAPIOptions()
        opts_1 = opts_d.with_override(
            APIOptions(
                additional_headers={"d": "y", "D": None},
                redacted_header_names={"x", "y"},
            )
        )
        opts_2 = opts_d.with_override(
            APIOptions(
                additional_headers={"D": "y"},
                redacted_header_names={"x"},
            )
        ).with_override(
            APIOptions(
                additional_headers={"d": "y", "D": None},
                redacted_header_names={"y"},
            )
        )

        assert opts_1 == opts_2

    @pytest.mark.describe("test of nested options inheritance in APIOptions")
    def test_apioptions_nested(self) -> None:
        opts_d = defaultAPIOptions()
        opts_1 = opts_d.with_override(
            APIOptions(
                timeout_options=TimeoutOptions(request_timeout_ms=1234),
                retry_options=RetryOptions(max_retry_times=3),
                iterator_options=IteratorOptions(search_initial_width=0.5),
            )
        )
        assert opts_1.timeout_options.request_timeout_ms == 1234
        assert (
            opts_1.timeout_options.general_method_timeout_ms
            == opts_d.timeout_options.general_method_timeout_ms
        )
        assert opts_1.retry_options.max_retry_times == 3
        assert opts_1.retry_options.retry_on_rate_limit
        assert opts_1.iterator_options.search_initial_width == 0.5
        assert (
            opts_1.iterator_options.max_filtered_ids
            == opts_d.iterator_options.max_filtered_ids
        )

        opts_2 = opts_1.with_override(
            APIOptions(timeout_options=TimeoutOptions(general_method_timeout_ms=0))
        )
        assert opts_2.timeout_options.request_timeout_ms == 1234
        assert opts_2.timeout_options.general_method_timeout_ms == 0
        assert opts_d.with_override(None) is opts_d

    @pytest.mark.describe("test of token coercion in APIOptions")
    def test_apioptions_token(self) -> None:
        opts = defaultAPIOptions().with_override(APIOptions(token="root:Milvus"))
        assert isinstance(opts.token, StaticTokenProvider)
        assert opts.token.get_token() == "root:Milvus"
        assert "root:Milvus" not in repr(opts)

    @pytest.mark.describe("test of retry backoff in RetryOptions")
    def test_retryoptions_backoff(self) -> None:
        retry_opts = defaultAPIOptions().retry_options.with_override(
            RetryOptions(initial_backoff_ms=10, backoff_multiplier=3, max_backoff_ms=200)
        )
        assert [retry_opts.backoff_ms(attempt) for attempt in range(1, 6)] == [
            10,
            30,
            90,
            200,
            200,
        ]
