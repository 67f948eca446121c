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

import time

import pytest

from milvus_sdk.exceptions import (
    MilvusTimeoutException,
    MultiCallTimeoutManager,
    _select_singlereq_timeout_ca,
    _select_singlereq_timeout_gm,
)
from milvus_sdk.utils.api_options import FullTimeoutOptions


class TestTimeouts:
    @pytest.mark.describe("test MultiCallTimeoutManager")
    def test_multicalltimeoutmanager(self) -> None:
        mgr_n = MultiCallTimeoutManager(overall_timeout_ms=None)
        assert mgr_n.remaining_timeout().request_ms is None
        time.sleep(0.5)
        assert mgr_n.remaining_timeout().request_ms is None

        mgr_1 = MultiCallTimeoutManager(overall_timeout_ms=1000)
        crt_1 = mgr_1.remaining_timeout().request_ms
        assert crt_1 is not None
        time.sleep(0.6)
        crt_2 = mgr_1.remaining_timeout().request_ms
        assert crt_2 is not None
        time.sleep(0.6)
        with pytest.raises(MilvusTimeoutException):
            mgr_1.remaining_timeout().request_ms

    @pytest.mark.describe("test MultiCallTimeoutManager with a cap")
    def test_multicalltimeoutmanager_cap(self) -> None:
        mgr_n = MultiCallTimeoutManager(overall_timeout_ms=0, timeout_label="gm")
        ctx_n = mgr_n.remaining_timeout(cap_time_ms=300, cap_timeout_label="req")
        assert ctx_n.request_ms == 300
        assert ctx_n.label == "req"

        mgr_1 = MultiCallTimeoutManager(overall_timeout_ms=60000, timeout_label="gm")
        ctx_capped = mgr_1.remaining_timeout(cap_time_ms=500, cap_timeout_label="req")
        assert ctx_capped.request_ms == 500
        assert ctx_capped.label == "req"
        ctx_uncapped = mgr_1.remaining_timeout(
            cap_time_ms=120000, cap_timeout_label="req"
        )
        assert ctx_uncapped.request_ms is not None
        assert ctx_uncapped.request_ms <= 60000
        assert ctx_uncapped.label == "gm"
        assert ctx_uncapped.nominal_ms == 60000

    @pytest.mark.describe("test timeout message labels")
    def test_multicalltimeoutmanager_message(self) -> None:
        mgr = MultiCallTimeoutManager(
            overall_timeout_ms=1, timeout_label="general_method_timeout_ms"
        )
        time.sleep(0.05)
        with pytest.raises(MilvusTimeoutException) as exc:
            mgr.remaining_timeout()
        assert "general_method_timeout_ms" in str(exc.value)
        assert exc.value.timeout_type == "generic"

    @pytest.mark.describe("test single-request timeout selection")
    def test_singlereq_timeout_selection(self) -> None:
        to_opts = FullTimeoutOptions(
            request_timeout_ms=10000,
            general_method_timeout_ms=30000,
            collection_admin_timeout_ms=60000,
        )
        assert _select_singlereq_timeout_gm(timeout_options=to_opts) == (
            10000,
            "request_timeout_ms",
        )
        assert _select_singlereq_timeout_gm(
            timeout_options=to_opts, timeout_ms=500
        ) == (500, "timeout_ms")
        assert _select_singlereq_timeout_gm(
            timeout_options=to_opts, request_timeout_ms=700, timeout_ms=900
        ) == (700, "request_timeout_ms")
        assert _select_singlereq_timeout_ca(timeout_options=to_opts) == (
            60000,
            "collection_admin_timeout_ms",
        )

        no_req_opts = FullTimeoutOptions(
            request_timeout_ms=0,
            general_method_timeout_ms=30000,
            collection_admin_timeout_ms=60000,
        )
        assert _select_singlereq_timeout_gm(timeout_options=no_req_opts) == (
            30000,
            "general_method_timeout_ms",
        )
