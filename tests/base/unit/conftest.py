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
Fixtures for the unit tests: in-memory collections behind a fake channel.
"""

from __future__ import annotations

from typing import Iterator

import pytest
from fake_milvus import FakeMilvusCommander
from unit_utils import FAKE_FIELD_TYPES, make_rows

from milvus_sdk.constants import RowType


@pytest.fixture(scope="session")
def rows_25k() -> list[RowType]:
    return make_rows(25000)


@pytest.fixture(scope="session")
def rows_100k() -> list[RowType]:
    return make_rows(100000, seed=456)


@pytest.fixture
def fake_25k(rows_25k: list[RowType]) -> Iterator[FakeMilvusCommander]:
    fake = FakeMilvusCommander(rows_25k, field_types=FAKE_FIELD_TYPES)
    yield fake
    fake.close()


@pytest.fixture
def fake_5k() -> Iterator[FakeMilvusCommander]:
    fake = FakeMilvusCommander(make_rows(5000, seed=789), field_types=FAKE_FIELD_TYPES)
    yield fake
    fake.close()
