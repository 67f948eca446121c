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

from typing import Any, Dict, List, Optional, Tuple, Union

from milvus_sdk.utils.str_enum import StrEnum

RowType = Dict[str, Any]
PrimaryKeyType = Union[int, str]
SparseVectorType = Dict[int, float]
VectorType = Union[List[float], bytes, SparseVectorType]
CallerType = Tuple[Optional[str], Optional[str]]


class MetricType(StrEnum):
    """
    Similarity metrics. For L2, HAMMING and JACCARD a smaller value means
    closer vectors ("distance-like"); for the others a larger value does.
    """

    L2 = "L2"
    IP = "IP"
    COSINE = "COSINE"
    HAMMING = "HAMMING"
    JACCARD = "JACCARD"
    MHJACCARD = "MHJACCARD"
    BM25 = "BM25"


_DISTANCE_LIKE_METRICS = {
    MetricType.L2,
    MetricType.HAMMING,
    MetricType.JACCARD,
    MetricType.MHJACCARD,
}


def metric_is_distance(metric_type: str | MetricType) -> bool:
    """
    Whether, for the given metric, smaller values mean "more similar".

    Raises:
        ValueError: if the metric is not recognized.
    """
    return MetricType.coerce(metric_type) in _DISTANCE_LIKE_METRICS


class ConsistencyLevel(StrEnum):
    STRONG = "Strong"
    SESSION = "Session"
    BOUNDED = "Bounded"
    EVENTUALLY = "Eventually"


class IndexType(StrEnum):
    FLAT = "FLAT"
    IVF_FLAT = "IVF_FLAT"
    IVF_SQ8 = "IVF_SQ8"
    IVF_PQ = "IVF_PQ"
    HNSW = "HNSW"
    DISKANN = "DISKANN"
    AUTOINDEX = "AUTOINDEX"
    SCANN = "SCANN"
    BIN_FLAT = "BIN_FLAT"
    BIN_IVF_FLAT = "BIN_IVF_FLAT"
    SPARSE_INVERTED_INDEX = "SPARSE_INVERTED_INDEX"
    SPARSE_WAND = "SPARSE_WAND"
    INVERTED = "INVERTED"
    TRIE = "Trie"
    STL_SORT = "STL_SORT"


class LoadState(StrEnum):
    NOT_EXIST = "LoadStateNotExist"
    NOT_LOAD = "LoadStateNotLoad"
    LOADING = "LoadStateLoading"
    LOADED = "LoadStateLoaded"


__all__ = [
    "ConsistencyLevel",
    "IndexType",
    "LoadState",
    "MetricType",
    "metric_is_distance",
]
