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

# Defaults/settings for the connection
DEFAULT_DATABASE_NAME = "default"
DEFAULT_URI = "http://localhost:19530"
API_PATH = "/v2/vectordb"
DEFAULT_AUTH_HEADER = "Authorization"
DEFAULT_AUTH_PREFIX = "Bearer "

# Response envelope
RESPONSE_CODE_SUCCESS = 0
RESPONSE_CODE_RATE_LIMIT = 8

# Timeouts (milliseconds; zero means no timeout)
DEFAULT_REQUEST_TIMEOUT_MS = 10000
DEFAULT_GENERAL_METHOD_TIMEOUT_MS = 30000
DEFAULT_COLLECTION_ADMIN_TIMEOUT_MS = 60000

# Retries of rate-limited calls
DEFAULT_MAX_RETRY_TIMES = 75
DEFAULT_INITIAL_BACKOFF_MS = 10
DEFAULT_MAX_BACKOFF_MS = 3000
DEFAULT_BACKOFF_MULTIPLIER = 3
DEFAULT_RETRY_ON_RATE_LIMIT = True

# Limits of DQL requests
MAX_BATCH_SIZE = 16384
# offset + limit of a query may not exceed this
MAX_QUERY_RESULT_WINDOW = 16384
DEFAULT_SEARCH_LIMIT = 10
SEARCH_EXTEND_RATE = 10

# Tuning of the search iterator
DEFAULT_SEARCH_INITIAL_WIDTH = 0.05
DEFAULT_SEARCH_WIDTH_GROWTH_FACTOR = 2.0
DEFAULT_SEARCH_MAX_WIDTH_FACTOR = 1024.0
DEFAULT_SEARCH_MAX_ROUNDS = 20
DEFAULT_MAX_FILTERED_IDS = 100000

# Names used in search parameters and result rows
RADIUS = "radius"
RANGE_FILTER = "range_filter"
EF = "ef"
SCORE_FIELD_NAME = "score"
DYNAMIC_FIELD_NAME = "$meta"
COUNT_FIELD_NAME = "count(*)"
DEFAULT_PRIMARY_KEY_NAME = "id"

# Settings for redacting secrets in string representations and logging
SECRETS_REDACT_ENDING = "..."
SECRETS_REDACT_CHAR = "*"
SECRETS_REDACT_ENDING_LENGTH = 3
FIXED_SECRET_PLACEHOLDER = "***"
DEFAULT_REDACTED_HEADER_NAMES = {
    DEFAULT_AUTH_HEADER,
}

# Deprecation notices
GET_FIELD_BY_NAME_DEPRECATION_NOTICE = (
    "Please use the `output_field(name)` method instead, which behaves identically."
)
