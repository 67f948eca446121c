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

import json
import logging
import time
from types import TracebackType
from typing import Any, Dict, Iterable, Sequence, cast

import httpx

from milvus_sdk.constants import CallerType
from milvus_sdk.exceptions import (
    MilvusHttpException,
    MilvusNotConnectedException,
    MilvusRpcFailedException,
    MilvusServerFailedException,
    MilvusTimeoutException,
    UnexpectedServerResponseException,
    _TimeoutContext,
    to_timeout_exception,
)
from milvus_sdk.settings.defaults import (
    API_PATH,
    DEFAULT_REDACTED_HEADER_NAMES,
    FIXED_SECRET_PLACEHOLDER,
    RESPONSE_CODE_RATE_LIMIT,
    RESPONSE_CODE_SUCCESS,
)
from milvus_sdk.utils.api_options import FullRetryOptions, defaultRetryOptions
from milvus_sdk.utils.request_tools import (
    HttpMethod,
    log_httpx_request,
    log_httpx_response,
    to_httpx_timeout,
)
from milvus_sdk.utils.user_agents import (
    compose_full_user_agent,
    detect_milvus_sdk_user_agent,
)

user_agent_milvus_sdk = detect_milvus_sdk_user_agent()

logger = logging.getLogger(__name__)


class APICommander:
    """
    The RPC channel to the server: each call to `request` is one round trip,
    a POST of a JSON payload to `{api_endpoint}/v2/vectordb/{resource}/{action}`,
    answered by a `{"code": ..., "message": ..., "data": ...}` envelope.

    Failures are mapped onto the client exceptions: timeouts become
    MilvusTimeoutException, other transport failures MilvusRpcFailedException,
    HTTP error statuses MilvusHttpException and non-zero envelope codes
    MilvusServerFailedException. Rate-limited calls are retried according
    to the retry options; nothing else is ever retried here.

    Not safe for use by multiple threads at once.
    """

    def __init__(
        self,
        *,
        api_endpoint: str,
        db_name: str,
        headers: dict[str, str | None] = {},
        callers: Sequence[CallerType] = [],
        redacted_header_names: Iterable[str] | None = None,
        retry_options: FullRetryOptions = defaultRetryOptions,
    ) -> None:
        self.client = httpx.Client()
        self._closed = False
        self.api_endpoint = api_endpoint.rstrip("/")
        self.db_name = db_name
        self.headers = headers
        self.callers = callers
        self.redacted_header_names = set(redacted_header_names or [])
        self.upper_full_redacted_header_names = {
            header_name.upper()
            for header_name in (
                self.redacted_header_names | DEFAULT_REDACTED_HEADER_NAMES
            )
        }
        self.retry_options = retry_options

        full_user_agent_string = compose_full_user_agent(
            list(self.callers) + [user_agent_milvus_sdk]
        )
        self.caller_header: dict[str, str] = (
            {"User-Agent": full_user_agent_string} if full_user_agent_string else {}
        )
        self.full_headers: dict[str, str] = {
            k: v
            for k, v in {
                **{
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                **self.caller_header,
                **self.headers,
            }.items()
            if v is not None
        }
        self._loggable_headers = {
            k: v
            if k.upper() not in self.upper_full_redacted_header_names
            else FIXED_SECRET_PLACEHOLDER
            for k, v in self.full_headers.items()
        }
        self.full_path = "/".join([self.api_endpoint, API_PATH.strip("/")])

    def __repr__(self) -> str:
        pieces = [
            f"api_endpoint={self.api_endpoint}",
            f"db_name={self.db_name}",
            f"callers={self.callers}",
        ]
        inner_desc = ", ".join(pieces)
        return f"{self.__class__.__name__}({inner_desc})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, APICommander):
            return all(
                [
                    self.api_endpoint == other.api_endpoint,
                    self.db_name == other.db_name,
                    self.headers == other.headers,
                    self.callers == other.callers,
                    self.redacted_header_names == other.redacted_header_names,
                    self.retry_options == other.retry_options,
                ]
            )
        else:
            return False

    def __enter__(self) -> APICommander:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        self.close()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the underlying HTTP connections. Closing twice is harmless."""
        if not self._closed:
            self.client.close()
            self._closed = True

    def _copy(
        self,
        *,
        db_name: str | None = None,
    ) -> APICommander:
        return APICommander(
            api_endpoint=self.api_endpoint,
            db_name=db_name if db_name is not None else self.db_name,
            headers=self.headers,
            callers=self.callers,
            redacted_header_names=self.redacted_header_names,
            retry_options=self.retry_options,
        )

    def _compose_request_url(self, resource: str, action: str) -> str:
        return "/".join([self.full_path, resource.strip("/"), action.strip("/")])

    def _raw_response_to_json(
        self,
        raw_response: httpx.Response,
        payload: dict[str, Any] | None,
    ) -> dict[str, Any]:
        raw_response_json: Any
        try:
            raw_response_json = json.loads(raw_response.text)
        except ValueError:
            # json parsing has failed (e.g., empty body)
            raise UnexpectedServerResponseException(
                text=f"Unparseable response from '{raw_response.url}'.",
                raw_response={
                    "raw_response": raw_response.text,
                },
            )
        if not isinstance(raw_response_json, dict) or not isinstance(
            raw_response_json.get("code"), int
        ):
            raise UnexpectedServerResponseException(
                text=f"Response from '{raw_response.url}' has no status code.",
                raw_response={
                    "raw_response": raw_response_json,
                },
            )
        return cast(Dict[str, Any], raw_response_json)

    @staticmethod
    def _encode_payload(payload: dict[str, Any]) -> str:
        return json.dumps(
            payload,
            allow_nan=False,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def raw_request(
        self,
        *,
        resource: str,
        action: str,
        payload: dict[str, Any],
        http_method: str = HttpMethod.POST,
        timeout_context: _TimeoutContext | None = None,
    ) -> httpx.Response:
        """
        Issue a single HTTP request and return the raw response, after
        checking its HTTP status. The response envelope is not inspected.
        """
        if self._closed:
            raise MilvusNotConnectedException(
                f"Cannot call '{resource}/{action}': the connection is closed."
            )
        request_url = self._compose_request_url(resource, action)
        _timeout_context = timeout_context or _TimeoutContext(request_ms=None)
        encoded_payload = self._encode_payload(payload)
        log_httpx_request(
            http_method=http_method,
            full_url=request_url,
            redacted_request_headers=self._loggable_headers,
            encoded_payload=encoded_payload,
            timeout_context=_timeout_context,
        )
        httpx_timeout_s = to_httpx_timeout(_timeout_context)

        try:
            raw_response = self.client.request(
                method=http_method,
                url=request_url,
                content=encoded_payload.encode(),
                timeout=httpx_timeout_s,
                headers=self.full_headers,
            )
        except httpx.TimeoutException as timeout_exc:
            raise to_timeout_exception(timeout_exc, timeout_context=_timeout_context)
        except httpx.TransportError as transport_exc:
            raise MilvusRpcFailedException.from_transport_error(transport_exc)

        try:
            raw_response.raise_for_status()
        except httpx.HTTPStatusError as http_exc:
            raise MilvusHttpException.from_httpx_error(http_exc)
        log_httpx_response(response=raw_response)
        return raw_response

    def request(
        self,
        *,
        resource: str,
        action: str,
        payload: dict[str, Any] | None = None,
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]:
        """
        Issue a call and return the (successful) response envelope as a dict.

        The current database name is added to the payload as "dbName" unless
        the payload sets it already.

        Args:
            resource: the resource family, e.g. "entities" or "collections".
            action: the action on the resource, e.g. "search" or "describe".
            payload: the JSON-serializable request body.
            timeout_context: the timeout to honour. Retries of a rate-limited
                call, and the waits between them, share this same timeout.

        Returns:
            the response envelope, whose "code" is zero.

        Raises:
            MilvusTimeoutException: also when the timeout would run out
                while waiting to retry a rate-limited call.
        """
        full_payload = {"dbName": self.db_name, **(payload or {})}
        started_ms = int(time.time() * 1000)
        attempt_timeout_context = timeout_context
        attempt = 0
        while True:
            attempt += 1
            raw_response = self.raw_request(
                resource=resource,
                action=action,
                payload=full_payload,
                timeout_context=attempt_timeout_context,
            )
            response_json = self._raw_response_to_json(
                raw_response, payload=full_payload
            )
            response_code = response_json["code"]
            if response_code == RESPONSE_CODE_SUCCESS:
                return response_json
            if (
                response_code == RESPONSE_CODE_RATE_LIMIT
                and self.retry_options.retry_on_rate_limit
                and attempt < self.retry_options.max_retry_times
            ):
                backoff_ms = self.retry_options.backoff_ms(attempt)
                attempt_timeout_context = self._retry_timeout_context(
                    timeout_context,
                    elapsed_ms=int(time.time() * 1000) - started_ms + backoff_ms,
                    command=f"{resource}/{action}",
                )
                logger.warning(
                    f"'{resource}/{action}' was rate-limited, retrying in "
                    f"{backoff_ms} ms (attempt {attempt})"
                )
                time.sleep(backoff_ms / 1000)
                continue
            logger.warning(
                f"APICommander about to raise from: {response_json.get('message')}"
            )
            raise MilvusServerFailedException.from_response(
                command=full_payload,
                raw_response=response_json,
            )

    @staticmethod
    def _retry_timeout_context(
        timeout_context: _TimeoutContext | None,
        *,
        elapsed_ms: int,
        command: str,
    ) -> _TimeoutContext | None:
        """
        The timeout left for a retry after `elapsed_ms`, or a timeout error
        if nothing is left.
        """
        if timeout_context is None or timeout_context.request_ms is None:
            return timeout_context
        remaining_ms = timeout_context.request_ms - elapsed_ms
        nominal_ms = timeout_context.nominal_ms or timeout_context.request_ms
        if remaining_ms <= 0:
            if timeout_context.label:
                honoured = f"{timeout_context.label} = {nominal_ms} ms"
            else:
                honoured = f"{nominal_ms} ms"
            logger.warning(f"'{command}' still rate-limited, giving up")
            raise MilvusTimeoutException(
                text=(
                    f"Rate-limited call '{command}' timed out "
                    f"(timeout honoured: {honoured})."
                ),
                timeout_type="generic",
                endpoint=None,
                raw_payload=None,
            )
        return _TimeoutContext(
            request_ms=remaining_ms,
            nominal_ms=nominal_ms,
            label=timeout_context.label,
        )
