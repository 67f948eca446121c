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
from enum import IntEnum
from typing import Any

import httpx

from milvus_sdk.exceptions.error_descriptors import ServerErrorDescriptor


class StatusCode(IntEnum):
    """
    The numeric status codes classifying every failure raised by the client.
    """

    OK = 0
    UNKNOWN_ERROR = 1
    NOT_SUPPORTED = 2
    NOT_CONNECTED = 3

    INVALID_ARGUMENT = 1000
    RPC_FAILED = 1001
    SERVER_FAILED = 1002
    TIMEOUT = 1003

    DIMENSION_NOT_EQUAL = 2000
    VECTOR_IS_EMPTY = 2001


class MilvusException(Exception):
    """
    Any exception raised by this client. Each subclass corresponds to one
    kind of failure and carries the matching `StatusCode` in its `code`
    class attribute.

    The `retryable` flag tells whether repeating the very same call may
    reasonably succeed (transient condition) or not.
    """

    code = StatusCode.UNKNOWN_ERROR
    retryable = False

    text: str | None

    def __init__(self, text: str | None = None) -> None:
        super().__init__(text)
        self.text = text

    def __str__(self) -> str:
        return self.text or self.__class__.__name__


@dataclass
class MilvusInvalidArgumentException(MilvusException, ValueError):
    """
    A parameter is missing, malformed or inconsistent. This is detected
    on the client before any request is sent.

    Attributes:
        text: a text message about the exception.
        code: `StatusCode.INVALID_ARGUMENT`, or a more specific code such as
            `StatusCode.DIMENSION_NOT_EQUAL` for malformed vectors.
    """

    code = StatusCode.INVALID_ARGUMENT

    text: str | None

    def __init__(
        self, text: str | None = None, *, code: StatusCode | None = None
    ) -> None:
        MilvusException.__init__(self, text)
        if code is not None:
            self.code = code


@dataclass
class MilvusFieldNotFoundException(MilvusInvalidArgumentException):
    """
    A field was requested, by name, from a result that does not contain it.

    Attributes:
        text: a text message about the exception.
        field_name: the name of the requested field.
    """

    text: str | None
    field_name: str

    def __init__(self, field_name: str, text: str | None = None) -> None:
        MilvusInvalidArgumentException.__init__(
            self, text or f"Field '{field_name}' not found in the result."
        )
        self.field_name = field_name


@dataclass
class MilvusNotConnectedException(MilvusException):
    """
    The operation requires a live connection, but the client is not connected
    (never connected, or already closed).

    Attributes:
        text: a text message about the exception.
    """

    code = StatusCode.NOT_CONNECTED
    retryable = True

    text: str | None

    def __init__(self, text: str | None = None) -> None:
        MilvusException.__init__(self, text or "The client is not connected.")


@dataclass
class MilvusRpcFailedException(MilvusException):
    """
    A transport-level failure prevented a request from completing
    (connection refused, broken connection, ...). Such failures are
    presumed to be transient.

    Attributes:
        text: a text message about the exception.
        endpoint: the URL targeted by the failed request, if known.
    """

    code = StatusCode.RPC_FAILED
    retryable = True

    text: str | None
    endpoint: str | None

    def __init__(self, text: str | None = None, *, endpoint: str | None = None) -> None:
        MilvusException.__init__(self, text)
        self.endpoint = endpoint

    @classmethod
    def from_transport_error(
        cls, transport_error: httpx.TransportError
    ) -> MilvusRpcFailedException:
        """Wrap a httpx transport error into this exception."""
        endpoint: str | None
        try:
            endpoint = str(transport_error.request.url)
        except RuntimeError:
            # a httpx error built without a request
            endpoint = None
        text = str(transport_error) or transport_error.__class__.__name__
        return cls(f"RPC failed: {text}", endpoint=endpoint)


@dataclass
class MilvusHttpException(MilvusRpcFailedException, httpx.HTTPStatusError):
    """
    A request to the server resulted in an HTTP 4xx or 5xx response.

    In most cases this comes with additional information: the purpose
    of this class is to present such information in a structured way,
    while still raising (a subclass of) `httpx.HTTPStatusError`.
    Server-side (5xx) and throttling (429) statuses are deemed retryable.

    Attributes:
        text: a text message about the exception.
        error_descriptors: a list of all ServerErrorDescriptor objects
            found in the response.
    """

    text: str | None
    error_descriptors: list[ServerErrorDescriptor]

    def __init__(
        self,
        text: str | None,
        *,
        httpx_error: httpx.HTTPStatusError,
        error_descriptors: list[ServerErrorDescriptor],
    ) -> None:
        MilvusRpcFailedException.__init__(self, text)
        httpx.HTTPStatusError.__init__(
            self,
            message=str(httpx_error),
            request=httpx_error.request,
            response=httpx_error.response,
        )
        self.text = text
        self.httpx_error = httpx_error
        self.error_descriptors = error_descriptors
        status_code = getattr(httpx_error.response, "status_code", None)
        self.retryable = isinstance(status_code, int) and (
            status_code >= 500 or status_code == 429
        )

    def __str__(self) -> str:
        return self.text or str(self.httpx_error)

    @classmethod
    def from_httpx_error(
        cls,
        httpx_error: httpx.HTTPStatusError,
        **kwargs: Any,
    ) -> MilvusHttpException:
        """Parse a httpx status error into this exception."""

        raw_response: dict[str, Any]
        # the attempt to extract a response structure cannot afford failure.
        try:
            raw_response = httpx_error.response.json() or {}
        except Exception:
            raw_response = {}
        if not isinstance(raw_response, dict):
            raw_response = {}
        error_descriptors = (
            [ServerErrorDescriptor(raw_response)] if raw_response.get("message") else []
        )
        if error_descriptors:
            text = f"{error_descriptors[0].message}. {str(httpx_error)}"
        else:
            text = str(httpx_error)

        return cls(
            text=text,
            httpx_error=httpx_error,
            error_descriptors=error_descriptors,
            **kwargs,
        )


@dataclass
class MilvusServerFailedException(MilvusException):
    """
    The server executed the call but reported a logical failure in the
    response envelope (non-zero "code"), e.g. a collection not found or
    range-search parameters incompatible with the index. Not retryable.

    Attributes:
        text: a text message about the exception.
        command: the payload of the request that led to the response.
        raw_response: the full response from the server.
        error_descriptors: a list of ServerErrorDescriptor, one for the
            error reported in the response envelope.
    """

    code = StatusCode.SERVER_FAILED

    text: str | None
    command: dict[str, Any] | None
    raw_response: dict[str, Any] | None
    error_descriptors: list[ServerErrorDescriptor]

    def __init__(
        self,
        text: str | None,
        *,
        command: dict[str, Any] | None = None,
        raw_response: dict[str, Any] | None = None,
        error_descriptors: list[ServerErrorDescriptor] | None = None,
    ) -> None:
        MilvusException.__init__(self, text)
        self.command = command
        self.raw_response = raw_response
        self.error_descriptors = error_descriptors or []

    @property
    def server_code(self) -> int | None:
        """The error code reported by the server, if any."""
        if self.error_descriptors:
            return self.error_descriptors[0].error_code
        return None

    @staticmethod
    def from_response(
        *,
        command: dict[str, Any] | None,
        raw_response: dict[str, Any],
    ) -> MilvusServerFailedException:
        """Parse a raw response envelope from the server into this exception."""

        error_descriptors = [ServerErrorDescriptor(raw_response or {})]
        return MilvusServerFailedException(
            error_descriptors[0].summary(),
            command=command,
            raw_response=raw_response,
            error_descriptors=error_descriptors,
        )


@dataclass
class UnexpectedServerResponseException(MilvusServerFailedException):
    """
    The server response is malformed in that it does not have
    expected field(s), or they are of the wrong type.

    Attributes:
        text: a text message about the exception.
        raw_response: the response returned by the server in the form of a dict.
    """

    text: str | None
    raw_response: dict[str, Any] | None

    def __init__(
        self,
        text: str,
        raw_response: dict[str, Any] | None,
    ) -> None:
        MilvusServerFailedException.__init__(self, text, raw_response=raw_response)


@dataclass
class MilvusTimeoutException(MilvusException):
    """
    An operation timed out. This can be a request timeout occurring
    during a specific HTTP request, or can happen over the course of a method
    involving several requests in a row, such as one step of a search iterator.

    Attributes:
        text: a textual description of the error
        timeout_type: this denotes the phase of the HTTP request when the event
            occurred ("connect", "read", "write", "pool") or "generic" if there is
            not a specific request associated to the exception.
        endpoint: if the timeout is tied to a specific request, this is the
            URL that the request was targeting.
        raw_payload:  if the timeout is tied to a specific request, this is the
            associated payload (as a string).
    """

    code = StatusCode.TIMEOUT
    retryable = True

    text: str | None
    timeout_type: str
    endpoint: str | None
    raw_payload: str | None

    def __init__(
        self,
        text: str,
        *,
        timeout_type: str,
        endpoint: str | None,
        raw_payload: str | None,
    ) -> None:
        MilvusException.__init__(self, text)
        self.timeout_type = timeout_type
        self.endpoint = endpoint
        self.raw_payload = raw_payload


@dataclass
class CursorException(MilvusException):
    """
    The iterator cannot carry on with the requested operation, e.g. because
    too many rows share the same distance for the search iterator to page
    through them safely.

    Attributes:
        text: a text message about the exception.
        cursor_state: a string description of the current state
            of the iterator.
    """

    code = StatusCode.NOT_SUPPORTED

    text: str | None
    cursor_state: str

    def __init__(
        self,
        text: str,
        *,
        cursor_state: str,
    ) -> None:
        MilvusException.__init__(self, text)
        self.cursor_state = cursor_state
