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

from abc import ABC, abstractmethod
from typing import Any

from typing_extensions import override

from milvus_sdk.settings.defaults import (
    DEFAULT_AUTH_HEADER,
    DEFAULT_AUTH_PREFIX,
    FIXED_SECRET_PLACEHOLDER,
    SECRETS_REDACT_CHAR,
    SECRETS_REDACT_ENDING,
    SECRETS_REDACT_ENDING_LENGTH,
)
from milvus_sdk.utils.unset import _UNSET, UnsetType


def coerce_token_provider(
    token: str | TokenProvider | None,
) -> TokenProvider:
    if isinstance(token, TokenProvider):
        return token
    else:
        return StaticTokenProvider(token)


def coerce_possible_token_provider(
    token: str | TokenProvider | None | UnsetType,
) -> TokenProvider | UnsetType:
    if isinstance(token, UnsetType):
        return _UNSET
    else:
        return coerce_token_provider(token)


def _redact_secret(secret: str, max_length: int, hide_if_short: bool = True) -> str:
    """
    Return a shortened-if-necessary version of a 'secret' string (with ellipsis).

    Args:
        secret: a secret string to redact
        max_length: if the secret and the fixed ending exceed this size,
            shortening takes place.
        hide_if_short: this controls what to do when the input secret is
            shorter, i.e. when no shortening takes place.
            if False, the secret is returned as-is;
            If True, a masked string is returned of the same length as secret.

    Returns:
        a 'redacted' form of the secret string as per the rules outlined above.
    """
    secret_len = len(secret)
    if secret_len + SECRETS_REDACT_ENDING_LENGTH > max_length:
        return (
            secret[: max_length - SECRETS_REDACT_ENDING_LENGTH] + SECRETS_REDACT_ENDING
        )
    else:
        if hide_if_short:
            return SECRETS_REDACT_CHAR * len(secret)
        else:
            return secret


class TokenProvider(ABC):
    """
    Abstract base class for a token provider.
    The relevant method in this interface is returning a string to use as token.

    The __str__ / __repr__ methods are NOT to be used as source of tokens:
    use get_token instead.

    Equality (__eq__) checks whether the generated tokens match, regardless
    of the concrete provider class.
    """

    def __eq__(self, other: Any) -> bool:
        my_token = self.get_token()
        if isinstance(other, TokenProvider):
            if my_token is None:
                return other.get_token() is None
            else:
                return other.get_token() == my_token
        else:
            return False

    @abstractmethod
    def __repr__(self) -> str: ...

    def __bool__(self) -> bool:
        """All providers, unless their token is None, evaluate to True."""
        return self.get_token() is not None

    @abstractmethod
    def get_token(self) -> str | None:
        """
        Produce a string for direct use as token in a subsequent request,
        or None for no token.
        """
        ...

    def get_headers(self) -> dict[str, str]:
        """The authorization header(s) carrying the token, if any."""
        token = self.get_token()
        if token is None:
            return {}
        return {DEFAULT_AUTH_HEADER: f"{DEFAULT_AUTH_PREFIX}{token}"}


class StaticTokenProvider(TokenProvider):
    """
    A "pass-through" provider that wraps a supplied literal token, such as
    an API key or a "user:password" string already joined by the caller.

    Args:
        token: an access token for subsequent use in the client.

    Example:
        >>> from milvus_sdk import MilvusClient
        >>> from milvus_sdk.authentication import StaticTokenProvider
        >>> client = MilvusClient(
        ...     "http://localhost:19530",
        ...     token=StaticTokenProvider("root:Milvus"),
        ... )
    """

    def __init__(self, token: str | None) -> None:
        self.token = token

    @override
    def __repr__(self) -> str:
        if self.token is None:
            return "(none)"
        else:
            return f"{self.__class__.__name__}({_redact_secret(self.token, 15)})"

    @override
    def get_token(self) -> str | None:
        return self.token


class UsernamePasswordTokenProvider(TokenProvider):
    """
    A token provider encoding username/password-based authentication.
    The server expects the two joined by a colon, sent as a bearer token.

    Args:
        username: the username for accessing the server.
        password: the corresponding password.

    Example:
        >>> from milvus_sdk import MilvusClient
        >>> from milvus_sdk.authentication import UsernamePasswordTokenProvider
        >>> client = MilvusClient(
        ...     "http://localhost:19530",
        ...     token=UsernamePasswordTokenProvider("root", "Milvus"),
        ... )
    """

    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self.password = password
        self.token = f"{self.username}:{self.password}"

    @override
    def __repr__(self) -> str:
        _r_username = _redact_secret(self.username, 6, hide_if_short=False)
        _r_password = FIXED_SECRET_PLACEHOLDER
        return f'{self.__class__.__name__}("username={_r_username}, password={_r_password}")'

    @override
    def get_token(self) -> str:
        return self.token
