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
from typing import Any


@dataclass
class ServerErrorDescriptor:
    """
    An object representing a single error returned by the server, as found in
    the response envelope: a numeric server error code and a text message.

    Attributes:
        error_code: the integer found in the envelope's "code" field.
        message: the text found in the envelope's "message" field.
        attributes: a dict with any further key-value pairs of the envelope
            (excluding "data").
    """

    error_code: int | None
    message: str | None
    attributes: dict[str, Any]

    _known_dict_fields = {
        "code",
        "message",
        "data",
    }

    def __init__(self, error_dict: dict[str, Any] | str) -> None:
        if isinstance(error_dict, str):
            self.error_code = None
            self.message = error_dict
            self.attributes = {}
        else:
            _code = error_dict.get("code")
            self.error_code = _code if isinstance(_code, int) else None
            self.message = error_dict.get("message")
            self.attributes = {
                k: v for k, v in error_dict.items() if k not in self._known_dict_fields
            }

    def __repr__(self) -> str:
        pieces = [
            f"error_code={self.error_code.__repr__()}"
            if self.error_code is not None
            else None,
            f"message={self.message.__repr__()}" if self.message else None,
            f"attributes={self.attributes.__repr__()}" if self.attributes else None,
        ]
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"

    def __str__(self) -> str:
        return self.summary()

    def summary(self) -> str:
        """Determine a string succinct description of this descriptor."""
        if self.error_code is not None:
            if self.message:
                return f"{self.message} (server code {self.error_code})"
            else:
                return f"server code {self.error_code}"
        else:
            return self.message or ""
