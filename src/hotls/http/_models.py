# Copyright 2022 Akamai Technologies, Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import dataclasses
from typing import Awaitable, Callable, List, Sequence, Tuple

HeaderType = Tuple[bytes, bytes]
HeadersType = Sequence[HeaderType]


@dataclasses.dataclass
class Request:
    """
    HTTP request received by a server.
    """

    #: HTTP method, for example ``"GET"``.
    method: str
    #: Request target, usually a path with a query string.
    target: str
    #: Request headers with lowercase names.
    headers: List[HeaderType] = dataclasses.field(default_factory=list)
    #: Request body.
    body: bytes = b""
    #: HTTP version, for example ``"HTTP/1.1"``.
    http_version: str = "HTTP/1.1"

    def get_header(self, name: bytes) -> bytes | None:
        """
        Return a value of the first header with the given name.

        :param name: header name, case-insensitive
        :return: header value or ``None`` if the header is not present
        """
        name = name.lower()
        for header_name, value in self.headers:
            if header_name == name:
                return value
        return None


@dataclasses.dataclass
class Response:
    """
    HTTP response returned by an application.
    """

    #: HTTP status code.
    status: int = 200
    #: Response headers. Content-Length is added if not present.
    headers: List[HeaderType] = dataclasses.field(default_factory=list)
    #: Response body.
    body: bytes = b""


AppType = Callable[[Request], Awaitable[Response]]
