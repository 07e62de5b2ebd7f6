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

from typing import NamedTuple
from urllib.parse import urlsplit


class ListenAddress(NamedTuple):
    """
    An address where a server can listen.

    Whether the server uses TLS is not part of an address,
    it depends on TLS configuration.
    """

    #: A hostname or an IP address, empty for all interfaces
    host: str
    #: A port number
    port: int

    def __repr__(self) -> str:
        return f"<{type(self).__name__}: {str(self)!r}>"

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> ListenAddress:
        """
        Parse an address in a ``[HOST]:PORT`` format.

        :param value: string value
        :return: a new instance
        """
        parsed = urlsplit("//" + value)
        if parsed.port is None:
            raise ValueError("Listen address port is required.")
        if parsed.path or parsed.query or parsed.fragment:
            raise ValueError("Listen address must be in a [HOST]:PORT format.")
        if parsed.username is not None:
            raise ValueError("Listen address must not have user info.")
        return cls(parsed.hostname or "", parsed.port)
