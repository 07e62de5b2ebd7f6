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

from .._models import Request, Response


async def application(request: Request) -> Response:
    """
    A simple application that can be used for demo purposes

    Echoes a request line in a plain-text response.
    """
    body = f"{request.method} {request.target} {request.http_version}\r\n".encode()
    return Response(
        status=200,
        headers=[(b"content-type", b"text/plain")],
        body=body,
    )
