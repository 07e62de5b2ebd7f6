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

import logging
from typing import NoReturn

import anyio
import h11

from hotls.networking import ByteStream

from ._models import AppType, HeadersType, Request, Response

logger = logging.getLogger("hotls.http")


def _response_headers(response: Response) -> HeadersType:
    headers = [(name.lower(), value) for name, value in response.headers]
    if not any(name == b"content-length" for name, _ in headers):
        headers.append((b"content-length", str(len(response.body)).encode()))
    return headers


class HTTPHandler:
    """
    Serves HTTP/1.1 requests from one connection using an application.

    Instances can be used as :class:`hotls.server.Server` handlers.
    Requests on one connection are processed one by one
    until the client closes the connection.

    Requests with a body larger than ``max_body_size`` bytes are answered
    with a 413 response and the connection is closed.

    :param app: coroutine function that turns a request into a response
    :param max_body_size: maximum size of a request body in bytes
    """

    #: ALPN protocols supported by this handler.
    alpn_protocols = ["http/1.1"]

    _app: AppType
    _max_body_size: int
    _max_receive_size: int = 65536

    def __init__(self, app: AppType, *, max_body_size: int = 1024 * 1024) -> None:
        self._app = app
        self._max_body_size = max_body_size

    async def __call__(self, stream: ByteStream) -> None:
        connection = h11.Connection(h11.SERVER)
        try:
            await self._serve(connection, stream)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as exc:
            logger.debug(f"Connection lost: {exc!r}")

    async def _serve(self, connection: h11.Connection, stream: ByteStream) -> None:
        while True:
            try:
                request = await self._receive_request(connection, stream)
            except h11.RemoteProtocolError as exc:
                logger.info(f"Invalid HTTP request: {exc}")
                if connection.our_state in {h11.IDLE, h11.SEND_RESPONSE}:
                    response = Response(status=exc.error_status_hint)
                    await self._send_response(connection, stream, response)
                return
            if request is None:
                return
            response = await self._run_app(request)
            await self._send_response(
                connection, stream, response, send_body=request.method != "HEAD"
            )
            if connection.our_state is not h11.DONE:
                return
            if connection.their_state is not h11.DONE:
                return
            connection.start_next_cycle()

    async def _run_app(self, request: Request) -> Response:
        try:
            return await self._app(request)
        except Exception:
            logger.exception(
                f"{request.method} {request.target}: "
                "application thrown an unhandled exception:"
            )
            return Response(status=500)

    async def _receive_request(
        self, connection: h11.Connection, stream: ByteStream
    ) -> Request | None:
        event = await self._next_event(connection, stream)
        if not isinstance(event, h11.Request):
            return None
        request = Request(
            method=event.method.decode(),
            target=event.target.decode(),
            headers=[(name, value) for name, value in event.headers],
            http_version="HTTP/" + event.http_version.decode(),
        )
        content_length = request.get_header(b"content-length")
        if content_length is not None and int(content_length) > self._max_body_size:
            self._body_too_large()
        chunks = []
        size = 0
        while True:
            event = await self._next_event(connection, stream)
            if isinstance(event, h11.Data):
                size += len(event.data)
                if size > self._max_body_size:
                    self._body_too_large()
                chunks.append(bytes(event.data))
            elif isinstance(event, h11.EndOfMessage):
                break
        request.body = b"".join(chunks)
        return request

    async def _next_event(
        self, connection: h11.Connection, stream: ByteStream
    ) -> h11.Event:
        while True:
            event = connection.next_event()
            if event is not h11.NEED_DATA:
                return event
            try:
                data = await stream.receive(self._max_receive_size)
            except anyio.EndOfStream:
                data = b""  # h11 treats empty data as EOF.
            connection.receive_data(data)

    async def _send_response(
        self,
        connection: h11.Connection,
        stream: ByteStream,
        response: Response,
        *,
        send_body: bool = True,
    ) -> None:
        h11_events: list[h11.Event] = [
            h11.Response(
                status_code=response.status,
                headers=_response_headers(response),
            )
        ]
        if send_body and response.body:
            h11_events.append(h11.Data(response.body))
        h11_events.append(h11.EndOfMessage())
        for h11_event in h11_events:
            data = connection.send(h11_event)
            if data:
                await stream.send(data)

    def _body_too_large(self) -> NoReturn:
        raise h11.RemoteProtocolError(
            f"Request body exceeds {self._max_body_size} bytes.",
            error_status_hint=413,
        )
