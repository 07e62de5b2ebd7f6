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

import functools
from typing import Any, Callable, Mapping, TypeVar

import anyio
from anyio.streams.tls import TLSAttribute
from OpenSSL import SSL, crypto

from ._typing import ByteStream

T = TypeVar("T")


class OpenSSLStream(ByteStream):
    """
    Server side of a TLS connection implemented using pyOpenSSL.

    Used instead of :class:`anyio.streams.tls.TLSStream` for handshakes
    that must accept client certificates without verifying them.
    The :mod:`ssl` module has no verify callback, pyOpenSSL does.

    Like a :class:`TLSStream` that is not standard compatible,
    a connection closed without a TLS closure alert
    is reported as :exc:`anyio.EndOfStream`.
    """

    _transport: ByteStream
    _connection: SSL.Connection
    _transport_eof: bool = False
    _max_bytes: int = 65536

    def __init__(self, transport: ByteStream, connection: SSL.Connection) -> None:
        self._transport = transport
        self._connection = connection

    @classmethod
    async def wrap(cls, transport: ByteStream, context: SSL.Context) -> OpenSSLStream:
        """
        Perform a server-side TLS handshake over the given stream.

        :param transport: stream with an accepted connection
        :param context: context to use in the handshake
        :return: a new TLS stream
        :raises anyio.BrokenResourceError: if the handshake fails
        """
        connection = SSL.Connection(context, None)
        connection.set_accept_state()
        stream = cls(transport, connection)
        try:
            await stream._call(connection.do_handshake)
        except anyio.EndOfStream:
            raise anyio.BrokenResourceError(
                "Connection closed during a TLS handshake."
            ) from None
        return stream

    async def receive(self, max_bytes: int = 65536) -> bytes:
        return await self._call(functools.partial(self._connection.recv, max_bytes))

    async def send(self, item: bytes) -> None:
        view = memoryview(item)
        while view:
            sent = await self._call(functools.partial(self._connection.send, view))
            view = view[sent:]

    async def send_eof(self) -> None:
        raise NotImplementedError("TLS does not support half-closed connections.")

    async def aclose(self) -> None:
        # No closure alert is sent, as with a TLSStream that is not
        # standard compatible.
        await self._transport.aclose()

    @property
    def extra_attributes(self) -> Mapping[Any, Callable[[], Any]]:
        return {
            **self._transport.extra_attributes,
            TLSAttribute.alpn_protocol: self._alpn_protocol,
            TLSAttribute.peer_certificate_binary: self._peer_certificate_binary,
            TLSAttribute.server_side: lambda: True,
            TLSAttribute.standard_compatible: lambda: False,
            TLSAttribute.tls_version: self._connection.get_protocol_version_name,
        }

    def _alpn_protocol(self) -> str | None:
        protocol = self._connection.get_alpn_proto_negotiated()
        return protocol.decode() if protocol else None

    def _peer_certificate_binary(self) -> bytes | None:
        certificate = self._connection.get_peer_certificate()
        if certificate is None:
            return None
        return crypto.dump_certificate(crypto.FILETYPE_ASN1, certificate)

    async def _call(self, func: Callable[[], T]) -> T:
        while True:
            try:
                result = func()
            except SSL.WantReadError:
                if self._transport_eof:
                    raise anyio.EndOfStream from None
                await self._flush()
                await self._feed()
            except SSL.ZeroReturnError:
                await self._flush()
                raise anyio.EndOfStream from None
            except SSL.Error as exc:
                if self._transport_eof:
                    raise anyio.EndOfStream from None
                raise anyio.BrokenResourceError(f"TLS error: {exc}") from exc
            else:
                await self._flush()
                return result

    async def _feed(self) -> None:
        try:
            data = await self._transport.receive(self._max_bytes)
        except anyio.EndOfStream:
            self._transport_eof = True
            self._connection.bio_shutdown()
        else:
            self._connection.bio_write(data)

    async def _flush(self) -> None:
        while True:
            try:
                data = self._connection.bio_read(self._max_bytes)
            except SSL.WantReadError:
                return
            await self._transport.send(data)
