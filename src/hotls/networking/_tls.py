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
import logging
from typing import Any, Callable, Mapping, Sequence

import anyio
import anyio.to_thread
from anyio.abc import Listener, SocketAttribute, TaskGroup
from anyio.streams.tls import TLSStream
from OpenSSL import SSL

from hotls._errors import TLSConfigError
from hotls._policy import SecurityPolicy, TLSContextType

from ._openssl import OpenSSLStream
from ._typing import ByteStream

logger = logging.getLogger("hotls.networking")

PolicyFactoryType = Callable[[], SecurityPolicy]


class PolicyTLSListener(Listener[ByteStream]):
    """
    Wraps accepted TCP connections in TLS.

    Unlike :class:`anyio.streams.tls.TLSListener`, this listener does not
    have one SSL context. It obtains a security policy for each accepted
    connection and creates a new SSL context from it.
    A connection is closed if its policy or its handshake fails;
    other connections are not affected.

    :param listener: listener accepting TCP connections
    :param policy_factory: a callable returning a security policy,
        called from a worker thread, possibly concurrently
    :param alpn_protocols: ALPN protocols to offer in a TLS handshake
    """

    _listener: Listener[ByteStream]
    _policy_factory: PolicyFactoryType
    _alpn_protocols: Sequence[str] | None

    def __init__(
        self,
        listener: Listener[ByteStream],
        policy_factory: PolicyFactoryType,
        *,
        alpn_protocols: Sequence[str] | None = None,
    ) -> None:
        self._listener = listener
        self._policy_factory = policy_factory
        self._alpn_protocols = alpn_protocols

    async def serve(
        self,
        handler: Callable[[ByteStream], Any],
        task_group: TaskGroup | None = None,
    ) -> None:
        @functools.wraps(handler)
        async def handler_wrapper(stream: ByteStream) -> None:
            try:
                tls_stream = await self._handshake(stream)
            except Exception as exc:
                self._log_rejected(stream, exc)
                await anyio.aclose_forcefully(stream)
                return
            except BaseException:
                await anyio.aclose_forcefully(stream)
                raise
            await handler(tls_stream)

        await self._listener.serve(handler_wrapper, task_group=task_group)

    async def aclose(self) -> None:
        await self._listener.aclose()

    @property
    def extra_attributes(self) -> Mapping[Any, Callable[[], Any]]:
        return self._listener.extra_attributes

    async def _handshake(self, stream: ByteStream) -> ByteStream:
        context = await anyio.to_thread.run_sync(self._create_context)
        if isinstance(context, SSL.Context):
            return await OpenSSLStream.wrap(stream, context)
        return await TLSStream.wrap(
            stream,
            server_side=True,
            ssl_context=context,
            standard_compatible=False,  # HTTP requires this option to be False
        )

    def _create_context(self) -> TLSContextType:
        policy = self._policy_factory()
        return policy.tls_context(alpn_protocols=self._alpn_protocols)

    def _log_rejected(self, stream: ByteStream, exc: Exception) -> None:
        remote_address = stream.extra(SocketAttribute.remote_address, None)
        if isinstance(exc, TLSConfigError):
            logger.warning(
                f"Connection from {remote_address} rejected, "
                f"TLS policy is not valid: {exc}"
            )
        else:
            logger.info(f"TLS handshake with {remote_address} failed: {exc!r}")
