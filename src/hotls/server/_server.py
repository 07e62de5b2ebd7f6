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
from typing import Any, Callable, Coroutine, Sequence

import anyio
from anyio.abc import Listener, SocketAttribute, TaskStatus

from hotls._policy import SecurityPolicy
from hotls._typing import AddressType
from hotls.networking import (
    ByteStream,
    PolicyFactoryType,
    SystemNetworking,
    TCPServerNetworking,
    static_policy,
)

from ._models import ListenAddress

logger = logging.getLogger("hotls.server")

HandlerType = Callable[[ByteStream], Coroutine[Any, Any, Any]]


class Server:
    """
    Accepts connections and passes them to a handler.

    Connections are either insecure (:meth:`serve`)
    or secured using TLS (:meth:`serve_tls`).
    The handler receives a byte stream in both cases,
    TLS details are hidden from it.

    :param handler: coroutine function called with each accepted connection;
        the connection is closed when it returns
    :param address: an IP address and a port number to listen on
    :param alpn_protocols: ALPN protocols to offer in a TLS handshake
    :param networking: networking implementation to use.
        Defaults to :class:`.SystemNetworking`
    """

    #: TLS policy used when :attr:`tls_policy_factory` is not set.
    tls_policy: SecurityPolicy | None = None

    #: Called for every TLS handshake, returns a policy for the new connection.
    #: Overrides :attr:`tls_policy`.
    tls_policy_factory: PolicyFactoryType | None = None

    def __init__(
        self,
        handler: HandlerType,
        address: AddressType = ("", 8080),
        *,
        alpn_protocols: Sequence[str] | None = None,
        networking: TCPServerNetworking | None = None,
    ) -> None:
        self.handler = handler
        self.address = ListenAddress(*address)
        self.alpn_protocols = alpn_protocols
        self._networking = networking or SystemNetworking()
        self._connection_counter = 0

    async def serve(
        self, *, task_status: TaskStatus[AddressType] = anyio.TASK_STATUS_IGNORED
    ) -> None:
        """
        Listen for insecure connections and serve them until cancelled.

        :param task_status: receives the bound address once the server listens
        """
        listener = await self._networking.listen_tcp(self.address)
        await self._run(listener, "http", task_status)

    async def serve_tls(
        self, *, task_status: TaskStatus[AddressType] = anyio.TASK_STATUS_IGNORED
    ) -> None:
        """
        Listen for connections secured using TLS and serve them until cancelled.

        :attr:`tls_policy_factory` or :attr:`tls_policy` must be set.

        :param task_status: receives the bound address once the server listens
        """
        if self.tls_policy_factory is not None:
            policy_factory = self.tls_policy_factory
        elif self.tls_policy is not None:
            policy_factory = static_policy(self.tls_policy)
        else:
            raise ValueError("TLS policy is required.")
        if self.tls_policy is not None and self.tls_policy.certificate is None:
            logger.warning("TLS policy has no certificate configured.")
        listener = await self._networking.listen_tcp_tls(
            self.address,
            policy_factory=policy_factory,
            alpn_protocols=self.alpn_protocols,
        )
        await self._run(listener, "https", task_status)

    async def _run(
        self,
        listener: Listener[ByteStream],
        scheme: str,
        task_status: TaskStatus[AddressType],
    ) -> None:
        async with listener:
            local_address = listener.extra(
                SocketAttribute.local_address, self.address
            )[:2]
            logger.info(f"Listening at {scheme}://{ListenAddress(*local_address)}")
            task_status.started(local_address)
            await listener.serve(self._handle_connection)

    async def _handle_connection(self, stream: ByteStream) -> None:
        self._connection_counter += 1
        connection_id = self._connection_counter
        remote_address = stream.extra(SocketAttribute.remote_address, None)
        logger.info(f"Connection #{connection_id}: accepted from {remote_address}.")
        async with stream:
            try:
                await self.handler(stream)
            except Exception:
                logger.exception(
                    f"Connection #{connection_id}: "
                    "handler thrown an unhandled exception:"
                )
        logger.info(f"Connection #{connection_id}: closed.")
