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

from abc import ABCMeta, abstractmethod
from typing import Sequence, cast

import anyio
from anyio.abc import Listener

from hotls._policy import SecurityPolicy
from hotls._typing import AddressType

from ._tls import PolicyFactoryType, PolicyTLSListener
from ._typing import ByteStream


class TCPServerNetworking(metaclass=ABCMeta):
    """
    Interface for classes that provide networking for TCP servers.

    Allows to start listening for TCP connections, optionally secured using TLS.
    """

    @abstractmethod
    async def listen_tcp(self, local_address: AddressType) -> Listener[ByteStream]:
        """
        Listen for insecure TCP connections at the given local address.

        :param local_address: an IP address and a port number to listen on
        :return: a new listener instance
        """
        raise NotImplementedError

    async def listen_tcp_tls(
        self,
        local_address: AddressType,
        *,
        policy_factory: PolicyFactoryType,
        alpn_protocols: Sequence[str] | None = None,
    ) -> Listener[ByteStream]:
        """
        Listen for TCP connections secured using TLS at the given local address.

        The policy factory is called for every accepted connection,
        the TLS handshake uses the policy that it returns.

        :param local_address: an IP address and a port number to listen on
        :param policy_factory: a callable returning a security policy
        :param alpn_protocols: ALPN protocols to offer in a TLS handshake
        :return: a new listener instance
        """
        tcp_listener = await self.listen_tcp(local_address)
        listener = PolicyTLSListener(
            tcp_listener,
            policy_factory,
            alpn_protocols=alpn_protocols,
        )
        return cast(Listener[ByteStream], listener)


class SystemNetworking(TCPServerNetworking):
    """
    Default networking implementation that uses system sockets.

    Implements :class:`.TCPServerNetworking`.
    """

    async def listen_tcp(self, local_address: AddressType) -> Listener[ByteStream]:
        local_host, local_port = local_address
        listener = await anyio.create_tcp_listener(
            local_host=local_host or None, local_port=local_port
        )
        # https://github.com/agronholm/anyio/pull/464
        return cast(Listener[ByteStream], listener)


def static_policy(policy: SecurityPolicy) -> PolicyFactoryType:
    """
    Wrap a security policy into a factory that always returns it.

    :param policy: the policy to return
    :return: a policy factory
    """

    def factory() -> SecurityPolicy:
        return policy

    return factory
