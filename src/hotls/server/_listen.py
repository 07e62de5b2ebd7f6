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

import anyio
from anyio.abc import TaskStatus

from hotls._policy import load_policy
from hotls._typing import AddressType

from ._server import Server


async def listen(
    server: Server,
    tls_config_path: str | None,
    *,
    task_status: TaskStatus[AddressType] = anyio.TASK_STATUS_IGNORED,
) -> None:
    """
    Run a server, with TLS if a TLS configuration file is given.

    Without a configuration file, the server accepts insecure connections
    and no file is read.

    With a configuration file, the configuration is loaded before the server
    starts listening, so invalid configuration prevents the server from
    starting. The configuration and certificates are then loaded again
    for every TLS handshake; changes take effect without a restart.
    A connection whose configuration fails to load is rejected.

    Blocks until the server is cancelled.

    :param server: server to run
    :param tls_config_path: path to a YAML file with TLS configuration,
        or ``None`` (or an empty string) for an insecure server
    :param task_status: receives the bound address once the server listens
    :raises TLSConfigError: if the TLS configuration is not valid at startup
    """
    if not tls_config_path:
        await server.serve(task_status=task_status)
        return
    server.tls_policy = load_policy(tls_config_path)
    server.tls_policy_factory = functools.partial(load_policy, tls_config_path)
    await server.serve_tls(task_status=task_status)
