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

import argparse
import dataclasses

from .. import TLSConfigError
from .. import __version__ as version
from ..http import HTTPHandler
from ..server import Server, listen
from ._options.common import LoggingOptions, LoopOptions
from ._options.server import ServerOptions


@dataclasses.dataclass
class ServerCommand:
    """Starts an HTTP server, secured using TLS if configured."""

    logging: LoggingOptions
    loop: LoopOptions
    server: ServerOptions

    @classmethod
    def parse(cls, parser: argparse.ArgumentParser) -> None:
        ServerOptions.parse(parser)
        LoggingOptions.parse(parser)
        LoopOptions.parse(parser)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> ServerCommand:
        return cls(
            logging=LoggingOptions.from_args(args),
            loop=LoopOptions.from_args(args),
            server=ServerOptions.from_args(args),
        )

    def run(self) -> None:
        self.logging.configure()
        try:
            self.loop.run(self._run_server)
        except TLSConfigError:
            # Already logged when the configuration was loaded.
            raise SystemExit(1)

    async def _run_server(self) -> None:
        handler = HTTPHandler(self.server.app)
        server = Server(
            handler,
            self.server.address,
            alpn_protocols=handler.alpn_protocols,
        )
        await listen(server, self.server.tls_config_path)


def run(*, prog: str | None = None) -> None:
    """
    Main entry point of a command-line utility.

    :param prog: Program name, included in help output
    """
    parser = argparse.ArgumentParser(
        prog=prog,
        description=ServerCommand.__doc__,
        allow_abbrev=False,
    )
    parser.add_argument("--version", action="version", version=f"hotls {version}")
    ServerCommand.parse(parser)
    args = parser.parse_args()
    ServerCommand.from_args(args).run()
