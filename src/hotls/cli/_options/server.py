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
import importlib
from typing import Any

from hotls.server import ListenAddress

DEFAULT_APP = "hotls.http.examples.hello:application"


def import_app(spec: str) -> Any:
    """
    Import an application by a dotted path.
    """
    module_name, _, attr_name = spec.partition(":")
    if not attr_name:
        attr_name = "application"

    app = importlib.import_module(module_name)
    for key in attr_name.split("."):
        app = getattr(app, key)
    return app


@dataclasses.dataclass
class ServerOptions:
    """
    Command-line options for a server
    """

    app: Any
    address: ListenAddress
    tls_config_path: str | None

    @classmethod
    def parse(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "address",
            type=ListenAddress.parse,
            metavar="ADDRESS",
            help="Address to listen at in a [HOST]:PORT format.",
        )
        parser.add_argument(
            "--app",
            default=DEFAULT_APP,
            metavar="APP",
            help="Application in a MODULE_NAME:VARIABLE_NAME format.",
        )
        parser.add_argument(
            "--tls-config",
            dest="tls_config_path",
            metavar="PATH",
            help=(
                "Path to a YAML file with TLS configuration. "
                "Connections are insecure without it. "
                "The file is read again for every TLS handshake."
            ),
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> ServerOptions:
        return cls(
            app=import_app(args.app),
            address=args.address,
            tls_config_path=args.tls_config_path,
        )
