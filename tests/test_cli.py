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
import logging
from pathlib import Path

import pytest

from hotls.cli._main import ServerCommand
from hotls.cli._options.server import DEFAULT_APP, import_app
from hotls.http.examples.hello import application as hello
from hotls.server import ListenAddress


def parse(*args: str) -> ServerCommand:
    parser = argparse.ArgumentParser()
    ServerCommand.parse(parser)
    return ServerCommand.from_args(parser.parse_args(args))


class TestServerCommand:
    def test_defaults(self) -> None:
        command = parse(":8080")
        assert command.server.address == ListenAddress("", 8080)
        assert command.server.app is hello
        assert command.server.tls_config_path is None
        assert command.logging.log_level == "INFO"
        assert command.loop.loop == "asyncio"

    def test_options(self) -> None:
        command = parse(
            "[::1]:8443",
            "--tls-config",
            "web.yml",
            "--app",
            "hotls.http.examples.hello",
            "--log-level",
            "DEBUG",
            "--loop",
            "trio",
        )
        assert command.server.address == ListenAddress("::1", 8443)
        assert command.server.app is hello
        assert command.server.tls_config_path == "web.yml"
        assert command.logging.log_level == "DEBUG"
        assert command.loop.loop == "trio"

    @pytest.mark.parametrize("address", ["localhost", "localhost:http", "/foo"])
    def test_invalid_address(self, address: str) -> None:
        with pytest.raises(SystemExit):
            parse(address)

    def test_invalid_loop(self) -> None:
        with pytest.raises(SystemExit):
            parse(":8080", "--loop", "tornado")

    def test_invalid_tls_config(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        command = parse(":0", "--tls-config", str(tmp_path / "missing.yml"))
        with caplog.at_level(logging.ERROR, logger="hotls"):
            with pytest.raises(SystemExit) as exc_info:
                command.run()
        assert exc_info.value.code == 1
        assert "missing.yml" in caplog.text


class TestImportApp:
    def test_default(self) -> None:
        assert import_app(DEFAULT_APP) is hello

    def test_attribute_path(self) -> None:
        assert import_app("hotls.http:HTTPHandler.__call__") is not None

    def test_missing_module(self) -> None:
        with pytest.raises(ModuleNotFoundError):
            import_app("hotls.nonexistent:application")

    def test_missing_attribute(self) -> None:
        with pytest.raises(AttributeError):
            import_app("hotls.http.examples.hello:missing")
