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

import pytest

from hotls.server import ListenAddress


class TestListenAddress:
    @pytest.mark.parametrize(
        "value, host, port",
        [
            (":8080", "", 8080),
            ("example.com:8080", "example.com", 8080),
            ("0.0.0.0:8443", "0.0.0.0", 8443),
            ("127.0.0.1:0", "127.0.0.1", 0),
            ("[::]:8080", "::", 8080),
            ("[::1]:8443", "::1", 8443),
        ],
    )
    def test_parse(self, value: str, host: str, port: int) -> None:
        assert ListenAddress.parse(value) == ListenAddress(host, port)

    @pytest.mark.parametrize(
        "value",
        [
            "",
            ":",
            "example.com",
            "https://example.com:8443",
            "example.com:8080/foo",
            "example.com:8080?bar",
            "user@example.com:8080",
            "example.com:http",
            "example.com:99999",
        ],
    )
    def test_parse_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            ListenAddress.parse(value)

    @pytest.mark.parametrize(
        "address, value",
        [
            (ListenAddress("", 8080), ":8080"),
            (ListenAddress("127.0.0.1", 8443), "127.0.0.1:8443"),
            (ListenAddress("::1", 8443), "[::1]:8443"),
        ],
    )
    def test_str(self, address: ListenAddress, value: str) -> None:
        assert str(address) == value
