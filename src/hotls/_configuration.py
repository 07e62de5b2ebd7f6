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

import dataclasses
import logging
from typing import Any

import yaml

from ._errors import FileError, ParseError

logger = logging.getLogger("hotls.config")

#: Name of the top-level section with TLS options.
SECTION = "tlsConfig"

# Maps keys in a configuration document to TLSConfig fields.
_FIELDS = {
    "tlsCertPath": "cert_path",
    "tlsKeyPath": "key_path",
    "serverName": "server_name",
    "clientAuth": "client_auth",
    "clientCAs": "client_cas",
}


@dataclasses.dataclass(frozen=True)
class TLSConfig:
    """
    TLS configuration as written in a configuration file.

    Empty strings mean that an option is not configured.
    Values are not validated here, see :func:`hotls.build_policy`.
    """

    #: File with a server certificate (``tlsCertPath``).
    cert_path: str = ""

    #: File with a key for the server certificate (``tlsKeyPath``).
    #: Required when ``cert_path`` is set.
    key_path: str = ""

    #: Server name (``serverName``).
    server_name: str = ""

    #: Name of a client-authentication mode (``clientAuth``).
    client_auth: str = ""

    #: File with CA certificates trusted for client verification (``clientCAs``).
    client_cas: str = ""

    @classmethod
    def from_document(cls, document: Any) -> TLSConfig:
        """
        Decode a parsed YAML document.

        :param document: a value returned by a YAML parser
        :return: a new instance
        """
        if document is None:
            return cls()
        if not isinstance(document, dict):
            raise ParseError("Configuration document must be a mapping.")
        for key in document:
            if key != SECTION:
                logger.warning(f"Unknown configuration key ignored: {key!r}")
        section = document.get(SECTION)
        if section is None:
            return cls()
        if not isinstance(section, dict):
            raise ParseError(f"Configuration section {SECTION!r} must be a mapping.")
        values = {}
        for key, value in section.items():
            field_name = _FIELDS.get(key)
            if field_name is None:
                logger.warning(f"Unknown configuration key ignored: {SECTION}.{key}")
                continue
            if value is None:
                continue
            if not isinstance(value, str):
                raise ParseError(
                    f"Configuration key {SECTION}.{key} must be a string, "
                    f"got {type(value).__name__}."
                )
            values[field_name] = value
        return cls(**values)


def load_tls_config(path: str) -> TLSConfig:
    """
    Load TLS configuration from a YAML file.

    The file is read every time this function is called.

    :param path: path to a configuration file
    :return: a new instance
    :raises FileError: if the file cannot be read
    :raises ParseError: if the file is not valid configuration
    """
    if not path:
        raise ValueError("Configuration path must not be empty.")
    try:
        with open(path, "rb") as f:
            content = f.read()
    except OSError as exc:
        raise FileError(path, exc.strerror or str(exc)) from exc
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid YAML in {path!r}: {exc}") from exc
    return TLSConfig.from_document(document)
