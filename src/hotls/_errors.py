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


class TLSConfigError(Exception):
    """
    Base class for errors raised while loading TLS configuration
    or while building a security policy from it.
    """


class FileError(TLSConfigError):
    """
    A configured file does not exist or cannot be read.

    :param path: path to the file
    :param reason: human-readable description of the failure
    """

    #: Path to the file that could not be read.
    path: str

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path!r}: {reason}")
        self.path = path


class ParseError(TLSConfigError):
    """
    A configuration document does not match the expected schema.
    """


class BuildError(TLSConfigError):
    """
    A security policy cannot be built from a configuration.
    """


class CertificateError(BuildError):
    """
    A certificate and a key cannot be loaded, or they do not match.
    """


class InvalidModeError(BuildError):
    """
    Unrecognized name of a client-authentication mode.

    :param mode: the offending value
    """

    #: The unrecognized value.
    mode: str

    def __init__(self, mode: str) -> None:
        super().__init__(f"Invalid client authentication mode: {mode!r}")
        self.mode = mode
